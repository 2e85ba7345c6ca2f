"""Pydantic models."""

from culinai.models.recipe import (
    ChatMessage,
    DietaryFilters,
    Difficulty,
    InlineImage,
    Recipe,
    RecipeIngredient,
    SavedSearch,
    ShoppingItem,
    UserProfile,
    ViewState,
)

__all__ = [
    "ChatMessage",
    "DietaryFilters",
    "Difficulty",
    "InlineImage",
    "Recipe",
    "RecipeIngredient",
    "SavedSearch",
    "ShoppingItem",
    "UserProfile",
    "ViewState",
]
