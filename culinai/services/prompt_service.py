"""Prompt generation for the Gemini calls."""

import re
from typing import List

from culinai.models.recipe import DietaryFilters
from culinai.utils.validators import language_name

# Recipes asked for per search
RECIPES_PER_REQUEST = 4

RECIPE_JSON_SCHEMA = """[
  {
    "id": "unique_id",
    "title": "Recipe Title",
    "description": "Short appetizing description",
    "sourceUrl": "The URL of the recipe source (e.g. https://www.allrecipes.com/...)",
    "sourceName": "The name of the website source (e.g. AllRecipes)",
    "ingredients": [{"name": "ingredient name", "quantity": "amount (e.g. 2 cups)"}],
    "missingIngredients": [{"name": "ingredient name", "quantity": "amount"}],
    "instructions": ["Step 1...", "Step 2..."],
    "prepTime": "e.g. 30 mins",
    "calories": "e.g. 500 kcal",
    "protein": "e.g. 30g",
    "carbs": "e.g. 45g",
    "fat": "e.g. 15g",
    "fiber": "e.g. 5g",
    "sugar": "e.g. 10g",
    "sodium": "e.g. 500mg",
    "cholesterol": "e.g. 30mg",
    "potassium": "e.g. 400mg",
    "vitaminA": "e.g. 10% DV",
    "vitaminC": "e.g. 15% DV",
    "calcium": "e.g. 20% DV",
    "iron": "e.g. 5% DV",
    "difficulty": "Easy" | "Medium" | "Hard",
    "dietaryTags": ["Vegetarian", "Keto", etc],
    "tips": ["Tip 1", "Tip 2"],
    "imageKeyword": "one or two English words naming the dish (e.g. lasagna)"
  }
]"""

INGREDIENT_LIST_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def humanize_flag(key: str) -> str:
    """'glutenFree' -> 'gluten free'."""
    return _CAMEL_BOUNDARY.sub(r" \1", key).lower().strip()


def build_recipe_prompt(query: str, filters: DietaryFilters, language: str) -> str:
    """Build the recipe search prompt. Same inputs always give the same text."""
    lines: List[str] = [f"The user is looking for: {query}."]

    active = ", ".join(humanize_flag(flag) for flag in filters.active_flags())
    if active:
        lines.append(f"I have these dietary restrictions: {active}.")

    if filters.cuisine:
        lines.append(f"Strictly restrict results to these cuisines: {', '.join(filters.cuisine)}.")

    if filters.maxPrepTime and filters.maxPrepTime != "any":
        lines.append(
            f"Strictly restrict recipes to have a total prep+cook time of under {filters.maxPrepTime} minutes."
        )

    lines.append("")
    lines.append(f"Please suggest {RECIPES_PER_REQUEST} distinct recipes that match this request.")
    lines.append(f"IMPORTANT: Provide the response strictly in the {language_name(language)} language.")
    lines.append("")
    lines.append(
        'If the request lists ingredients I have, compare them with each recipe and list any essential '
        'ingredients I am missing as "missingIngredients".'
    )
    lines.append("")
    lines.append("Return the result strictly as a JSON list of objects matching this structure:")
    lines.append(RECIPE_JSON_SCHEMA)
    lines.append("Return ONLY valid JSON, no markdown, no code blocks, no explanations.")
    return "\n".join(lines)


def build_ingredient_scan_prompt(language: str) -> str:
    return (
        "Analyze these images of a fridge, pantry, spices, and other food items. "
        "Identify all visible ingredients from all images. Combine them into a single deduplicated list.\n"
        f"IMPORTANT: Return the ingredient names strictly in the {language_name(language)} language.\n"
        "Return strictly a JSON array of strings containing the names of the ingredients found. "
        "Do not include Markdown formatting."
    )


def build_chef_tips_prompt(title: str, ingredient_names: List[str], language: str) -> str:
    ingredients_text = ", ".join(ingredient_names) if ingredient_names else "not listed"
    return (
        f'Give 3 short, practical professional chef tips for cooking "{title}".\n'
        f"Ingredients: {ingredients_text}.\n"
        f"IMPORTANT: Write the tips strictly in the {language_name(language)} language.\n"
        "Return strictly a JSON array of strings. Do not include Markdown formatting."
    )


def build_recipe_image_prompt(title: str) -> str:
    return (
        f"A professional, appetizing food photograph of {title}. "
        "Plated on a rustic table, soft natural light, shallow depth of field, no text."
    )


def create_chat_system_prompt(language: str) -> str:
    """Create system prompt for the chef chat assistant."""
    return (
        "You are CulinAI, a friendly and knowledgeable professional chef assistant. "
        "Help with recipes, cooking techniques, ingredient substitutions, meal planning "
        "and food safety. Keep answers concise and practical, use short lists for steps, "
        "and politely steer conversations that are not about food back to cooking.\n"
        f"IMPORTANT: Always reply in the {language_name(language)} language."
    )
