"""
Recipe suggestions from a craving or from a list of ingredients.

Both entry points share one prompt builder. Every decoded record goes through
coerce_recipe before it becomes a Recipe.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Sequence

from culinai.models.recipe import DietaryFilters, Recipe
from culinai.services.image_lookup import ImageLookup
from culinai.services.model_gateway import ModelGateway
from culinai.services.prompt_service import build_chef_tips_prompt, build_recipe_prompt
from culinai.services.response_decoder import decode_model_json
from culinai.utils.exceptions import GeminiError
from culinai.utils.recipe_normalization import coerce_recipes
from culinai.utils.validators import validate_ingredients_list

logger = logging.getLogger(__name__)

KEYWORD_TITLE_WORDS = 2


class RecipeSynthesizer:
    """Builds the recipe prompt, calls Gemini and shapes the answer into Recipes."""

    def __init__(self, gateway: ModelGateway, lookup_image: Optional[ImageLookup] = None) -> None:
        self.gateway = gateway
        self.lookup_image = lookup_image

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    async def synthesize(
        self,
        query: str,
        filters: Optional[DietaryFilters] = None,
        language: str = "en",
    ) -> List[Recipe]:
        """
        Suggest recipes for a free-text request.

        Returns:
            Recipes in model order; empty when the answer could not be decoded

        Raises:
            GeminiError: If no model could answer (system unavailable)
        """
        filters = filters or DietaryFilters()
        prompt = build_recipe_prompt(query, filters, language)

        logger.info(
            "Synthesizing recipes",
            extra={
                "query": query[:200],
                "language": language,
                "active_filters": filters.active_flags(),
                "cuisines": filters.cuisine,
            },
        )

        raw = await self.gateway.invoke(prompt, expect_json=True)
        recipes = coerce_recipes(self._recipe_records(decode_model_json(raw)))

        if not recipes:
            logger.warning("Model answer contained no usable recipes")
            return []

        if self.lookup_image is not None:
            await self._resolve_images(recipes)

        logger.info(f"Synthesized {len(recipes)} recipes")
        return recipes

    async def synthesize_from_ingredients(
        self,
        ingredient_names: Sequence[str],
        filters: Optional[DietaryFilters] = None,
        language: str = "en",
    ) -> List[Recipe]:
        """
        Suggest recipes for the ingredients the user has.

        Raises:
            ValidationError: If no usable ingredient name is given
        """
        names = validate_ingredients_list(list(ingredient_names))
        return await self.synthesize(", ".join(names), filters, language)

    async def get_chef_tips(
        self,
        title: str,
        ingredient_names: Sequence[str],
        language: str = "en",
    ) -> List[str]:
        """Short cooking tips for a recipe; empty on any failure."""
        prompt = build_chef_tips_prompt(title, list(ingredient_names), language)
        try:
            raw = await self.gateway.invoke(prompt, expect_json=True)
        except GeminiError as e:
            logger.error(f"Chef tips failed for {title!r}: {e}")
            return []

        decoded = decode_model_json(raw)
        if not isinstance(decoded, list):
            return []
        return [str(tip).strip() for tip in decoded if isinstance(tip, str) and tip.strip()]

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    @staticmethod
    def _recipe_records(decoded: Any) -> List[Any]:
        """Accept a bare list or a single-key wrapper such as {"recipes": [...]}."""
        if isinstance(decoded, list):
            return decoded
        if isinstance(decoded, dict):
            if "title" in decoded:
                return [decoded]
            for value in decoded.values():
                if isinstance(value, list):
                    logger.info("Unwrapping recipe list from JSON object")
                    return value
        return []

    async def _resolve_images(self, recipes: List[Recipe]) -> None:
        pending = [r for r in recipes if not r.imageUrl]
        if not pending:
            return
        urls = await asyncio.gather(*(self._lookup(image_keyword(r)) for r in pending))
        for recipe, url in zip(pending, urls):
            if url:
                recipe.imageUrl = url

    async def _lookup(self, keyword: str) -> Optional[str]:
        if not keyword:
            return None
        try:
            return await self.lookup_image(keyword)
        except Exception as e:
            # lookup ports are best-effort
            logger.warning(f"Image lookup for {keyword!r} raised: {e}")
            return None


def image_keyword(recipe: Recipe) -> str:
    """Search keyword: the model's hint, else the first words of the title."""
    if recipe.imageKeyword:
        return recipe.imageKeyword.strip()
    return " ".join(recipe.title.split()[:KEYWORD_TITLE_WORDS])
