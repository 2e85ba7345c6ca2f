"""Ingredient recognition from fridge / pantry photos."""

from __future__ import annotations

import logging
from typing import List, Sequence

from culinai.services.model_gateway import ImageInput, ModelGateway
from culinai.services.prompt_service import INGREDIENT_LIST_SCHEMA, build_ingredient_scan_prompt
from culinai.services.response_decoder import decode_model_json
from culinai.utils.exceptions import GeminiError, ImageProcessingError

logger = logging.getLogger(__name__)


class IngredientExtractor:
    """Asks a vision model which ingredients are visible across a batch of photos."""

    def __init__(self, gateway: ModelGateway) -> None:
        self.gateway = gateway

    async def extract(self, images: Sequence[ImageInput], language: str = "en") -> List[str]:
        """
        Identify ingredients in already-capped image batch.

        Returns:
            Deduplicated ingredient names in the target language; empty on any failure
        """
        if not images:
            return []

        prompt = build_ingredient_scan_prompt(language)
        logger.info(f"Scanning {len(images)} images for ingredients (language={language})")

        try:
            raw = await self.gateway.invoke(
                prompt,
                images=images,
                expect_json=True,
                response_schema=INGREDIENT_LIST_SCHEMA,
            )
        except (GeminiError, ImageProcessingError) as e:
            logger.error(f"Ingredient scan failed: {e}")
            return []

        decoded = decode_model_json(raw)
        if not isinstance(decoded, list):
            logger.warning(f"Ingredient scan returned {type(decoded).__name__}, expected a list")
            return []

        return dedupe_names(decoded)


def dedupe_names(values: Sequence[object]) -> List[str]:
    """Keep the first spelling of each name (case-insensitive), in order."""
    seen = set()
    names: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        name = value.strip()
        key = name.lower()
        if not name or key in seen:
            continue
        seen.add(key)
        names.append(name)
    return names
