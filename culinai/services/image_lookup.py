"""Illustrative images for recipes.

``ImageLookup`` is the port the synthesizer depends on: keyword in, URL or None
out, never raising. ``ThumbnailImageLookup`` is the default adapter;
``RecipeImageGenerator`` produces an AI photo on explicit request.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import httpx

from culinai.config import Settings, settings as default_settings
from culinai.services.model_gateway import ModelGateway
from culinai.services.prompt_service import build_recipe_image_prompt
from culinai.utils.exceptions import GeminiError, ValidationError

logger = logging.getLogger(__name__)

ImageLookup = Callable[[str], Awaitable[Optional[str]]]

IMAGE_SIZES = ("1K", "2K", "4K")


class ThumbnailImageLookup:
    """Looks up a dish thumbnail from a public meal database."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or default_settings
        self._transport = transport

    async def __call__(self, keyword: str) -> Optional[str]:
        keyword = (keyword or "").strip()
        if not keyword:
            return None

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.image_lookup_timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(self.settings.image_lookup_url, params={"s": keyword})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Image lookup for {keyword!r} failed: {e}")
            return None

        meals = payload.get("meals") if isinstance(payload, dict) else None
        for meal in meals or []:
            thumb = meal.get("strMealThumb") if isinstance(meal, dict) else None
            if isinstance(thumb, str) and thumb.startswith("http"):
                return thumb

        logger.debug(f"No thumbnail found for {keyword!r}")
        return None


class RecipeImageGenerator:
    """Generates a photo of a dish with the Gemini image model."""

    def __init__(self, gateway: ModelGateway) -> None:
        self.gateway = gateway

    async def generate(self, title: str, image_size: str = "1K") -> Optional[str]:
        """
        Returns:
            data URL of the generated image, or None

        Raises:
            ValidationError: If image_size is not 1K, 2K or 4K
            GeminiError: If the image model call failed
        """
        if image_size not in IMAGE_SIZES:
            raise ValidationError(f"Image size must be one of {', '.join(IMAGE_SIZES)}")
        if not title or not title.strip():
            raise ValidationError("Recipe title is required to generate an image")

        logger.info(f"Generating {image_size} image for {title!r}")
        try:
            return await self.gateway.generate_image(build_recipe_image_prompt(title.strip()), image_size)
        except GeminiError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error generating image: {e}", exc_info=True)
            raise GeminiError(f"Failed to generate image: {e}") from e
