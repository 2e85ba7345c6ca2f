"""
Gemini access with ordered model fallback.

Key design:
- Candidates are tried strictly one after another; the first non-empty answer wins.
- A candidate fails on exception, timeout or empty text. Retry granularity is
  "switch model", never "same model again".
- Only when every candidate has failed does the caller see a GeminiError.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from google import genai
from google.genai import types

from culinai.config import Settings, settings as default_settings
from culinai.models.recipe import ChatMessage, InlineImage
from culinai.services.gemini_utils import get_inline_image, get_response_text, log_empty_response
from culinai.utils.exceptions import GeminiError, ImageProcessingError

logger = logging.getLogger(__name__)

ImageInput = Union[InlineImage, str]


class ModelGateway:
    """Sends requests to Gemini, falling back through candidate models."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
        models: Optional[Sequence[str]] = None,
    ) -> None:
        self.settings = settings or default_settings
        self._client = client
        self.models: List[str] = list(models) if models is not None else self.settings.gemini_models_list
        if not self.models:
            raise ValueError("At least one Gemini model must be configured")

    @property
    def client(self) -> genai.Client:
        """Get or create Gemini client (lazy initialization)."""
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise GeminiError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.settings.gemini_api_key)
        return self._client

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------

    async def invoke(
        self,
        prompt: str,
        images: Optional[Sequence[ImageInput]] = None,
        system_instruction: Optional[str] = None,
        expect_json: bool = False,
        history: Optional[Sequence[ChatMessage]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Send one request and return the first non-empty text answer.

        Args:
            prompt: Natural-language instruction (sent after any images)
            images: Inline base64 images for vision requests
            system_instruction: Persona / system preamble
            expect_json: Ask for application/json output
            history: Prior conversation turns, oldest first
            response_schema: Optional JSON schema for structured output

        Raises:
            ImageProcessingError: If an image payload is not valid base64 (before any request)
            GeminiError: If every candidate model failed
        """
        contents = self._build_contents(prompt, images or [], history or [])
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.settings.gemini_temperature,
            response_mime_type="application/json" if expect_json else None,
            response_schema=response_schema if expect_json else None,
        )

        last_err: Optional[str] = None
        for attempt, model in enumerate(self.models, start=1):
            try:
                response = await self._call_gemini(model=model, contents=contents, config=config)
            except Exception as e:
                last_err = self._describe_failure(e)
                logger.warning(
                    f"Gemini candidate {model} failed: {last_err}",
                    extra={"model": model, "attempt": attempt, "candidates": len(self.models)},
                )
                continue

            text = get_response_text(response)
            if text.strip():
                logger.debug(f"Gemini answered with {model}", extra={"model": model, "attempt": attempt})
                return text.strip()

            last_err = f"{model} returned an empty response"
            log_empty_response(f"Gemini candidate {model}", response)

        raise GeminiError(f"No Gemini model could answer the request. Last error: {last_err}")

    async def generate_image(self, prompt: str, image_size: str = "1K") -> Optional[str]:
        """
        Generate an image with the image model.

        Returns:
            data URL of the first image, or None if the model returned none

        Raises:
            GeminiError: If the image model call failed
        """
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio="4:3", image_size=image_size),
        )
        model = self.settings.gemini_image_model
        try:
            response = await self._call_gemini(model=model, contents=prompt, config=config)
        except Exception as e:
            logger.error(f"Image generation with {model} failed: {e}", exc_info=True)
            raise GeminiError(f"Failed to generate image: {self._describe_failure(e)}") from e

        image = get_inline_image(response)
        if image is None:
            log_empty_response(f"Image model {model}", response)
        return image

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------

    async def _call_gemini(self, *, model: str, contents: Any, config: types.GenerateContentConfig) -> Any:
        """Single Gemini call, bounded by the per-candidate timeout."""
        client = self.client

        def _sync_call() -> Any:
            return client.models.generate_content(model=model, contents=contents, config=config)

        return await asyncio.wait_for(asyncio.to_thread(_sync_call), timeout=self.settings.gemini_timeout)

    def _build_contents(
        self,
        prompt: str,
        images: Sequence[ImageInput],
        history: Sequence[ChatMessage],
    ) -> List[types.Content]:
        contents: List[types.Content] = []
        for message in history:
            contents.append(
                types.Content(role=message.role, parts=[types.Part.from_text(text=message.text)])
            )

        parts: List[types.Part] = []
        for image in images:
            if isinstance(image, str):
                image = InlineImage(data=image)
            parts.append(types.Part.from_bytes(data=self._decode_image(image), mime_type=image.mime_type))
        parts.append(types.Part.from_text(text=prompt))
        contents.append(types.Content(role="user", parts=parts))
        return contents

    @staticmethod
    def _decode_image(image: InlineImage) -> bytes:
        try:
            return base64.b64decode(image.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageProcessingError(f"Image data is not valid base64: {e}") from e

    @staticmethod
    def _describe_failure(error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return "request timed out"
        return str(error) or type(error).__name__
