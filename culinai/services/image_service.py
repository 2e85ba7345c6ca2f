"""Image processing service."""

import base64
import binascii
import io
import logging
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from culinai.config import Settings, settings as default_settings
from culinai.models.recipe import InlineImage
from culinai.utils.exceptions import ImageProcessingError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_MIME = {"image/jpeg", "image/png", "image/webp"}

# Already-small images are sent untouched
RESIZE_THRESHOLD_BYTES = 350_000
JPEG_QUALITY = 78


class ImageService:
    """Turns uploaded photos into inline base64 payloads for Gemini."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings

    def validate_image(self, file_content: bytes, filename: str) -> Tuple[bytes, str]:
        """
        Validate an uploaded image.

        Args:
            file_content: Image file bytes
            filename: Original filename (used in error messages)

        Returns:
            Tuple of (image_bytes, mime_type)

        Raises:
            ImageProcessingError: If image is invalid
        """
        if not file_content:
            raise ImageProcessingError(f"Image file {filename!r} is empty")

        max_size = self.settings.max_image_bytes
        if len(file_content) > max_size:
            raise ImageProcessingError(
                f"Image file {filename!r} too large (max {max_size / 1024 / 1024:.0f}MB)"
            )

        mime_type = self._detect_mime_type(file_content)
        if mime_type not in ALLOWED_IMAGE_MIME:
            raise ImageProcessingError(
                f"Unsupported image format for {filename!r}: {mime_type}. Supported: JPEG, PNG, WebP"
            )

        return file_content, mime_type

    def prepare_for_vision(self, image_bytes: bytes, mime_type: str) -> Tuple[bytes, str]:
        """
        Downscale + compress large images to reduce Gemini latency.

        If processing fails, returns the original bytes.
        """
        if len(image_bytes) < RESIZE_THRESHOLD_BYTES:
            return image_bytes, mime_type

        try:
            with Image.open(io.BytesIO(image_bytes)) as im:
                # Normalize to RGB; if alpha exists, composite onto white
                if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
                    bg = Image.new("RGBA", im.size, (255, 255, 255, 255))
                    im = Image.alpha_composite(bg, im.convert("RGBA")).convert("RGB")
                else:
                    im = im.convert("RGB")

                w, h = im.size
                max_dim = self.settings.vision_max_dim
                if max(w, h) > max_dim:
                    scale = max_dim / float(max(w, h))
                    im = im.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)

                out = io.BytesIO()
                im.save(out, format="JPEG", quality=JPEG_QUALITY, optimize=True)
                return out.getvalue(), "image/jpeg"

        except (OSError, ValueError) as e:
            logger.warning(f"Image resize/compress skipped: {e}")
            return image_bytes, mime_type

    def encode(self, file_content: bytes, filename: str) -> InlineImage:
        """Validate, shrink and base64-encode one uploaded file."""
        data, mime_type = self.validate_image(file_content, filename)
        data, mime_type = self.prepare_for_vision(data, mime_type)
        return InlineImage(mime_type=mime_type, data=base64.b64encode(data).decode("ascii"))

    def normalize_batch(
        self,
        files: Sequence[Tuple[bytes, str]],
        max_images: Optional[int] = None,
    ) -> List[InlineImage]:
        """
        Encode a batch of uploads for one ingredient scan.

        Args:
            files: (bytes, filename) pairs in upload order
            max_images: Per-scan cap (defaults to settings.max_scan_images)

        Raises:
            ValidationError: If the batch is empty or over the cap
            ImageProcessingError: If any file is not a usable image
        """
        limit = max_images if max_images is not None else self.settings.max_scan_images
        if not files:
            raise ValidationError("At least one image is required")
        if len(files) > limit:
            raise ValidationError(f"You can scan at most {limit} images at a time (got {len(files)})")

        images = [self.encode(content, filename) for content, filename in files]
        logger.info(f"Prepared {len(images)} images for ingredient scan")
        return images

    @staticmethod
    def from_data_url(value: str) -> InlineImage:
        """
        Parse ``data:<mime>;base64,<payload>`` (or a bare base64 payload).

        Raises:
            ImageProcessingError: If the declared type is unsupported or the payload is not valid base64
        """
        if not isinstance(value, str) or not value.strip():
            raise ImageProcessingError("Image data is empty")

        mime_type = "image/jpeg"
        payload = value.strip()
        if payload.startswith("data:"):
            header, _, payload = payload.partition(",")
            declared = header[len("data:"):].split(";", 1)[0]
            if declared:
                mime_type = declared.lower()

        return ImageService.check_inline(InlineImage(mime_type=mime_type, data=payload))

    @staticmethod
    def check_inline(image: InlineImage) -> InlineImage:
        """
        Check an already-encoded image before it is sent anywhere.

        Raises:
            ImageProcessingError: If the MIME type is unsupported or the payload is not valid base64
        """
        if image.mime_type not in ALLOWED_IMAGE_MIME:
            raise ImageProcessingError(
                f"Unsupported image format: {image.mime_type}. Supported: JPEG, PNG, WebP"
            )
        try:
            base64.b64decode(image.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageProcessingError(f"Image data is not valid base64: {e}") from e
        return image

    @staticmethod
    def _detect_mime_type(file_content: bytes) -> str:
        """
        Detect MIME type from file content (magic bytes).

        Args:
            file_content: File bytes

        Returns:
            MIME type string
        """
        if file_content.startswith(b"\xff\xd8\xff"):
            return "image/jpeg"
        elif file_content.startswith(b"\x89PNG\r\n\x1a\n"):
            return "image/png"
        elif file_content.startswith(b"RIFF") and b"WEBP" in file_content[:12]:
            return "image/webp"

        try:
            with Image.open(io.BytesIO(file_content)) as image:
                return f"image/{image.format.lower()}" if image.format else "application/octet-stream"
        except (UnidentifiedImageError, OSError):
            return "application/octet-stream"
