"""Shared helpers for reading google-genai responses."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


def _first_candidate(response: Any) -> Optional[Any]:
    candidates = getattr(response, "candidates", None) or []
    return candidates[0] if candidates else None


def _iter_parts(response: Any) -> Iterator[Any]:
    """Parts of response.parts, then of the first candidate's content."""
    yield from getattr(response, "parts", None) or []
    content = getattr(_first_candidate(response), "content", None)
    yield from getattr(content, "parts", None) or []


def get_response_text(response: Any) -> str:
    """
    Text of a response, or "" when it carries none.

    ``response.text`` is preferred; image-only or blocked responses leave it
    empty, in which case the text parts are searched directly.
    """
    try:
        text = getattr(response, "text", None)
    except ValueError:
        text = None
    if isinstance(text, str) and text.strip():
        return text

    for part in _iter_parts(response):
        part_text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
        if isinstance(part_text, str) and part_text.strip():
            return part_text

    return ""


def get_inline_image(response: Any) -> Optional[str]:
    """Return the first inline image of a response as a data URL."""
    for part in _iter_parts(response):
        inline = getattr(part, "inline_data", None)
        data = getattr(inline, "data", None)
        if not data:
            continue
        mime_type = getattr(inline, "mime_type", None) or "image/png"
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{data}"
    return None


def response_debug_summary(response: Any) -> Dict[str, Any]:
    """Finish reason, safety and block info for a response that had no usable output."""
    summary: Dict[str, Any] = {"candidates": len(getattr(response, "candidates", None) or [])}

    candidate = _first_candidate(response)
    if candidate is not None:
        summary["finish_reason"] = str(getattr(candidate, "finish_reason", None))
        summary["safety_ratings"] = str(getattr(candidate, "safety_ratings", None))
        summary["parts"] = len(getattr(getattr(candidate, "content", None), "parts", None) or [])

    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None:
        summary["block_reason"] = str(getattr(feedback, "block_reason", None))

    return summary


def log_empty_response(prefix: str, response: Any) -> None:
    logger.warning(f"{prefix} returned no usable output", extra={"summary": response_debug_summary(response)})
