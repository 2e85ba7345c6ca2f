"""Recover JSON from raw Gemini text output.

Model output is untrusted: it may arrive wrapped in markdown fences or cut off
before the closing bracket of an array. Decoding never raises; anything that
cannot be recovered becomes an empty list.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` wrappers and surrounding whitespace."""
    t = (text or "").strip()
    t = _FENCE_OPEN.sub("", t)
    t = _FENCE_CLOSE.sub("", t)
    return t.strip()


def repair_truncated_array(text: str) -> str:
    """Close an array the model started but never finished.

    Only a missing trailing ``]`` is patched; nested brackets or an object cut
    in half are left alone and will fail to parse.
    """
    if text.startswith("[") and not text.endswith("]"):
        # "[1, 2," would become invalid with a bare bracket
        return text.rstrip().rstrip(",") + "]"
    return text


def decode_model_json(raw: Optional[str]) -> Any:
    """Parse model output as JSON, returning ``[]`` when it cannot be recovered."""
    if not raw:
        return []

    cleaned = repair_truncated_array(strip_code_fences(raw))

    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(
            f"Failed to decode model JSON: {e}",
            extra={"preview": cleaned[:200], "length": len(cleaned)},
        )
        return []
