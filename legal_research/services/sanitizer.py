"""
Helpers for coping with unreliable model output.

Models wrap JSON in markdown fences and surround it with commentary, and
prompts built from search results can outgrow a model's context window.
"""

import json
import re
from typing import Any, Dict

from .error_handling import OutputParseError

TRUNCATION_MARKER = "\n\n[...truncated for model limits...]"
TRUNCATION_HEADROOM = 500

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def sanitize(raw_text: str) -> str:
    """Narrow model text to the substring a JSON parser should see.

    Removes markdown code fences, then keeps everything from the first
    ``{`` to the last ``}``. Text without a brace pair is returned stripped
    and otherwise unchanged; validation is left to the caller. Text that is
    empty once fences and whitespace are gone becomes ``"{}"``.
    """
    clean = _FENCE_PATTERN.sub("", raw_text or "").strip()
    if not clean:
        return "{}"

    first = clean.find("{")
    last = clean.rfind("}")
    if first != -1 and last > first:
        clean = clean[first:last + 1]
    return clean


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    """Sanitize and decode model output that must be a JSON object."""
    clean = sanitize(raw_text)
    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"Invalid JSON in model output: {e}", raw_text) from e
    if not isinstance(parsed, dict):
        raise OutputParseError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_text
        )
    return parsed


def clamp_text(text: str, max_chars: int = 20000) -> str:
    """Truncate text to at most ``max_chars``, keeping the prefix.

    The dropped suffix is replaced by TRUNCATION_MARKER. Limits shorter
    than the marker itself are not supported.
    """
    if not text or len(text) <= max_chars:
        return text

    reserve = max(min(TRUNCATION_HEADROOM, max_chars // 2), len(TRUNCATION_MARKER))
    return text[:max(0, max_chars - reserve)] + TRUNCATION_MARKER
