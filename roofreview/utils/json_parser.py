import json
import re
from typing import Any, Dict, List, Optional, Union

from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the stripped text."""
    cleaned = (text or "").strip()
    match = _FENCE_RE.search(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def parse_json_safely(text: str, salvage: bool = True) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```) anywhere in the text
    - Leading/trailing whitespace and prose around the payload
      (when ``salvage`` is set, whichever of the first array or first
      object opens earlier in the text is tried first)

    Args:
        text: The text containing JSON
        salvage: Whether to search the text for an embedded array/object

    Returns:
        Parsed JSON value or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = strip_code_fence(text)

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        if not salvage:
            LOGGER.warning(f"Failed to parse JSON: {e}")
            return None
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting recovery...")

    candidates = [m for m in (_ARRAY_RE.search(cleaned_text), _OBJECT_RE.search(cleaned_text)) if m]
    for match in sorted(candidates, key=lambda m: m.start()):
        try:
            recovered = json.loads(match.group(0))
            LOGGER.info("Recovered JSON payload embedded in model output")
            return recovered
        except json.JSONDecodeError:
            continue

    LOGGER.error(f"Failed to parse JSON from model output: {cleaned_text[:200]}")
    return None
