import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

JSON_FENCE_PATTERNS = (
    re.compile(r"```json\s*\n([\s\S]*?)\n\s*```", re.IGNORECASE),
    re.compile(r"```\s*\n([\s\S]*?)\n\s*```"),
)


def _find_json_span(text: str) -> Optional[str]:
    """Slice from the first opening brace or bracket to the last matching closer."""
    first_brace = text.find("{")
    first_bracket = text.find("[")

    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        start, end = first_brace, text.rfind("}")
    elif first_bracket != -1:
        start, end = first_bracket, text.rfind("]")
    else:
        return None

    if end < start:
        return None
    return text[start : end + 1]


def extract_json(text: Optional[str]) -> Any:
    """
    Best-effort extraction of a JSON payload from free-form model output.

    Tries, in order:
    1. A fenced ```json (or bare ```) code block
    2. The span from the first '{' or '[' to the last '}' or ']'
    3. The whole text

    Args:
        text: Raw model output

    Returns:
        The decoded JSON value, or None when nothing parseable was found
    """
    if not text:
        return None
    try:
        for pattern in JSON_FENCE_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return json.loads(match.group(1))

        span = _find_json_span(text)
        if span is not None:
            return json.loads(span)

        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"JSON extraction failed: {e}")
        return None
