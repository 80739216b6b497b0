"""
Best-effort JSON parsing of free-text model output.

Model replies are untrusted: they may wrap the JSON in prose or markdown
fences. ``extract_json_object`` finds the first balanced ``{...}`` span and
parses it, returning ``None`` instead of raising when nothing usable is found.
"""

import json
from typing import Any, Dict, Optional

from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)


def _balanced_end(text: str, start: int) -> int:
    """Index just past the object opened at ``start``, or -1 if it never closes"""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1

    return -1


def find_json_span(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON string literals (including escaped quotes) are
    ignored when counting depth. An opening brace that never closes, such
    as a stray one in prose, is skipped and the scan restarts at the next
    brace. Returns None if no balanced object exists.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            return text[start:end]
        start = text.find("{", start + 1)

    return None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse the first balanced JSON object in ``text``; None on any failure."""
    span = find_json_span(text)
    if span is None:
        logger.warning("[JSONExtract] No JSON object found in model response")
        return None

    try:
        parsed = json.loads(span)
    except json.JSONDecodeError as e:
        logger.warning(f"[JSONExtract] Failed to parse JSON span: {e}")
        logger.debug(f"[JSONExtract] Span: {span[:500]}")
        return None

    if not isinstance(parsed, dict):
        return None
    return parsed
