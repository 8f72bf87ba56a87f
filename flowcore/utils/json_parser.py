"""
Lenient JSON parsing for model responses.

Handles common issues with LLM-generated JSON:
- Markdown code blocks (```json ... ```)
- JSON embedded in surrounding prose
- Trailing commas
- Comments

Parsing is best-effort: callers get a flag telling them whether the text
was JSON and keep the raw string when it was not.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_PATTERNS = (
    re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE),
    re.compile(r"```\s*([\s\S]*?)\s*```"),
)
_WHOLE_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)
_BOUNDARY_PATTERNS = (
    re.compile(r"(\{[\s\S]*\})"),
    re.compile(r"(\[[\s\S]*\])"),
)


def extract_json_from_text(text: str) -> str:
    """
    Extract JSON from text that may contain markdown or other content.

    Handles:
    - ```json ... ``` code blocks
    - ``` ... ``` code blocks
    - JSON objects/arrays embedded in other text

    Args:
        text: Raw text that may contain JSON

    Returns:
        Extracted JSON string, or the stripped text when nothing was found
    """
    text = text.strip()

    for pattern in _FENCE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()

    for pattern in _BOUNDARY_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)

    return text


def clean_json_string(text: str) -> str:
    """
    Remove comments and trailing commas from JSON-like text.

    Single quotes are left alone; converting them breaks strings that
    contain apostrophes.
    """
    text = re.sub(r"/\*[\s\S]*?\*/", "", text)
    text = re.sub(r"(?m)^\s*//[^\n]*", "", text)
    text = re.sub(r",\s*([\}\]])", r"\1", text)
    return text.strip()


def try_parse_json(text: str, lenient: bool = True) -> tuple[bool, Any]:
    """
    Parse JSON with fallback strategies.

    Tries in order:
    1. Direct parse
    2. Extract from markdown fences or surrounding prose, then parse
    3. Clean comments and trailing commas, then parse

    With ``lenient=False`` only the direct parse and a reply that is a
    single fenced block are accepted; JSON inside prose stays text.

    Args:
        text: Text to parse
        lenient: Whether to dig JSON out of prose and repair it

    Returns:
        ``(True, value)`` on success, ``(False, text)`` otherwise
    """
    if not isinstance(text, str) or not text.strip():
        return False, text

    try:
        return True, json.loads(text)
    except json.JSONDecodeError:
        pass

    if not lenient:
        match = _WHOLE_FENCE.match(text.strip())
        if match:
            try:
                return True, json.loads(match.group(1))
            except json.JSONDecodeError:
                pass
        logger.debug(f"[json_parser] Response is not strict JSON: {text[:100]!r}")
        return False, text

    extracted = extract_json_from_text(text)
    if extracted != text:
        try:
            return True, json.loads(extracted)
        except json.JSONDecodeError:
            pass

    cleaned = clean_json_string(extracted)
    if cleaned != extracted:
        try:
            return True, json.loads(cleaned)
        except json.JSONDecodeError:
            pass

    logger.debug(f"[json_parser] Response is not JSON: {text[:100]!r}")
    return False, text


__all__ = [
    "clean_json_string",
    "extract_json_from_text",
    "try_parse_json",
]
