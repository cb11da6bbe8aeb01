"""
Tolerant JSON extraction for oracle output.

The model answers in free text that usually, but not always, contains a
JSON document: wrapped in Markdown fences, preceded by a chatty sentence,
or followed by a disclaimer. We cut the outermost JSON-looking span and
parse it strictly.
"""

import json
import logging
import re
from typing import Any, Optional

from sportsim.llm.errors import MalformedResponse

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 200

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _candidate_span(text: str) -> Optional[str]:
    """Slice from the first '{' or '[' to the last '}' or ']'."""
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end < start:
        return None
    return text[start:end + 1]


def parse_json_response(text: str) -> Any:
    """
    Parse a JSON value out of raw oracle text.

    Args:
        text: Raw text from the model.

    Returns:
        Decoded JSON value (usually a dict or list).

    Raises:
        MalformedResponse: If neither the extracted span nor the untouched
            text is valid JSON.
    """
    if not text or not text.strip():
        raise MalformedResponse("Empty response from oracle", snippet="")

    candidate = _candidate_span(_strip_fences(text))
    if candidate is not None:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.warning(f"[PARSER] Extracted span is not valid JSON: {e}")

    # Last resort: maybe the untouched text was valid all along
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    snippet = text[:SNIPPET_CHARS]
    logger.warning(f"[PARSER] Unparseable oracle response (len={len(text)}): {snippet!r}")
    raise MalformedResponse("Oracle response is not valid JSON", snippet=snippet)
