"""
Best-effort extraction of JSON payloads from free model text.

Models wrap their JSON in prose, markdown fences or half-finished sentences.  The helpers here
never raise on such input: they return ``None`` when nothing usable is found and leave the retry
policy to the caller.

Two shapes are supported:

* a single JSON object, e.g. ``{"action": "call_tool", ...}``
* a JSON array wrapped in a tag, e.g. ``<json>[{...}]</json>``
"""

import json
import re
from typing import (
    Any,
    Dict,
    Iterator,
    List,
)

# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
_QUOTE = '"'
_ESCAPE = "\\"


def _find_matching_close(s: str, i: int, open_ch: str, close_ch: str) -> int | None:
    """Given ``s[i] == open_ch``, return the index just past its matching *close_ch*.

    Delimiters inside double-quoted strings are ignored.  Returns ``None`` when the text ends
    before the opening delimiter is balanced.
    """
    depth = 0
    in_string = False
    escaped = False
    while i < len(s):
        ch = s[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == _ESCAPE:
                escaped = True
            elif ch == _QUOTE:
                in_string = False
        elif ch == _QUOTE:
            in_string = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return None


def _balanced_candidates(s: str, open_ch: str, close_ch: str) -> Iterator[str]:
    """Yield every balanced ``open_ch ... close_ch`` substring, left to right by start index."""
    start = s.find(open_ch)
    while start >= 0:
        end = _find_matching_close(s, start, open_ch, close_ch)
        if end is not None:
            yield s[start:end]
        start = s.find(open_ch, start + 1)


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (ValueError, RecursionError):
        return None


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
def extract_json_object(text: str | None) -> Dict[str, Any] | None:
    """
    Return the first balanced ``{...}`` substring of *text* that parses as a JSON object.

    Anything before or after the object is ignored.  ``None`` means "not found".
    """
    if not text:
        return None
    for candidate in _balanced_candidates(text, "{", "}"):
        value = _loads(candidate)
        if isinstance(value, dict):
            return value
    return None


def _tag_pattern(tag: str) -> re.Pattern[str]:
    name = re.escape(tag)
    return re.compile(rf"<{name}>\s*(.*?)\s*</{name}>", re.DOTALL | re.IGNORECASE)


def extract_tagged_array(text: str | None, tag: str = "json") -> List[Any] | None:
    """
    Return the JSON array wrapped in ``<tag>...</tag>`` in *text*.

    When no tagged block holds an array, fall back to the widest ``[...]`` span of the whole
    text.  Only arrays are accepted: ``{}`` and other objects are treated as malformed output even
    though they are valid JSON.
    """
    if not text:
        return None

    for match in _tag_pattern(tag).finditer(text):
        value = _loads(match.group(1))
        if isinstance(value, list):
            return value

    open_idx = text.find("[")
    close_idx = text.rfind("]")
    if open_idx < 0 or close_idx <= open_idx:
        return None
    value = _loads(text[open_idx : close_idx + 1])
    if isinstance(value, list):
        return value
    return None


def is_empty_object(text: str | None) -> bool:
    """Return *True* for the degenerate ``{}`` reply some models give instead of an array."""
    if not text:
        return False
    return _loads(text.strip()) == {}
