"""Robust JSON extraction from LLM output.

Models often wrap JSON in prose or markdown fences, or emit near-JSON with
trailing commas and single quotes. Oracle answers are objects for most
decision points and arrays for task decomposition, so both are handled.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterator, Union

logger = logging.getLogger(__name__)

JSONValue = Union[dict[str, Any], list[Any]]
Accept = Callable[[JSONValue], bool]

_OPENERS = {"{": "}", "[": "]"}

# Bracketed candidates tried before giving up.
MAX_CANDIDATES = 20


def _any(data: JSONValue) -> bool:
    return True


def _is_object(data: JSONValue) -> bool:
    return isinstance(data, dict)


def _is_array(data: JSONValue) -> bool:
    return isinstance(data, list)


def extract_json(text: str, accept: Accept = _any) -> JSONValue:
    """Extract the first JSON object or array from LLM text that ``accept`` allows.

    1. Parse the raw text.
    2. Strip markdown code fences and retry.
    3. Walk each balanced { ... } or [ ... ] in order of appearance, parsing
       it as-is and then with common repairs (trailing commas, single quotes).
    4. Raise ValueError if no candidate parses to an accepted value.
    """
    text = text.strip()
    rejected: list[str] = []

    def usable(result: JSONValue | None) -> bool:
        if result is None:
            return False
        if accept(result):
            return True
        rejected.append(type(result).__name__)
        return False

    result = _try_parse(text)
    if usable(result):
        return result

    stripped = _strip_code_fences(text)
    if stripped != text:
        result = _try_parse(stripped)
        if usable(result):
            return result

    for bracketed in _bracketed_candidates(stripped):
        result = _try_parse(bracketed)
        if result is None:
            result = _try_parse(_repair_json(bracketed))
        if usable(result):
            return result

    preview = text[:200].replace("\n", "\\n")
    if rejected:
        raise ValueError(
            f"No acceptable JSON in LLM output (found {', '.join(dict.fromkeys(rejected))}): {preview}..."
        )
    raise ValueError(f"Could not extract valid JSON from LLM output: {preview}...")


def extract_json_object(text: str) -> dict[str, Any]:
    return extract_json(text, _is_object)


def extract_json_array(text: str, key: str = "") -> list[Any]:
    """Extract a JSON array; an object wrapping the array under ``key`` also counts."""
    if key:
        try:
            wrapped = extract_json(
                text, lambda d: isinstance(d, dict) and isinstance(d.get(key), list)
            )
            return wrapped[key]
        except ValueError:
            pass
    return extract_json(text, _is_array)


def _try_parse(text: str) -> JSONValue | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(data, (dict, list)):
        return data
    return None


def _strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` wrappers, wherever the block starts."""
    match = re.search(r"```[a-zA-Z]*\s*\n(.*?)(?:```|$)", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text


def _bracketed_candidates(text: str) -> Iterator[str]:
    """Yield balanced JSON containers in order of their opening bracket."""
    yielded = 0
    for start, ch in enumerate(text):
        if ch not in _OPENERS:
            continue
        if yielded >= MAX_CANDIDATES:
            logger.debug(f"Stopped after {MAX_CANDIDATES} JSON candidates")
            return
        yielded += 1
        yield _extract_bracketed(text, start)


def _extract_bracketed(text: str, start: int) -> str:
    """Return the balanced container opening at ``start``, tracking strings and escapes."""
    stack: list[str] = []
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return text[start : i + 1]
    # Unbalanced: hand back the tail and let the repair pass try
    return text[start:]


def _repair_json(text: str) -> str:
    """Apply common fixes for malformed JSON from LLMs."""
    text = re.sub(r",\s*([}\]])", r"\1", text)

    # Only swap quotes when no double-quoted strings exist at all
    if '"' not in text and "'" in text:
        text = text.replace("'", '"')

    def _escape_newlines_in_strings(m: re.Match) -> str:
        inner = m.group(0)[1:-1]
        inner = inner.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
        return f'"{inner}"'

    return re.sub(r'"(?:[^"\\]|\\.)*"', _escape_newlines_in_strings, text, flags=re.DOTALL)
