# parsing.py
# JSON extraction from model output.
#
# Models wrap JSON in markdown fences and prose. The whole body is tried
# first; failing that, the first balanced {...} or [...] span is cut out by
# a bracket-stack scan that respects string literals and escapes.

import json
from typing import Any

from ollama_agent.errors import InvalidJSONError

_CLOSERS = {"{": "}", "[": "]"}


def _preview(text: str, start: int = 0) -> str:
    return text[start : start + 200]


def extract_json(text: str | None) -> str:
    """Return the JSON substring of *text*. Raises InvalidJSONError if none."""
    if not text or not text.strip():
        raise InvalidJSONError("Empty response body")

    stripped = text.strip()
    try:
        json.loads(stripped)
        return stripped
    except json.JSONDecodeError:
        pass

    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise InvalidJSONError(f"No JSON found in response. Response: {_preview(text)}...")
    start = min(starts)

    stack: list[str] = []
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                raise InvalidJSONError(f"Malformed JSON in response. Response: {_preview(text, start)}...")
            if not stack:
                return text[start : i + 1]

    raise InvalidJSONError(f"Incomplete JSON in response. Response: {_preview(text, start)}...")


def parse_json(text: str | None) -> Any:
    """Extract and decode the JSON value embedded in *text*."""
    fragment = extract_json(text)
    try:
        return json.loads(fragment)
    except json.JSONDecodeError as exc:
        raise InvalidJSONError(
            f"Failed to parse extracted JSON: {exc}. Extracted: {fragment[:200]}..."
        ) from exc
