"""Pull a JSON value out of a language-model reply."""

from __future__ import annotations

import json
import re

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_decoder = json.JSONDecoder()


def extract_json(text: str) -> dict | list:
    """Return the first JSON object or array found in ``text``.

    Replies are often wrapped in a fenced block or surrounded by prose, so
    the whole text is tried first, then the contents of each fenced block,
    then every position where an object or array opens. A reply cut off
    mid-object gets its open brackets closed as a last attempt.

    Raises:
        ValueError: if nothing parseable is found.
    """
    text = (text or "").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for block in _FENCE.findall(text):
        try:
            return json.loads(block.strip())
        except json.JSONDecodeError:
            continue

    for index, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = _decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value

    repaired = _close_truncated(text)
    if repaired is not None:
        return repaired
    raise ValueError(f"Could not extract JSON from text: {text[:200]}...")


def _close_truncated(text: str) -> dict | None:
    start = text.find("{")
    if start == -1:
        return None
    body = text[start:]
    # Cut back to the last complete string value before closing brackets.
    for candidate in (body, body[: body.rfind('"') + 1]):
        stack = []
        in_string = escaped = False
        for char in candidate:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = not in_string
            elif not in_string and char in "{[":
                stack.append("}" if char == "{" else "]")
            elif not in_string and char in "}]" and stack:
                stack.pop()
        if in_string or not stack:
            continue
        closed = candidate.rstrip().rstrip(",") + "".join(reversed(stack))
        try:
            value = json.loads(closed)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None
