"""Sanitize and parse JSON from LLM responses.

Models sometimes wrap their answer in Markdown code fences or return JSON
with unescaped control characters inside string values (literal newlines in
a ``content`` field are the usual culprit). This module handles both.
"""

import json
import re

_OPEN_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?")
_CLOSE_FENCE = re.compile(r"\n?\s*```\s*$")


def strip_code_fences(raw: str) -> str:
    """Remove a Markdown code fence wrapping the whole reply, if present."""
    text = raw.strip()
    if text.startswith("```"):
        text = _OPEN_FENCE.sub("", text, count=1)
        text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def parse_llm_json(raw: str) -> dict:
    """Parse JSON from an LLM response, handling control characters.

    Tries json.loads first. On failure, sanitizes unescaped control
    characters inside JSON string values and retries.

    Raises:
        json.JSONDecodeError: If JSON is still invalid after sanitization
        ValueError: If parsed result is not a dict
    """
    try:
        result = json.loads(raw)
    except json.JSONDecodeError:
        result = json.loads(_sanitize_json_string(raw))

    if not isinstance(result, dict):
        raise ValueError(f"Expected dict, got {type(result).__name__}")
    return result


def _sanitize_json_string(raw: str) -> str:
    """Replace unescaped control characters inside JSON string values.

    Walks through the raw string tracking whether we're inside a JSON
    string (between unescaped double quotes). Control characters found
    inside strings are replaced with their escaped equivalents.
    """
    escape_map = {
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
        "\b": "\\b",
        "\f": "\\f",
    }
    result = []
    in_string = False
    escaped = False

    for char in raw:
        if in_string and escaped:
            escaped = False
            result.append(char)
        elif char == "\\" and in_string:
            escaped = True
            result.append(char)
        elif char == '"':
            in_string = not in_string
            result.append(char)
        elif in_string and ord(char) < 0x20:
            result.append(escape_map.get(char, f"\\u{ord(char):04x}"))
        else:
            result.append(char)

    return "".join(result)
