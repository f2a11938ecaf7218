"""Defensive parsing of JSON-shaped model output.

Handles plain JSON, markdown code blocks, and JSON with surrounding text.
A missing or unparsable payload is an error, never a silent default.
"""

from __future__ import annotations

import json
import re
from typing import Any

_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


def parse_json_payload(raw: str | None) -> Any:
    """Parse a JSON object or array out of raw model output.

    Raises:
        ValueError: If the input is empty or contains no valid JSON.
    """
    if not raw or not raw.strip():
        raise ValueError("Empty model output")

    text = raw.strip()
    candidates = [text]

    block = _CODE_BLOCK.search(text)
    if block:
        candidates.append(block.group(1).strip())

    # Outermost structure first: whichever bracket opens earliest.
    matches = [m for m in (_OBJECT.search(text), _ARRAY.search(text)) if m]
    candidates.extend(m.group(0) for m in sorted(matches, key=lambda m: m.start()))

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, (dict, list)):
            return result

    raise ValueError(f"No valid JSON found in model output: {text[:200]}")


def parse_json_object(raw: str | None) -> dict[str, Any]:
    """Like parse_json_payload, but the payload must be an object."""
    result = parse_json_payload(raw)
    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
    return result
