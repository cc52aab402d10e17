"""
Best-effort extraction of a JSON object from free-form model output.

Contract: locate the first ``{``, take the balanced brace-delimited substring
that starts there (string literals and escapes are honoured, so braces inside
strings do not count), and decode it. Any failure returns an explicit failure
variant instead of raising.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

NO_OBJECT = "no_object"
UNBALANCED = "unbalanced"
INVALID_JSON = "invalid_json"


@dataclass(frozen=True, slots=True)
class JsonExtraction:
    ok: bool
    value: dict[str, Any] | None = None
    error: str | None = None
    detail: str | None = None

    @classmethod
    def success(cls, value: dict[str, Any]) -> "JsonExtraction":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, detail: str | None = None) -> "JsonExtraction":
        return cls(ok=False, error=error, detail=detail)


def find_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of ``text``, or None."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_first_json_object(text: str | None) -> JsonExtraction:
    if not text or "{" not in text:
        return JsonExtraction.failure(NO_OBJECT)

    candidate = find_balanced_object(text)
    if candidate is None:
        return JsonExtraction.failure(UNBALANCED)

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as e:
        return JsonExtraction.failure(INVALID_JSON, detail=str(e))

    return JsonExtraction.success(value)
