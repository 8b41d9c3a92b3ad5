"""Best-effort recovery of JSON objects from LLM responses.

Models asked for JSON routinely wrap it in Markdown fences, stop mid-string
when they hit an output limit, or forget closing brackets. `decode` tries, in
order:

1. a direct parse after stripping code fences;
2. a structural repair that closes a dangling string and any open
   objects/arrays, then parses again;
3. regex extraction of whatever named fields can still be located;
4. a synthetic fallback value, so callers always receive the expected shape.

`decode` is pure: the same text always yields the same `DecodeResult`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from docquery.errors import DecodeError

MAX_EXTRACTED_FRAGMENTS = 20
SELECTION_KEYS: tuple[str, ...] = ("selected_names", "selectedNames")

_FENCE_OPEN = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```\s*$")
_STRING = r'"((?:[^"\\]|\\.)*)"'
_NAME_FIELD = re.compile(r'"name"\s*:\s*' + _STRING)

FALLBACK_FRAGMENT_NAME = "Full document"


class DecodeShape(str, Enum):
    FRAGMENTS = "fragments"
    SELECTION = "selection"


class DecodeTier(str, Enum):
    DIRECT = "direct"
    REPAIRED = "repaired"
    EXTRACTED = "extracted"
    FALLBACK = "fallback"


@dataclass(slots=True, frozen=True)
class DecodeResult:
    data: dict[str, Any]
    tier: DecodeTier

    @property
    def degraded(self) -> bool:
        return self.tier is DecodeTier.FALLBACK


def decode(text: str, shape: DecodeShape) -> DecodeResult:
    """Decode `text`, falling back to a synthetic value instead of raising."""

    result = _decode_tiers(text, shape)
    if result is not None:
        return result
    return DecodeResult(data=_fallback(shape), tier=DecodeTier.FALLBACK)


def decode_strict(text: str, shape: DecodeShape) -> DecodeResult:
    """Like `decode`, but raise `DecodeError` when tiers 1-3 all fail."""

    result = _decode_tiers(text, shape)
    if result is None:
        raise DecodeError(
            f"Could not decode {shape.value} response ({len(text)} chars): {text[:120]!r}"
        )
    return result


def strip_code_fences(text: str) -> str:
    """Remove a Markdown fence wrapping the whole reply; fences inside values stay."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1), count=1).strip()


def repair_json(text: str) -> str | None:
    """Close a truncated JSON object so `json.loads` has a chance to accept it.

    Scans from the first ``{`` while tracking string state and the stack of
    open containers. Text after the outermost object closes is discarded.
    Returns None when there is no object to repair.
    """

    start = text.find("{")
    if start == -1:
        return None
    body = text[start:]

    closers: list[str] = []
    in_string = False
    escaped = False
    for position, char in enumerate(body):
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
            closers.append("}")
        elif char == "[":
            closers.append("]")
        elif char in "}]" and closers and closers[-1] == char:
            closers.pop()
            if not closers:
                return body[: position + 1]

    repaired = body
    if in_string:
        if escaped:
            repaired = repaired[:-1]
        repaired += '"'
    repaired = repaired.rstrip()
    if repaired.endswith(","):
        repaired = repaired[:-1]
    elif repaired.endswith(":"):
        repaired += " null"
    return repaired + "".join(reversed(closers))


def _decode_tiers(text: str, shape: DecodeShape) -> DecodeResult | None:
    cleaned = strip_code_fences(text)

    data = _load_object(cleaned, shape)
    if data is not None:
        return DecodeResult(data=data, tier=DecodeTier.DIRECT)

    repaired = repair_json(cleaned)
    if repaired is not None:
        data = _load_object(repaired, shape)
        if data is not None:
            return DecodeResult(data=data, tier=DecodeTier.REPAIRED)

    if shape is DecodeShape.FRAGMENTS:
        data = _extract_fragments(cleaned)
    else:
        data = _extract_selection(cleaned)
    if data is not None:
        return DecodeResult(data=data, tier=DecodeTier.EXTRACTED)
    return None


def _load_object(text: str, shape: DecodeShape) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, list) and shape is DecodeShape.SELECTION:
        return {SELECTION_KEYS[0]: value, "reasoning": ""}
    return None


def _unescape(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except json.JSONDecodeError:
        return raw


def _string_field(text: str, key: str) -> str | None:
    match = re.search(rf'"{re.escape(key)}"\s*:\s*' + _STRING, text)
    return _unescape(match.group(1)) if match else None


def _extract_fragments(text: str) -> dict[str, Any] | None:
    matches = list(_NAME_FIELD.finditer(text))[:MAX_EXTRACTED_FRAGMENTS]
    if not matches:
        return None

    fragments: list[dict[str, str]] = []
    for position, match in enumerate(matches):
        # Fields belonging to this name sit between it and the next name.
        scope_end = matches[position + 1].start() if position + 1 < len(matches) else len(text)
        scope = text[match.end() : scope_end]
        fragment = {"name": _unescape(match.group(1))}
        for key in ("content", "summary"):
            value = _string_field(scope, key)
            if value is not None:
                fragment[key] = value
        fragments.append(fragment)

    return {
        "fragments": fragments,
        "method": _string_field(text, "method") or "partial extraction from malformed response",
    }


def _extract_selection(text: str) -> dict[str, Any] | None:
    for key in SELECTION_KEYS:
        match = re.search(rf'"{key}"\s*:\s*\[(.*?)(?:\]|$)', text, re.DOTALL)
        if match is None:
            continue
        names = [_unescape(raw) for raw in re.findall(_STRING, match.group(1))]
        return {SELECTION_KEYS[0]: names, "reasoning": _string_field(text, "reasoning") or ""}
    return None


def _fallback(shape: DecodeShape) -> dict[str, Any]:
    if shape is DecodeShape.FRAGMENTS:
        return {
            "fragments": [
                {
                    "name": FALLBACK_FRAGMENT_NAME,
                    "content": "",
                    "summary": "The division response could not be decoded.",
                }
            ],
            "method": "fallback: undecodable division response",
        }
    return {
        SELECTION_KEYS[0]: [],
        "reasoning": "The selection response could not be decoded.",
    }
