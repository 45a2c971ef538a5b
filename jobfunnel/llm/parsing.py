"""
Forgiving JSON parsing for model replies.

Parsing is two pure stages.  ``try_strict_parse`` accepts only a reply
that is a JSON document from start to end.  ``try_salvage`` looks for the
first balanced ``{...}`` or ``[...]`` block inside surrounding prose or
code fences.  ``parse_json_response`` runs them in order, removes
``null`` members and raises :class:`MalformedResponseError` if neither
stage produced a value.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import MalformedResponseError

_PAIRS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None


def try_strict_parse(text: str) -> ParseResult:
    if text is None or not text.strip():
        return ParseResult(False, error="empty response")
    try:
        return ParseResult(True, json.loads(text))
    except json.JSONDecodeError as exc:
        return ParseResult(False, error=str(exc))


def _balanced_block(text: str, start: int) -> Optional[str]:
    """Return the balanced block opening at ``start`` or ``None``."""
    stack = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _PAIRS:
            stack.append(_PAIRS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start:i + 1]
    return None


def try_salvage(text: str) -> ParseResult:
    """Parse the first balanced object or array embedded in ``text``.

    Each opening bracket is tried in turn until one yields a block that
    decodes, so stray brackets in leading prose do not defeat salvage.
    """
    if not text:
        return ParseResult(False, error="empty response")
    for i, ch in enumerate(text):
        if ch not in _PAIRS:
            continue
        block = _balanced_block(text, i)
        if block is None:
            continue
        try:
            return ParseResult(True, json.loads(block))
        except json.JSONDecodeError:
            continue
    return ParseResult(False, error="no balanced JSON block found")


def drop_nulls(value: Any) -> Any:
    """Recursively remove ``None`` members from dicts and lists."""
    if isinstance(value, dict):
        return {k: drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [drop_nulls(v) for v in value if v is not None]
    return value


def parse_json_response(text: str) -> Any:
    result = try_strict_parse(text)
    if not result.ok:
        result = try_salvage(text)
    if not result.ok:
        raise MalformedResponseError(f"Model reply is not JSON: {result.error}", raw=text or "")
    return drop_nulls(result.value)
