"""Recover a JSON object from a generation provider's text reply.

Models asked for JSON still wrap it in Markdown fences or surround it with
prose. The ordered strategies run over the raw reply, then over the reply
with its fences stripped; the first one that yields an object or array wins.
"""

from __future__ import annotations

import json
import re
from typing import Callable, Optional, Sequence, Union

from studybridge.errors import EmptyProviderResponse, ParseFailure

EXCERPT_LIMIT = 200

_FENCE_RE = re.compile(r"```[\w+-]*")

Structured = Union[dict, list]
Strategy = Callable[[str], Optional[Structured]]


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _structured(candidate: str) -> Structured | None:
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, (dict, list)) else None


def parse_direct(text: str) -> Structured | None:
    return _structured(text)


def _balanced_end(text: str, start: int) -> int | None:
    """Index of the brace closing the one at ``start``, ignoring braces in strings."""
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
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
                return idx
    return None


def parse_balanced_object(text: str) -> Structured | None:
    """Parse the first span bounded by a balanced outermost brace pair."""
    start = text.find("{")
    if start < 0:
        return None
    end = _balanced_end(text, start)
    if end is None:
        return None
    return _structured(text[start : end + 1])


def parse_later_objects(text: str) -> Structured | None:
    """Try each further ``{`` as the start of an object, e.g. after a stray ``{note}``."""
    start = text.find("{")
    while start >= 0:
        start = text.find("{", start + 1)
        if start < 0:
            break
        end = _balanced_end(text, start)
        if end is not None:
            value = _structured(text[start : end + 1])
            if value is not None:
                return value
    return None


STRATEGIES: tuple[Strategy, ...] = (parse_direct, parse_balanced_object, parse_later_objects)


def excerpt(text: str, limit: int = EXCERPT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def parse_response(
    text: str | None,
    strategies: Sequence[Strategy] = STRATEGIES,
    provider: str | None = None,
) -> Structured:
    if text is None or not text.strip():
        raise EmptyProviderResponse(provider=provider)
    # Raw text first so fences inside string values survive.
    for candidate in (text, strip_fences(text)):
        for strategy in strategies:
            value = strategy(candidate)
            if value is not None:
                return value
    raise ParseFailure(excerpt(text), provider=provider)
