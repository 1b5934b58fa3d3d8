"""Event name validation and wildcard pattern matching."""

from __future__ import annotations

import re
from collections.abc import Iterator

WILDCARD = "*"
ANY_NODE = "*"
ALL_NODE = "**"

_GOOD_NAME = re.compile(r"[a-zA-Z][\w\-.*]*", re.ASCII)
_GOOD_NAME_TEXT = r"^[a-zA-Z][\w-.*]*$"


class InvalidEventName(ValueError):
    """Raised when an event name is empty or has characters that are not allowed."""


class InvalidListener(TypeError):
    """Raised when a listener cannot be registered."""


def _translate_class(chars: Iterator[str]) -> str:
    """Translate the rest of a ``[...]`` character class into regex syntax."""
    body: list[str] = []
    negate = False
    first = True
    for char in chars:
        if first and char == "^":
            negate = True
            first = False
            continue
        first = False
        if char == "]":
            if not body:
                raise ValueError("empty character class")
            return "[" + ("^" if negate else "") + "".join(body) + "]"
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError("dangling escape in character class")
            body.append(re.escape(escaped))
        elif char == "-":
            body.append("-")
        else:
            body.append(re.escape(char))
    raise ValueError("unterminated character class")


def _translate(pattern: str) -> re.Pattern[str]:
    """Translate a slash separated shell pattern into a compiled regex."""
    parts: list[str] = []
    chars = iter(pattern)
    for char in chars:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError("dangling escape")
            parts.append(re.escape(escaped))
        elif char == "[":
            parts.append(_translate_class(chars))
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def _path_match(pattern: str, name: str) -> bool:
    try:
        regex = _translate(pattern)
    except (ValueError, re.error):
        return False
    return regex.fullmatch(name) is not None


def match_node_path(pattern: str, s: str, sep: str = ".") -> bool:
    """Check whether the name ``s`` matches ``pattern``.

    ``*`` matches any run of characters up to the next separator; ``**``
    matches everything to the end and is only allowed at the start or the end.
    """
    if pattern == WILDCARD:
        return True

    index = pattern.find(ALL_NODE)
    if index >= 0:
        if index == 0:
            return s.endswith(pattern[2:])
        return s.startswith(pattern[:-2])

    return _path_match(pattern.replace(sep, "/"), s.replace(sep, "/"))


def good_name(name: str, is_reg: bool = False) -> str:
    """Return the cleaned event name, or raise InvalidEventName.

    With ``is_reg`` set (registering a listener) the names ``*`` and ``**``
    both become ``*`` and names starting with ``**`` are accepted as is.
    """
    name = name.strip()
    if not name:
        raise InvalidEventName("event: the event name cannot be empty")

    if is_reg:
        if name in (ALL_NODE, WILDCARD):
            return WILDCARD
        if name.startswith(ALL_NODE):
            return name

    if _GOOD_NAME.fullmatch(name) is None:
        raise InvalidEventName(
            f"event: name is invalid, must match regex:{_GOOD_NAME_TEXT}"
        )
    return name