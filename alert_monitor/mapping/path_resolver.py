"""Dot/bracket path resolution against arbitrary decoded JSON.

Paths look like ``data.items[0].id`` or ``rows[2][1]``. Resolution is lenient:
anything that cannot be followed yields ``None`` rather than an exception, so a
misconfigured path degrades to empty fields instead of failing a check.
"""

from __future__ import annotations

import re
from typing import Any

# A whole bracket group or a bare key (anything but dots/brackets).
_TOKEN_RE = re.compile(r"\[([^\]]*)\]|([^.\[\]]+)")

_SEGMENT = r"(?:[^.\[\]]+(?:\[\d+\])*|(?:\[\d+\])+)"
_STRICT_PATH_RE = re.compile(rf"^{_SEGMENT}(?:\.{_SEGMENT})*$")

PathToken = str | int


def tokenize_path(path: str | None) -> list[PathToken]:
    """Split a path into key (str) and index (int) tokens.

    Malformed fragments such as ``[x]`` or a stray ``]`` are skipped.
    """
    if not path or not isinstance(path, str):
        return []
    tokens: list[PathToken] = []
    for match in _TOKEN_RE.finditer(path):
        bracket, key = match.group(1), match.group(2)
        if bracket is not None:
            bracket = bracket.strip()
            if bracket.isdigit():
                tokens.append(int(bracket))
        elif key is not None:
            key = key.strip()
            if key:
                tokens.append(key)
    return tokens


def is_valid_path(path: str | None) -> bool:
    if not path or not isinstance(path, str):
        return False
    return bool(_STRICT_PATH_RE.match(path.strip()))


def _step(current: Any, token: PathToken) -> Any:
    if isinstance(token, int):
        if not isinstance(current, list):
            return None
        if token < 0 or token >= len(current):
            return None
        return current[token]

    if isinstance(current, dict):
        return current.get(token)
    # ``items.0.id`` style: numeric key applied to a list.
    if isinstance(current, list) and token.isdigit():
        return _step(current, int(token))
    return None


def resolve_path(root: Any, path: str | None) -> Any:
    """Resolve ``path`` against ``root``; ``None`` when anything along the way is missing."""
    tokens = tokenize_path(path)
    if not tokens:
        return None

    current = root
    for token in tokens:
        if current is None:
            return None
        current = _step(current, token)
    return current
