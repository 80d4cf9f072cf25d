"""Path helpers used to recognise the same resource under different spellings."""

from __future__ import annotations

import re

__all__ = ["normalize_path_key", "same_path_key"]

_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_path_key(value: str) -> str:
    """Return a comparison key for a path-like string.

    Backslashes become forward slashes, runs of slashes collapse to one, a
    trailing slash is dropped (except for a bare root) and the result is
    case-folded, so ``C:\\Repo\\a.py`` and ``c:/repo//a.py`` compare equal.
    """

    key = _REPEATED_SLASHES.sub("/", value.strip().replace("\\", "/"))
    if len(key) > 1 and key.endswith("/"):
        key = key.rstrip("/") or "/"
    return key.casefold()


def same_path_key(left: object, right: object) -> bool:
    if not isinstance(left, str) or not isinstance(right, str):
        return False
    return normalize_path_key(left) == normalize_path_key(right)
