"""Workspace path normalization and the nested-destination guard.

Paths are compared as plain strings after normalization. Symlinks are never
resolved: Cursor records the folder path exactly as it was opened.
"""

from __future__ import annotations

import os
import posixpath
import sys

from cursor_session_mover.errors import NestedPathError


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Returns a canonical forward-slash form of `path`.

    - `~` is expanded.
    - Backslashes become `/`, `.`/`..` and duplicate separators collapse.
    - Trailing separators are stripped (the root `/` is kept).
    - A Windows drive letter is lower-cased, matching `URI.fsPath`.
    """
    raw = os.path.expanduser(os.fspath(path))
    if not raw:
        return raw
    raw = raw.replace("\\", "/")
    normalized = posixpath.normpath(raw)
    if len(normalized) >= 2 and normalized[1] == ":" and normalized[0].isalpha():
        normalized = normalized[0].lower() + normalized[1:]
    if len(normalized) > 1:
        normalized = normalized.rstrip("/") or "/"
    return normalized


def paths_equal(a: str | os.PathLike[str], b: str | os.PathLike[str]) -> bool:
    """Compares two workspace paths after normalization."""
    left = normalize_path(a)
    right = normalize_path(b)
    if sys.platform.startswith("win"):
        return left.casefold() == right.casefold()
    return left == right


def is_nested_path(source: str | os.PathLike[str], destination: str | os.PathLike[str]) -> bool:
    """Returns True when `destination` is `source` or a descendant of it."""
    src = normalize_path(source)
    dst = normalize_path(destination)
    if sys.platform.startswith("win"):
        src = src.casefold()
        dst = dst.casefold()
    if dst == src:
        return True
    # * Root source: every absolute path is a descendant.
    prefix = src if src.endswith("/") else src + "/"
    return dst.startswith(prefix)


def ensure_not_nested(source: str | os.PathLike[str], destination: str | os.PathLike[str]) -> None:
    """Raises `NestedPathError` if `destination` is inside `source`.

    Prefix substitution on a nested destination would match its own output on a
    second pass, so nesting is rejected outright instead of disambiguated.
    """
    if is_nested_path(source, destination):
        raise NestedPathError(normalize_path(source), normalize_path(destination))
