"""Decoding of the folder URIs Cursor writes into `workspace.json`."""

from __future__ import annotations

from urllib.parse import quote, unquote, urlparse

from cursor_session_mover.path_guard import normalize_path


def folder_uri_to_path(folder_uri: str) -> str:
    """Converts a `file:///...` folder URI to a normalized workspace path.

    Examples:
        file:///home/user/proj          -> /home/user/proj
        file:///g%3A/GitHub/CursorMover -> g:/GitHub/CursorMover

    Raises:
        ValueError: If the URI is not a `file` URI.
    """
    parsed = urlparse(folder_uri)
    if parsed.scheme != "file":
        raise ValueError(f"Expected file URI, got: {folder_uri}")

    raw_path = unquote(parsed.path)
    # * /g:/GitHub/CursorMover -> g:/GitHub/CursorMover
    if raw_path.startswith("/") and len(raw_path) >= 3 and raw_path[2] == ":" and raw_path[1].isalpha():
        raw_path = raw_path[1:]
    if parsed.netloc:
        # * UNC share: file://server/share -> //server/share
        raw_path = "//" + parsed.netloc + raw_path
    return normalize_path(raw_path)


def path_to_folder_uri(path: str) -> str:
    """Inverse of `folder_uri_to_path` for a normalized workspace path."""
    normalized = normalize_path(path)
    if len(normalized) >= 2 and normalized[1] == ":":
        # * Example: g:/GitHub/CursorMover -> file:///g%3A/GitHub/CursorMover
        return "file:///" + normalized[0] + "%3A" + quote(normalized[2:] or "/", safe="/")
    if not normalized.startswith("/"):
        raise ValueError(f"Expected an absolute path, got: {path}")
    return "file://" + quote(normalized, safe="/")
