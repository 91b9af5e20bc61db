"""Locates the Cursor `User` directory and the two chat stores inside it.

Resolution order for the `User` directory:
  1. explicit path passed by the caller (`--cursor-user-dir`);
  2. `CURSOR_DATA_PATH` environment variable (the `User` dir itself, or its
     `workspaceStorage` child);
  3. the platform default.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path


ENV_DATA_PATH = "CURSOR_DATA_PATH"
STATE_DB_NAME = "state.vscdb"


def default_cursor_user_dir() -> Path:
    """Returns the default Cursor `User` directory for the current OS.

    Raises:
        RuntimeError: If APPDATA is missing on Windows.
    """
    if sys.platform.startswith("win"):
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise RuntimeError("APPDATA is not set; cannot locate Cursor User dir.")
        return Path(appdata) / "Cursor" / "User"

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"

    # * Assume Linux / other Unix-like.
    return Path.home() / ".config" / "Cursor" / "User"


def resolve_cursor_user_dir(override: Path | None = None) -> Path:
    """Applies the override > env var > default resolution order."""
    if override is not None:
        return override.expanduser()

    env = os.environ.get(ENV_DATA_PATH, "").strip()
    if env:
        path = Path(env).expanduser()
        # * Accept the workspaceStorage dir too; its parent is the User dir.
        if path.name == "workspaceStorage":
            return path.parent
        return path

    return default_cursor_user_dir()


def workspace_storage_root(cursor_user_dir: Path) -> Path:
    """Returns `workspaceStorage` directory under Cursor User dir."""
    return cursor_user_dir / "workspaceStorage"


def global_storage_dir(cursor_user_dir: Path) -> Path:
    """Returns `globalStorage` directory under Cursor User dir."""
    return cursor_user_dir / "globalStorage"


@dataclass(frozen=True, slots=True)
class StorageContext:
    """Explicit handle on one Cursor installation's storage.

    Passed to every migration call so nothing depends on process-wide state.
    """

    user_dir: Path

    @classmethod
    def default(cls, override: Path | None = None) -> "StorageContext":
        return cls(user_dir=resolve_cursor_user_dir(override))

    @property
    def workspace_storage_root(self) -> Path:
        return workspace_storage_root(self.user_dir)

    @property
    def global_db_path(self) -> Path:
        """Shared detail store (`globalStorage/state.vscdb`)."""
        return global_storage_dir(self.user_dir) / STATE_DB_NAME
