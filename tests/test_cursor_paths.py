"""Tests for Cursor User dir resolution."""

from __future__ import annotations

import os
import unittest
from pathlib import Path
from unittest import mock

from cursor_session_mover.cursor_paths import ENV_DATA_PATH, StorageContext, resolve_cursor_user_dir


class ResolveCursorUserDirTest(unittest.TestCase):
    def test_explicit_override_wins_over_env(self) -> None:
        with mock.patch.dict(os.environ, {ENV_DATA_PATH: "/env/User"}):
            self.assertEqual(resolve_cursor_user_dir(Path("/cli/User")), Path("/cli/User"))

    def test_env_var_accepts_user_dir_or_workspace_storage(self) -> None:
        with mock.patch.dict(os.environ, {ENV_DATA_PATH: "/env/User"}):
            self.assertEqual(resolve_cursor_user_dir(), Path("/env/User"))
        with mock.patch.dict(os.environ, {ENV_DATA_PATH: "/env/User/workspaceStorage"}):
            self.assertEqual(resolve_cursor_user_dir(), Path("/env/User"))

    def test_default_ends_with_cursor_user(self) -> None:
        env = {k: v for k, v in os.environ.items() if k != ENV_DATA_PATH}
        env.setdefault("APPDATA", "C:\\Users\\me\\AppData\\Roaming")
        with mock.patch.dict(os.environ, env, clear=True):
            path = resolve_cursor_user_dir()
        self.assertEqual(path.parts[-2:], ("Cursor", "User"))

    def test_storage_context_store_locations(self) -> None:
        ctx = StorageContext(user_dir=Path("/x/User"))
        self.assertEqual(ctx.workspace_storage_root, Path("/x/User/workspaceStorage"))
        self.assertEqual(ctx.global_db_path, Path("/x/User/globalStorage/state.vscdb"))
