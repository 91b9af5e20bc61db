"""Workspace discovery over `workspaceStorage/<id>/` entries.

Each entry holds a `workspace.json` (`{"folder": "file:///..."}`) naming the
project folder, and a `state.vscdb` summary store. Workspaces are only ever
found here, never created: Cursor creates them when a folder is first opened.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from cursor_session_mover.cursor_paths import STATE_DB_NAME, StorageContext
from cursor_session_mover.path_guard import paths_equal
from cursor_session_mover.summary_store import open_summary_store
from cursor_session_mover.workspace_uri import folder_uri_to_path


@dataclass(frozen=True, slots=True)
class WorkspaceStorageEntry:
    """One `workspaceStorage/<id>` directory with a folder workspace."""

    workspace_id: str
    storage_dir: Path
    folder_path: str

    @property
    def summary_store_path(self) -> Path:
        return self.storage_dir / STATE_DB_NAME


@dataclass(frozen=True, slots=True)
class Workspace:
    id: str
    path: str
    summary_store_path: Path
    session_count: int


@dataclass(frozen=True, slots=True)
class SessionLocation:
    """The workspace currently owning a session."""

    workspace: Workspace
    summary_store_path: Path


def iter_workspace_storage_entries(ctx: StorageContext) -> Iterator[WorkspaceStorageEntry]:
    """Yields folder workspaces that have a summary store, in stable id order."""
    root = ctx.workspace_storage_root
    if not root.is_dir():
        return

    for child in sorted(root.iterdir(), key=lambda p: p.name):
        if not child.is_dir():
            continue
        if not (child / STATE_DB_NAME).is_file():
            continue
        folder_path = _read_folder_path(child / "workspace.json")
        if folder_path is None:
            continue
        yield WorkspaceStorageEntry(workspace_id=child.name, storage_dir=child, folder_path=folder_path)


def find_workspace_by_path(ctx: StorageContext, path: str) -> Workspace | None:
    """Finds the workspace for a project folder.

    When several entries point at the same folder (Cursor re-created the
    workspace id after a rename or reinstall), the one with the most recently
    modified `state.vscdb` wins.
    """
    matches = [e for e in iter_workspace_storage_entries(ctx) if paths_equal(e.folder_path, path)]
    if not matches:
        return None
    entry = max(matches, key=_db_mtime)
    return _to_workspace(entry)


def find_workspace_for_session(
    ctx: StorageContext,
    session_id: str,
    *,
    avoid_path: str | None = None,
) -> SessionLocation | None:
    """Finds the workspace whose summary list contains `session_id`.

    An interrupted move can leave the id listed in two workspaces. A match
    whose folder is `avoid_path` (the move destination) is then only returned
    when no other workspace lists the id.
    """
    fallback: SessionLocation | None = None
    for entry in iter_workspace_storage_entries(ctx):
        try:
            with open_summary_store(entry.summary_store_path, readonly=True) as store:
                summary = store.read_all()
        except (OSError, sqlite3.Error, ValueError):
            # ! One unreadable workspace must not hide sessions in the others.
            continue
        if summary.index_of(session_id) == -1:
            continue
        workspace = Workspace(
            id=entry.workspace_id,
            path=entry.folder_path,
            summary_store_path=entry.summary_store_path,
            session_count=len(summary.records),
        )
        location = SessionLocation(workspace=workspace, summary_store_path=entry.summary_store_path)
        if avoid_path is not None and paths_equal(entry.folder_path, avoid_path):
            fallback = fallback or location
            continue
        return location
    return fallback


def _to_workspace(entry: WorkspaceStorageEntry) -> Workspace:
    return Workspace(
        id=entry.workspace_id,
        path=entry.folder_path,
        summary_store_path=entry.summary_store_path,
        session_count=_count_sessions(entry.summary_store_path),
    )


def _count_sessions(db_path: Path) -> int:
    try:
        with open_summary_store(db_path, readonly=True) as store:
            return len(store.read_all().records)
    except (OSError, sqlite3.Error, ValueError):
        return 0


def _db_mtime(entry: WorkspaceStorageEntry) -> float:
    try:
        return entry.summary_store_path.stat().st_mtime
    except OSError:
        return 0.0


def _read_folder_path(meta: Path) -> str | None:
    if not meta.is_file():
        return None
    try:
        payload = json.loads(meta.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        # ! Malformed metadata should not crash discovery.
        return None
    folder_uri = payload.get("folder") if isinstance(payload, dict) else None
    if not isinstance(folder_uri, str):
        # * Multi-root `.code-workspace` entries have no single folder.
        return None
    try:
        return folder_uri_to_path(folder_uri)
    except ValueError:
        return None
