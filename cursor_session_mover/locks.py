"""Detects Cursor (or anything else) holding the chat databases open.

There is no locking protocol with Cursor: this is a probe run right before a
session is mutated. If a file cannot be proven free, it counts as busy.
"""

from __future__ import annotations

import errno
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


class StoreLockedError(RuntimeError):
    """Raised when a summary or detail store appears to be in use."""

    def __init__(self, locked: list["LockedPath"]) -> None:
        details = "\n".join(f"- {lp.path}: {lp.reason}" for lp in locked)
        super().__init__(
            "Store busy: chat database appears to be open in another process.\n"
            "Close Cursor and retry (or pass --unsafe-db to skip this check).\n"
            f"Locked paths:\n{details}"
        )
        self.locked = locked


@dataclass(frozen=True, slots=True)
class LockedPath:
    path: Path
    reason: str


def sqlite_lock_targets(db_paths: Iterable[Path]) -> list[Path]:
    """Expands each database path with its `-wal` and `-shm` companions."""
    targets: list[Path] = []
    for db in db_paths:
        targets.append(db)
        targets.append(db.with_name(db.name + "-wal"))
        targets.append(db.with_name(db.name + "-shm"))
    return targets


def assert_stores_unlocked(db_paths: Iterable[Path]) -> None:
    """Raises `StoreLockedError` if any database (or its WAL/SHM file) is locked.

    Must be called while this process holds no sqlite connection to those files:
    closing the probe's descriptor drops every POSIX lock the process holds on them.
    """
    locked = [lp for lp in map(probe_path_lock, sqlite_lock_targets(db_paths)) if lp is not None]
    if locked:
        raise StoreLockedError(locked)


def probe_path_lock(path: Path) -> LockedPath | None:
    """Returns lock info if `path` is locked, else None (missing files are free)."""
    if not path.exists():
        return None
    if sys.platform.startswith("win"):
        return _probe_windows_exclusive_open(path)
    return _probe_posix_lockf(path)


def _probe_posix_lockf(path: Path) -> LockedPath | None:
    # * fcntl advisory locks are what SQLite itself uses on POSIX.
    import fcntl  # pylint: disable=import-outside-toplevel

    fd = os.open(path, os.O_RDWR)
    try:
        fcntl.lockf(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as exc:
        if exc.errno in (errno.EACCES, errno.EAGAIN):
            return LockedPath(path=path, reason=f"posix lockf denied (errno={exc.errno})")
        return LockedPath(path=path, reason=f"posix lockf error (errno={exc.errno})")
    finally:
        os.close(fd)
    return None


def _probe_windows_exclusive_open(path: Path) -> LockedPath | None:
    # * CreateFileW with shareMode=0 fails while ANY other handle is open.
    import ctypes  # pylint: disable=import-outside-toplevel
    from ctypes import wintypes  # pylint: disable=import-outside-toplevel

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    create_file_w = kernel32.CreateFileW
    create_file_w.argtypes = [
        wintypes.LPCWSTR,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.LPVOID,
        wintypes.DWORD,
        wintypes.DWORD,
        wintypes.HANDLE,
    ]
    create_file_w.restype = wintypes.HANDLE
    close_handle = kernel32.CloseHandle
    close_handle.argtypes = [wintypes.HANDLE]
    close_handle.restype = wintypes.BOOL

    generic_read, share_none, open_existing, attr_normal = 0x80000000, 0, 3, 0x80
    handle = create_file_w(str(path), generic_read, share_none, None, open_existing, attr_normal, None)
    if handle == wintypes.HANDLE(-1).value:
        winerr = ctypes.get_last_error()
        # * 32 = ERROR_SHARING_VIOLATION, 33 = ERROR_LOCK_VIOLATION
        if winerr in (32, 33):
            return LockedPath(path=path, reason=f"windows sharing/lock violation (winerr={winerr})")
        return LockedPath(path=path, reason=f"windows CreateFileW failed (winerr={winerr})")
    close_handle(handle)
    return None
