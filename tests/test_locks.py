"""Unit tests for the store lock probe."""

from __future__ import annotations

import multiprocessing
import sys
import tempfile
import unittest
from pathlib import Path

from cursor_session_mover.locks import StoreLockedError, assert_stores_unlocked, probe_path_lock, sqlite_lock_targets


def _posix_lock_file(path_raw: str, ready, stop) -> None:
    # * fcntl locks are per-process, so the holder must be another process.
    import fcntl  # pylint: disable=import-outside-toplevel
    import os  # pylint: disable=import-outside-toplevel

    fd = os.open(path_raw, os.O_RDWR)
    try:
        fcntl.lockf(fd, fcntl.LOCK_EX)
        ready.set()
        stop.wait(5.0)
    finally:
        os.close(fd)


class LocksTest(unittest.TestCase):
    def test_lock_targets_include_wal_and_shm(self) -> None:
        db = Path("/x/state.vscdb")
        self.assertEqual(
            sqlite_lock_targets([db]),
            [db, Path("/x/state.vscdb-wal"), Path("/x/state.vscdb-shm")],
        )

    def test_missing_files_are_unlocked(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "state.vscdb"
            self.assertIsNone(probe_path_lock(missing))
            assert_stores_unlocked([missing])

    def test_idle_database_is_unlocked(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            db = Path(tmp) / "state.vscdb"
            db.write_bytes(b"")
            assert_stores_unlocked([db])

    def test_locked_database_raises_store_locked_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            db = Path(tmp) / "state.vscdb"
            db.write_bytes(b"x")

            if sys.platform.startswith("win"):
                fh = db.open("rb")
                try:
                    with self.assertRaises(StoreLockedError) as ctx:
                        assert_stores_unlocked([db])
                finally:
                    fh.close()
                self.assertEqual(ctx.exception.locked[0].path, db)
                return

            ready = multiprocessing.Event()
            stop = multiprocessing.Event()
            proc = multiprocessing.Process(target=_posix_lock_file, args=(str(db), ready, stop))
            proc.start()
            try:
                self.assertTrue(ready.wait(5.0), "Expected lock-holder process to acquire lock.")
                with self.assertRaises(StoreLockedError) as ctx:
                    assert_stores_unlocked([db])
                self.assertEqual(ctx.exception.locked[0].path, db)
                self.assertIn("Store busy", str(ctx.exception))
            finally:
                stop.set()
                proc.join(timeout=5.0)
                if proc.is_alive():
                    proc.terminate()
                    proc.join(timeout=5.0)
