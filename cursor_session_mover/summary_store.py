"""Per-workspace session list (`ItemTable['composer.composerData']`).

Cursor has stored this value in two shapes over time:

  - an object wrapper: `{"allComposers": [...], "selectedComposerIds": [...], ...}`
  - a bare list of session records: `[...]`

The shape is detected on read and written back unchanged, together with any
other keys of the wrapper.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator


COMPOSER_DATA_KEY = "composer.composerData"
ALL_COMPOSERS_KEY = "allComposers"
SELECTION_KEYS: tuple[str, ...] = ("selectedComposerIds", "lastFocusedComposerIds")
BUSY_TIMEOUT_S = 2.0


@dataclass(slots=True)
class SummaryList:
    """Session records of one workspace plus the container shape they came in."""

    records: list[dict] = field(default_factory=list)
    is_alternate_format: bool = True
    raw_envelope: dict | None = None
    present: bool = False

    def index_of(self, session_id: str) -> int:
        for i, item in enumerate(self.records):
            if isinstance(item, dict) and item.get("composerId") == session_id:
                return i
        return -1

    def session_ids(self) -> list[str]:
        ids: list[str] = []
        for item in self.records:
            if isinstance(item, dict):
                cid = item.get("composerId")
                if isinstance(cid, str) and cid:
                    ids.append(cid)
        return ids


class SummaryStore:
    """Open handle on one workspace `state.vscdb`."""

    def __init__(self, db_path: Path, con: sqlite3.Connection, *, readonly: bool) -> None:
        self.db_path = db_path
        self._con = con
        self.readonly = readonly

    def read_all(self) -> SummaryList:
        """Reads the session list.

        Raises:
            ValueError: If the stored value is not a list or an `allComposers` wrapper.
        """
        raw = _read_item(self._con, COMPOSER_DATA_KEY)
        if raw is None:
            return SummaryList()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{COMPOSER_DATA_KEY} is not valid JSON in {self.db_path}: {exc}") from exc

        if isinstance(payload, list):
            return SummaryList(records=list(payload), is_alternate_format=False, raw_envelope=None, present=True)
        if isinstance(payload, dict):
            composers = payload.get(ALL_COMPOSERS_KEY, [])
            if not isinstance(composers, list):
                raise ValueError(f"{COMPOSER_DATA_KEY}.{ALL_COMPOSERS_KEY} is not a list in {self.db_path}")
            return SummaryList(records=list(composers), is_alternate_format=True, raw_envelope=payload, present=True)
        raise ValueError(f"Unexpected {COMPOSER_DATA_KEY} container in {self.db_path}: {type(payload).__name__}")

    def write_all(self, records: list[dict], *, is_alternate_format: bool, raw_envelope: dict | None) -> None:
        """Replaces the session list, keeping the given container shape."""
        if self.readonly:
            raise PermissionError(f"Summary store opened read-only: {self.db_path}")

        if is_alternate_format:
            payload: object = dict(raw_envelope or {})
            payload[ALL_COMPOSERS_KEY] = records  # type: ignore[index]
        else:
            payload = records

        cur = self._con.cursor()
        _ensure_item_table(cur)
        cur.execute(
            "INSERT OR REPLACE INTO ItemTable(key, value) VALUES (?, ?)",
            (COMPOSER_DATA_KEY, json.dumps(payload, ensure_ascii=False, separators=(",", ":"))),
        )
        self._con.commit()

    def close(self) -> None:
        self._con.close()


@contextmanager
def open_summary_store(db_path: Path, *, readonly: bool = False) -> Iterator[SummaryStore]:
    """Opens a workspace `state.vscdb`; the connection is always closed on exit.

    Raises:
        FileNotFoundError: If the database does not exist (it is never created here).
    """
    if not db_path.exists():
        raise FileNotFoundError(db_path)

    if readonly:
        con = sqlite3.connect(f"file:{db_path.as_posix()}?mode=ro", uri=True, timeout=BUSY_TIMEOUT_S)
    else:
        con = sqlite3.connect(db_path.as_posix(), timeout=BUSY_TIMEOUT_S)
    store = SummaryStore(db_path, con, readonly=readonly)
    try:
        yield store
    finally:
        store.close()


def drop_from_selection(envelope: dict | None, session_id: str) -> None:
    """Removes `session_id` from the wrapper's selected/focused id lists.

    Cursor tries to re-open selected chats on startup; a dangling id there can
    hang the chat panel.
    """
    if not envelope:
        return
    for key in SELECTION_KEYS:
        value = envelope.get(key)
        if not isinstance(value, list):
            continue
        envelope[key] = [
            item
            for item in value
            if not (item == session_id or (isinstance(item, dict) and item.get("composerId") == session_id))
        ]


def _ensure_item_table(cur: sqlite3.Cursor) -> None:
    cur.execute("CREATE TABLE IF NOT EXISTS ItemTable (key TEXT PRIMARY KEY, value BLOB)")


def _read_item(con: sqlite3.Connection, key: str) -> str | None:
    cur = con.cursor()
    has_table = cur.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='ItemTable'"
    ).fetchone()
    if not has_table:
        return None
    row = cur.execute("SELECT value FROM ItemTable WHERE key=?", (key,)).fetchone()
    if not row or row[0] is None:
        return None
    return decode_value(row[0])


def decode_value(val) -> str:
    """Normalizes a TEXT/BLOB column value to `str`."""
    if isinstance(val, memoryview):
        val = val.tobytes()
    if isinstance(val, bytes):
        return val.decode("utf-8")
    return str(val)
