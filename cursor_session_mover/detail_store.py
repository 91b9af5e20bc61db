"""Shared detail store (`globalStorage/state.vscdb`, table `cursorDiskKV`).

Keys used here:

  - `composerData:<composerId>`: full session header, including the ordered
    `fullConversationHeadersOnly` list of `{bubbleId, type, ...}` entries;
  - `bubbleId:<composerId>:<bubbleId>`: one message record.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from cursor_session_mover.summary_store import BUSY_TIMEOUT_S, decode_value


HEADER_KEY_PREFIX = "composerData:"
BUBBLE_KEY_PREFIX = "bubbleId:"


def header_key(composer_id: str) -> str:
    return f"{HEADER_KEY_PREFIX}{composer_id}"


def bubble_key(composer_id: str, bubble_id: str) -> str:
    return f"{BUBBLE_KEY_PREFIX}{composer_id}:{bubble_id}"


@dataclass(frozen=True, slots=True)
class BubbleRecord:
    """One message record addressed by `(composer_id, bubble_id)`."""

    composer_id: str
    bubble_id: str
    payload: dict


class DetailStore:
    """Open handle on the global `cursorDiskKV` table."""

    def __init__(self, db_path: Path, con: sqlite3.Connection) -> None:
        self.db_path = db_path
        self._con = con

    def read_bubbles_for_session(self, composer_id: str) -> list[BubbleRecord]:
        """Returns every bubble stored for `composer_id`, ordered by key.

        Raises:
            ValueError: If a bubble value is not a JSON object.
        """
        prefix = bubble_key(composer_id, "")
        # * substr() instead of LIKE: ids may contain `_`, a LIKE wildcard.
        rows = self._con.execute(
            "SELECT key, value FROM cursorDiskKV WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ).fetchall()

        records: list[BubbleRecord] = []
        for key, value in rows:
            if value is None:
                continue
            key = decode_value(key)
            bubble_id = key[len(prefix):]
            if not bubble_id:
                continue
            payload = _decode_object(key, value)
            records.append(BubbleRecord(composer_id=composer_id, bubble_id=bubble_id, payload=payload))
        return records

    def write_bubble(self, composer_id: str, bubble_id: str, record: dict) -> None:
        """Inserts or replaces one bubble."""
        self._put(bubble_key(composer_id, bubble_id), record)

    def read_summary_header(self, composer_id: str) -> dict | None:
        row = self._con.execute(
            "SELECT value FROM cursorDiskKV WHERE key=?",
            (header_key(composer_id),),
        ).fetchone()
        if not row or row[0] is None:
            return None
        return _decode_object(header_key(composer_id), row[0])

    def write_summary_header(self, composer_id: str, header: dict) -> None:
        self._put(header_key(composer_id), header)

    def commit(self) -> None:
        self._con.commit()

    def rollback(self) -> None:
        self._con.rollback()

    def close(self) -> None:
        self._con.close()

    def _put(self, key: str, value: dict) -> None:
        self._con.execute(
            "INSERT OR REPLACE INTO cursorDiskKV(key, value) VALUES (?, ?)",
            (key, json.dumps(value, ensure_ascii=False, separators=(",", ":"))),
        )


@contextmanager
def open_detail_store(db_path: Path) -> Iterator[DetailStore]:
    """Opens the global store read-write.

    Writes are committed when the block exits normally and rolled back when it
    raises. The connection is always closed.

    Raises:
        FileNotFoundError: If the database does not exist.
    """
    if not db_path.exists():
        raise FileNotFoundError(db_path)

    con = sqlite3.connect(db_path.as_posix(), timeout=BUSY_TIMEOUT_S)
    store = DetailStore(db_path, con)
    try:
        con.execute("CREATE TABLE IF NOT EXISTS cursorDiskKV (key TEXT PRIMARY KEY, value BLOB)")
        yield store
        store.commit()
    except BaseException:
        store.rollback()
        raise
    finally:
        store.close()


def _decode_object(key: str, value) -> dict:
    try:
        parsed = json.loads(decode_value(value))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"Malformed JSON in cursorDiskKV[{key}]: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object in cursorDiskKV[{key}], got {type(parsed).__name__}")
    return parsed
