"""Tests for reading/writing `composer.composerData` in workspace DBs."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from cursor_fixture import CursorFixture

from cursor_session_mover.summary_store import drop_from_selection, open_summary_store


class SummaryStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.fx = CursorFixture(Path(self._tmp.name))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_wrapper_shape_round_trips_with_extra_keys(self) -> None:
        db = self.fx.add_workspace(
            "/work/a",
            composers=[{"composerId": "a1", "name": "A"}],
            envelope_extra={"selectedComposerIds": ["a1"], "hasMigratedComposerData": True},
        )

        with open_summary_store(db) as store:
            summary = store.read_all()
            self.assertTrue(summary.present)
            self.assertTrue(summary.is_alternate_format)
            self.assertEqual(summary.session_ids(), ["a1"])
            store.write_all(
                [*summary.records, {"composerId": "a2"}],
                is_alternate_format=summary.is_alternate_format,
                raw_envelope=summary.raw_envelope,
            )

        payload = self.fx.read_item(db)
        self.assertIsInstance(payload, dict)
        self.assertEqual([c["composerId"] for c in payload["allComposers"]], ["a1", "a2"])
        self.assertEqual(payload["selectedComposerIds"], ["a1"])
        self.assertTrue(payload["hasMigratedComposerData"])

    def test_bare_list_shape_is_preserved(self) -> None:
        db = self.fx.add_workspace("/work/a", composers=[{"composerId": "a1"}], wrapped=False)

        with open_summary_store(db) as store:
            summary = store.read_all()
            self.assertFalse(summary.is_alternate_format)
            self.assertIsNone(summary.raw_envelope)
            store.write_all(summary.records, is_alternate_format=False, raw_envelope=None)

        self.assertEqual(self.fx.read_item(db), [{"composerId": "a1"}])

    def test_missing_key_reads_as_empty_and_absent(self) -> None:
        db = self.fx.add_workspace("/work/a")
        with open_summary_store(db, readonly=True) as store:
            summary = store.read_all()
        self.assertFalse(summary.present)
        self.assertEqual(summary.records, [])

    def test_malformed_container_raises_value_error(self) -> None:
        db = self.fx.add_workspace("/work/a")
        for raw in ("{not json", json.dumps("text"), json.dumps({"allComposers": {"a": 1}})):
            with self.subTest(raw=raw):
                self.fx.write_item(db, "composer.composerData", raw)
                with open_summary_store(db, readonly=True) as store:
                    with self.assertRaises(ValueError):
                        store.read_all()

    def test_readonly_store_refuses_writes(self) -> None:
        db = self.fx.add_workspace("/work/a", composers=[])
        with open_summary_store(db, readonly=True) as store:
            with self.assertRaises(PermissionError):
                store.write_all([], is_alternate_format=True, raw_envelope=None)

    def test_missing_database_is_not_created(self) -> None:
        missing = Path(self._tmp.name) / "nope" / "state.vscdb"
        with self.assertRaises(FileNotFoundError):
            with open_summary_store(missing):
                pass
        self.assertFalse(missing.exists())

    def test_index_of_finds_session(self) -> None:
        db = self.fx.add_workspace("/work/a", composers=[{"composerId": "x"}, "junk", {"composerId": "y"}])
        with open_summary_store(db, readonly=True) as store:
            summary = store.read_all()
        self.assertEqual(summary.index_of("y"), 2)
        self.assertEqual(summary.index_of("z"), -1)
        self.assertEqual(summary.session_ids(), ["x", "y"])


class DropFromSelectionTest(unittest.TestCase):
    def test_removes_string_and_object_entries(self) -> None:
        envelope = {
            "selectedComposerIds": ["a", "b"],
            "lastFocusedComposerIds": [{"composerId": "a"}, "c"],
            "other": ["a"],
        }
        drop_from_selection(envelope, "a")
        self.assertEqual(envelope["selectedComposerIds"], ["b"])
        self.assertEqual(envelope["lastFocusedComposerIds"], ["c"])
        self.assertEqual(envelope["other"], ["a"])

    def test_tolerates_missing_envelope(self) -> None:
        drop_from_selection(None, "a")
        envelope: dict = {}
        drop_from_selection(envelope, "a")
        self.assertEqual(envelope, {})
