"""Tests for the global `cursorDiskKV` detail store."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from cursor_fixture import CursorFixture

from cursor_session_mover.detail_store import bubble_key, header_key, open_detail_store


class DetailStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.fx = CursorFixture(Path(self._tmp.name))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_reads_only_bubbles_of_the_requested_session(self) -> None:
        self.fx.add_session_details("abc", {"b1": {"text": "one"}, "b2": {"text": "two"}})
        self.fx.add_session_details("abc-1", {"b9": {"text": "other"}})
        # * `_` is a LIKE wildcard: reading `a_c` must not pick up `abc`.
        self.fx.add_session_details("a_c", {"b5": {"text": "underscore"}})
        self.fx.add_session_details("abc2", {"b7": {"text": "lookalike"}})

        with open_detail_store(self.fx.ctx.global_db_path) as detail:
            bubbles = detail.read_bubbles_for_session("abc")
            underscored = detail.read_bubbles_for_session("a_c")

        self.assertEqual([b.bubble_id for b in bubbles], ["b1", "b2"])
        self.assertEqual(bubbles[0].payload["text"], "one")
        self.assertTrue(all(b.composer_id == "abc" for b in bubbles))
        self.assertEqual([b.bubble_id for b in underscored], ["b5"])

    def test_write_bubble_upserts(self) -> None:
        self.fx.add_session_details("abc", {"b1": {"text": "one"}})

        with open_detail_store(self.fx.ctx.global_db_path) as detail:
            detail.write_bubble("abc", "b1", {"bubbleId": "b1", "text": "changed"})
            detail.write_bubble("abc", "b2", {"bubbleId": "b2", "text": "new"})

        self.assertEqual(self.fx.global_json(bubble_key("abc", "b1"))["text"], "changed")
        self.assertEqual(self.fx.global_json(bubble_key("abc", "b2"))["text"], "new")
        self.assertEqual(self.fx.global_rows()[bubble_key("abc", "b2")], '{"bubbleId":"b2","text":"new"}')

    def test_summary_header_read_and_write(self) -> None:
        self.fx.add_session_details("abc", {"b1": {}})

        with open_detail_store(self.fx.ctx.global_db_path) as detail:
            header = detail.read_summary_header("abc")
            self.assertIsNotNone(header)
            self.assertEqual(header["fullConversationHeadersOnly"][0]["bubbleId"], "b1")
            self.assertIsNone(detail.read_summary_header("missing"))
            detail.write_summary_header("xyz", {"composerId": "xyz"})

        self.assertEqual(self.fx.global_json(header_key("xyz")), {"composerId": "xyz"})

    def test_malformed_bubble_raises(self) -> None:
        self.fx.write_raw_global("bubbleId:abc:b1", "{broken")
        with open_detail_store(self.fx.ctx.global_db_path) as detail:
            with self.assertRaises(ValueError):
                detail.read_bubbles_for_session("abc")

    def test_writes_roll_back_when_block_raises(self) -> None:
        self.fx.add_session_details("abc", {"b1": {"text": "one"}})
        before = self.fx.global_rows()

        with self.assertRaises(RuntimeError):
            with open_detail_store(self.fx.ctx.global_db_path) as detail:
                detail.write_bubble("abc", "b1", {"text": "half-done"})
                raise RuntimeError("boom")

        self.assertEqual(self.fx.global_rows(), before)

    def test_missing_database_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            with open_detail_store(Path(self._tmp.name) / "missing.vscdb"):
                pass
