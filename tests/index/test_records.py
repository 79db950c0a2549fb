"""Tests for document records and the pending set."""

from __future__ import annotations

from pathlib import Path

import pytest

from citeindex.index.records import DocumentRecord, PendingSet


class TestDocumentRecord:
    def test_key_uses_file_name(self, temp_dir: Path) -> None:
        record = DocumentRecord(temp_dir / "sub" / "paper.pdf", "smith2020")
        assert record.key == ("smith2020", "paper.pdf")

    def test_current_mtime_of_missing_file_raises(self, temp_dir: Path) -> None:
        with pytest.raises(OSError):
            DocumentRecord(temp_dir / "gone.pdf", "k").current_mtime()

    def test_current_mtime_in_nanoseconds(self, temp_dir: Path) -> None:
        path = temp_dir / "a.txt"
        path.write_text("x")
        assert DocumentRecord(path, "k").current_mtime() == path.stat().st_mtime_ns

    def test_rekeyed_drops_index_id(self, temp_dir: Path) -> None:
        record = DocumentRecord(temp_dir / "a.pdf", "old", stored_mtime=7, index_id=object())
        moved = record.rekeyed("new")
        assert moved.key == ("new", "a.pdf")
        assert moved.stored_mtime == 7
        assert moved.index_id is None


class TestPendingSet:
    def test_same_key_replaces(self, temp_dir: Path) -> None:
        """Two resolutions of one (key, file name) are one pending record."""
        pending = PendingSet()
        first = DocumentRecord(temp_dir / "a" / "x.pdf", "k")
        second = DocumentRecord(temp_dir / "b" / "x.pdf", "k")

        pending.add(first)
        pending.add(second)

        assert len(pending) == 1
        assert list(pending) == [second]
        assert first in pending

    def test_discard_key_all_files(self, temp_dir: Path) -> None:
        pending = PendingSet(
            [
                DocumentRecord(temp_dir / "x.pdf", "k"),
                DocumentRecord(temp_dir / "y.pdf", "k"),
                DocumentRecord(temp_dir / "x.pdf", "other"),
            ]
        )

        assert pending.discard_key("k") == 2
        assert pending.keys() == {("other", "x.pdf")}

    def test_discard_key_one_file(self, temp_dir: Path) -> None:
        pending = PendingSet([DocumentRecord(temp_dir / "x.pdf", "k"), DocumentRecord(temp_dir / "y.pdf", "k")])

        assert pending.discard_key("k", "x.pdf") == 1
        assert pending.keys() == {("k", "y.pdf")}

    def test_rekey_moves_records(self, temp_dir: Path) -> None:
        pending = PendingSet([DocumentRecord(temp_dir / "x.pdf", "old"), DocumentRecord(temp_dir / "y.pdf", "old")])

        assert pending.rekey("old", "new") == 2
        assert pending.keys() == {("new", "x.pdf"), ("new", "y.pdf")}

    def test_rekey_limited_to_file_names(self, temp_dir: Path) -> None:
        pending = PendingSet([DocumentRecord(temp_dir / "x.pdf", "old"), DocumentRecord(temp_dir / "y.pdf", "old")])

        pending.rekey("old", "new", ["y.pdf"])

        assert pending.keys() == {("old", "x.pdf"), ("new", "y.pdf")}

    def test_iteration_is_a_snapshot(self, temp_dir: Path) -> None:
        """Records can be discarded while iterating."""
        pending = PendingSet([DocumentRecord(temp_dir / "x.pdf", "k"), DocumentRecord(temp_dir / "y.pdf", "k")])

        for record in pending:
            pending.discard(record)

        assert not pending
