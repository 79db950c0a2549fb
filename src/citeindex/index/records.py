"""Document records and the pending-reindex set."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

RecordKey = tuple[str, str]


@dataclass(eq=False)
class DocumentRecord:
    """One (entry, linked file) pair as known to the index.

    ``stored_mtime`` is the file mtime (ns) recorded in the index, if any.
    ``index_id`` is an opaque document address from the last lookup. It is
    a hint only and is invalid once the reader is reopened.
    """

    file: Path
    cite_key: str
    stored_mtime: int | None = None
    index_id: Any = None

    @property
    def file_name(self) -> str:
        return self.file.name

    @property
    def key(self) -> RecordKey:
        return (self.cite_key, self.file_name)

    def current_mtime(self) -> int:
        """Current file mtime in nanoseconds. Raises OSError if unreadable."""
        return self.file.stat().st_mtime_ns

    def rekeyed(self, cite_key: str) -> DocumentRecord:
        return DocumentRecord(self.file, cite_key, self.stored_mtime)


class PendingSet:
    """Records awaiting (re)indexing, keyed by (cite key, file name).

    Adding a record whose key is already present replaces the earlier one.
    Not thread-safe: callers hold the engine lock.
    """

    def __init__(self, records: Iterable[DocumentRecord] = ()) -> None:
        self._records: dict[RecordKey, DocumentRecord] = {}
        self.update(records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __iter__(self) -> Iterator[DocumentRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, item: object) -> bool:
        if isinstance(item, DocumentRecord):
            return item.key in self._records
        return item in self._records

    def add(self, record: DocumentRecord) -> None:
        self._records[record.key] = record

    def update(self, records: Iterable[DocumentRecord]) -> None:
        for record in records:
            self.add(record)

    def discard(self, record: DocumentRecord) -> None:
        self._records.pop(record.key, None)

    def discard_key(self, cite_key: str, file_name: str | None = None) -> int:
        """Drop records of *cite_key* (optionally one file). Returns count."""
        doomed = [
            k for k in self._records if k[0] == cite_key and (file_name is None or k[1] == file_name)
        ]
        for k in doomed:
            del self._records[k]
        return len(doomed)

    def rekey(self, old_key: str, new_key: str, file_names: Iterable[str] | None = None) -> int:
        """Move records from *old_key* to *new_key*. Returns count."""
        names = set(file_names) if file_names is not None else None
        moved = [
            r
            for k, r in self._records.items()
            if k[0] == old_key and (names is None or k[1] in names)
        ]
        for record in moved:
            del self._records[record.key]
            self.add(record.rekeyed(new_key))
        return len(moved)

    def clear(self) -> None:
        self._records.clear()

    def keys(self) -> set[RecordKey]:
        return set(self._records)
