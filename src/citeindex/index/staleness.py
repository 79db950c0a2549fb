"""Decide whether an (entry, file) document needs reindexing."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from citeindex.config.constants import MODIFIED
from citeindex.core.errors import SearchError
from citeindex.index.lexical import ReadSnapshot
from citeindex.index.records import DocumentRecord, RecordKey

logger = structlog.get_logger()

FileResolver = Callable[[str | None], list[Path]]


class StalenessChecker:
    """Compares stored modification times against the files on disk.

    A record is up to date iff exactly one document matches its
    (key, file name) and that document's stored mtime is not older than
    the file. Zero matches means not indexed. More than one match is an
    index inconsistency: it is logged and treated as stale, which forces a
    reindex but does not by itself remove the duplicate.
    """

    def __init__(self, snapshot_provider: Callable[[], ReadSnapshot]) -> None:
        self._snapshot = snapshot_provider

    def is_up_to_date(self, record: DocumentRecord, snapshot: ReadSnapshot | None = None) -> bool:
        """Look the record up and compare mtimes.

        On a unique match, ``record.index_id`` and ``record.stored_mtime``
        are filled in from the index.
        """
        snapshot = snapshot or self._snapshot()
        record.index_id = None
        try:
            hits = snapshot.lookup(record.cite_key, record.file_name)
        except SearchError as e:
            logger.error("index_lookup_failed", key=record.cite_key, file=record.file_name, error=e.message)
            return False

        if not hits:
            logger.debug("document_not_indexed", key=record.cite_key, file=record.file_name)
            return False
        if len(hits) > 1:
            logger.warning(
                "index_lookup_inconsistent",
                key=record.cite_key,
                file=record.file_name,
                matches=len(hits),
            )
            return False

        record.index_id = hits[0]
        try:
            stored = snapshot.get_stored_field(hits[0], MODIFIED)
        except SearchError as e:
            logger.error("stored_field_failed", key=record.cite_key, file=record.file_name, error=e.message)
            return False
        record.stored_mtime = int(stored) if stored is not None else None
        if record.stored_mtime is None:
            return False

        try:
            current = record.current_mtime()
        except OSError as e:
            logger.warning("file_unreadable", path=str(record.file), error=str(e))
            return False
        return record.stored_mtime >= current

    def stale_records(
        self,
        entries: Iterable[tuple[str | None, str | None]],
        resolve: FileResolver,
        *,
        skip: Callable[[DocumentRecord], bool] | None = None,
    ) -> list[DocumentRecord]:
        """Records of every (citation key, file field) pair that need reindexing.

        Entries without a key or without linked files are skipped. *skip*
        filters out stale records the caller does not want (e.g. files
        whose last reindex failed and which have not changed since).
        """
        snapshot = self._snapshot()
        stale: list[DocumentRecord] = []
        seen: set[RecordKey] = set()
        for key, file_field in entries:
            if key is None:
                continue
            for path in resolve(file_field):
                record = DocumentRecord(path, key)
                if record.key in seen:
                    continue
                seen.add(record.key)
                if self.is_up_to_date(record, snapshot):
                    continue
                if skip is not None and skip(record):
                    continue
                stale.append(record)
        return stale
