"""Keeps a full-text index synchronized with a live entry collection.

Three independent change sources are reconciled here:

- entry events (added, removed, linked files or citation key changed),
  handled synchronously on the publishing thread
- files edited on disk, caught by the periodic reconciliation sweep
- a forced rebuild via recreate_index()

SERIALIZATION:
- One re-entrant lock guards the lifecycle state, the writer, the reader
  handle and the pending set. Every batch ("open writer, N adapter calls,
  close writer") holds it for its whole duration.
- search() does not take the lock. It reads the state and a reader
  snapshot, which is immutable until the next commit.

Usage::

    engine = SyncEngine(collection, config=config)
    engine.setup()                      # SEARCHABLE, sweep scheduled
    keys = engine.search("graphene")
    engine.close()                      # CLOSED
    engine.teardown()                   # NOT_IN_USE
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from citeindex.config.constants import ENTRY_FILE, FILE_FIELD, KEY, KEY_FIELD
from citeindex.config.loader import index_path_for
from citeindex.config.models import CiteIndexConfig
from citeindex.core.errors import (
    AdapterIOError,
    ExtractionError,
    InvalidStateError,
    SetupError,
)
from citeindex.core.logging import batch_scope
from citeindex.index.extraction import DocumentExtractor, TextExtractor
from citeindex.index.lexical import FullTextIndex, IndexedDocument, entry_file_term
from citeindex.index.managed import AdapterFactory, ManagedIndex
from citeindex.index.records import DocumentRecord, PendingSet, RecordKey
from citeindex.index.staleness import StalenessChecker
from citeindex.index.state import IndexState, Operation, next_state
from citeindex.library.collection import EntryCollection
from citeindex.library.entry import BibEntry
from citeindex.library.events import (
    CollectionEvent,
    EntryAddedEvent,
    EntryRemovedEvent,
    FieldChangedEvent,
)
from citeindex.sync.scheduler import SweepScheduler

logger = structlog.get_logger()


@dataclass
class SweepStats:
    """Outcome of one reconciliation sweep."""

    stale_found: int = 0
    processed: int = 0
    indexed: int = 0
    failed: int = 0
    deferred: int = 0
    still_pending: int = 0
    skipped_state: str | None = None
    duration_seconds: float = 0.0


@dataclass
class EngineStatus:
    state: IndexState
    pending: int
    index_path: Path | None
    last_sweep: SweepStats | None = None


@dataclass
class _BatchOutcome:
    indexed: list[DocumentRecord] = field(default_factory=list)
    # Extraction or file read failed: remembered until the file changes
    failed: list[DocumentRecord] = field(default_factory=list)
    # Index write failed: left pending for the next sweep
    deferred: list[DocumentRecord] = field(default_factory=list)


class SyncEngine:
    """
    Synchronization engine for one collection and its index.

    Each instance owns its own lifecycle state, so several collections can
    each run an independent engine.
    """

    def __init__(
        self,
        collection: EntryCollection,
        *,
        config: CiteIndexConfig | None = None,
        extractor: TextExtractor | None = None,
        adapter_factory: AdapterFactory | None = None,
    ) -> None:
        self.collection = collection
        self.config = config or CiteIndexConfig()
        self._extractor: TextExtractor = extractor or DocumentExtractor(
            self.config.index.supported_extensions
        )
        self._index = ManagedIndex(adapter_factory or self._default_adapter)
        self._checker = StalenessChecker(self._index.snapshot)
        self._pending = PendingSet()
        # Records whose last reindex failed, with the file mtime at that attempt
        self._failed: dict[RecordKey, int | None] = {}
        self._lock = threading.RLock()
        self._scheduler: SweepScheduler | None = None
        self._last_sweep: SweepStats | None = None

    def _default_adapter(self, index_path: Path) -> FullTextIndex:
        return FullTextIndex(
            index_path,
            heap_size=self.config.index.writer_heap_bytes,
            max_hits=self.config.index.max_hits,
        )

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def state(self) -> IndexState:
        return self._index.state

    @property
    def index_path(self) -> Path | None:
        return self._index.path

    @property
    def pending(self) -> list[DocumentRecord]:
        with self._lock:
            return list(self._pending)

    @property
    def status(self) -> EngineStatus:
        with self._lock:
            return EngineStatus(
                state=self._index.state,
                pending=len(self._pending),
                index_path=self._index.path,
                last_sweep=self._last_sweep,
            )

    def is_up_to_date(self, record: DocumentRecord) -> bool:
        with self._lock:
            return self._checker.is_up_to_date(record)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def setup(self, source_path: Path | str | None = None) -> None:
        """Open (creating if absent) the index next to *source_path* and go live.

        Leaves the engine SEARCHABLE with the initial pending set computed,
        the sweep scheduled and entry events subscribed.

        Raises:
            InvalidStateError: the engine is already set up.
            SetupError: the collection has no storage path, or the index
                cannot be created or opened.
        """
        with self._lock, batch_scope("setup"):
            next_state(self._index.state, Operation.SETUP)
            path = Path(source_path) if source_path is not None else self.collection.path
            if path is None:
                raise SetupError.unsaved_collection()

            index_path = index_path_for(path, self.config)
            logger.info("indexer_setup", library=str(path), index=str(index_path))
            self._index.setup(index_path)
            try:
                self._index.open_reader()
            except AdapterIOError as e:
                self._index.teardown()
                raise SetupError.storage_failed(str(index_path), e.message) from e

            self._pending.clear()
            self._failed.clear()
            self._pending.update(self._scan())
            logger.info("pending_computed", pending=len(self._pending))

            self._scheduler = SweepScheduler(
                self.run_sweep,
                initial_delay=self.config.sweep.initial_delay_sec,
                interval=self.config.sweep.interval_sec,
            )
            self._scheduler.start()
            self.collection.subscribe(self.handle_event)

    def open(self) -> None:
        """Open the reader (CLOSED -> SEARCHABLE)."""
        with self._lock:
            self._index.open_reader()

    def close(self) -> None:
        """Close the reader, committing any open writer first (-> CLOSED)."""
        with self._lock:
            self._index.close_reader()

    def teardown(self) -> None:
        """Release the index. Only legal from CLOSED.

        Unsubscribes from entry events and cancels the sweep. A sweep that
        is already running finishes first (it holds the lock); one that is
        waiting for the lock finds the engine NOT_IN_USE and does nothing.
        """
        with self._lock, batch_scope("teardown"):
            next_state(self._index.state, Operation.TEARDOWN)
            self.collection.unsubscribe(self.handle_event)
            scheduler, self._scheduler = self._scheduler, None
            if scheduler is not None:
                scheduler.cancel()
            self._index.teardown()
            self._pending.clear()
            self._failed.clear()
            logger.info("indexer_torn_down")
        if scheduler is not None:
            scheduler.stop()

    # =========================================================================
    # Search
    # =========================================================================

    def search(self, query_text: str) -> set[str]:
        """Citation keys of all documents matching *query_text*.

        Raises:
            NotSearchableError: the engine is not SEARCHABLE or WRITING.
            QuerySyntaxError: the query does not parse.
            SearchError: the index failed executing it.
        """
        keys = self._index.snapshot().search_keys(query_text, self.config.index.max_hits)
        logger.debug("search_completed", query=query_text, keys=len(keys))
        return keys

    # =========================================================================
    # Rebuild
    # =========================================================================

    def recreate_index(self) -> int:
        """Delete every document and reindex all entries from scratch.

        Returns the number of documents indexed.
        """
        outcome = _BatchOutcome()

        def work() -> None:
            nonlocal outcome
            logger.info("index_recreate_started")
            self._index.delete_all()
            self._pending.clear()
            self._failed.clear()
            records = [r for entry in self.collection.entries for r in self._records_for(entry)]
            outcome = self._index_records(records)

        self._write_batch("recreate", work, strict=True)
        logger.info(
            "index_recreated",
            indexed=len(outcome.indexed),
            failed=len(outcome.failed),
            deferred=len(outcome.deferred),
        )
        return len(outcome.indexed)

    # =========================================================================
    # Reconciliation sweep
    # =========================================================================

    def run_sweep(self) -> SweepStats:
        """Rescan for stale files and reindex everything pending.

        Runs only while SEARCHABLE; in any other state the pending set is
        left for a later sweep. A record leaves the pending set once its
        reindex was attempted, unless it failed and sweep.retry_failed is set.
        Records whose index write failed always stay pending.
        """
        start = time.monotonic()
        with self._lock, batch_scope("sweep"):
            state = self._index.state
            if state is not IndexState.SEARCHABLE:
                logger.debug("sweep_skipped", state=state.name)
                return SweepStats(skipped_state=state.name, still_pending=len(self._pending))

            stats = SweepStats()
            if self.config.sweep.rescan:
                stale = self._scan()
                stats.stale_found = sum(1 for r in stale if r not in self._pending)
                self._pending.update(stale)

            if self._pending:
                records = list(self._pending)
                logger.info("sweep_started", pending=len(records))
                outcome = _BatchOutcome()

                def work() -> None:
                    nonlocal outcome
                    outcome = self._index_records(records)

                self._write_batch("sweep", work)
                if not self.config.sweep.retry_failed:
                    for record in outcome.failed:
                        self._pending.discard(record)
                stats.processed = len(records)
                stats.indexed = len(outcome.indexed)
                stats.failed = len(outcome.failed)
                stats.deferred = len(outcome.deferred)

            stats.still_pending = len(self._pending)
            stats.duration_seconds = time.monotonic() - start
            self._last_sweep = stats
            if stats.processed:
                logger.info(
                    "sweep_completed",
                    indexed=stats.indexed,
                    failed=stats.failed,
                    deferred=stats.deferred,
                    still_pending=stats.still_pending,
                    duration_seconds=round(stats.duration_seconds, 3),
                )
            return stats

    def _scan(self) -> list[DocumentRecord]:
        entries = [(e.citation_key, e.file_field) for e in self.collection.entries]
        skip = None if self.config.sweep.retry_failed else self._failed_and_unchanged
        return self._checker.stale_records(entries, self._supported_files, skip=skip)

    def _failed_and_unchanged(self, record: DocumentRecord) -> bool:
        if record.key not in self._failed:
            return False
        try:
            current: int | None = record.current_mtime()
        except OSError:
            current = None
        return self._failed[record.key] == current

    # =========================================================================
    # Entry events
    # =========================================================================

    def handle_event(self, event: CollectionEvent) -> None:
        """Subscriber entry point. Indexing-enabled toggles are not handled here."""
        if isinstance(event, EntryAddedEvent):
            self.on_entry_added(event.entry)
        elif isinstance(event, EntryRemovedEvent):
            self.on_entry_removed(event.entry)
        elif isinstance(event, FieldChangedEvent):
            self.on_field_changed(event.entry, event.field_name, event.old_value, event.new_value)

    def on_entry_added(self, entry: BibEntry) -> None:
        key = entry.citation_key
        if key is None:
            logger.info("entry_without_key_skipped")
            return
        self._warn_duplicate_key(entry, key)
        records = self._records_for(entry)
        if not records:
            logger.debug("entry_without_files", key=key)
            return
        self._write_batch("entry_added", lambda: self._index_records(records))

    def on_entry_removed(self, entry: BibEntry) -> None:
        key = entry.citation_key
        if key is None:
            logger.info("entry_without_key_skipped")
            return
        self._write_batch("entry_removed", lambda: self._remove_entry_documents(entry, key))

    def on_field_changed(
        self,
        entry: BibEntry,
        field_name: str,
        old_value: str | None,
        new_value: str | None,
    ) -> None:
        if field_name == FILE_FIELD:
            self._on_files_changed(entry, old_value, new_value)
        elif field_name == KEY_FIELD:
            self._on_key_changed(entry, old_value or None, new_value or None)

    def _on_files_changed(self, entry: BibEntry, old_value: str | None, new_value: str | None) -> None:
        key = entry.citation_key
        if key is None:
            return
        old_files = set(self.collection.linked_files(old_value, existing_only=False))
        new_files = set(self.collection.linked_files(new_value, existing_only=False))
        added = new_files - old_files
        removed = old_files - new_files
        if not added and not removed:
            return
        logger.info("linked_files_changed", key=key, added=len(added), removed=len(removed))

        def work() -> None:
            # Removals first: an added file may share a removed file's name
            keep = {p.name for p in new_files}
            keep |= self._linked_names(self._same_key_entries(key, exclude=entry))
            for path in sorted(removed):
                if path.name not in keep:
                    self._delete(key, path.name)
            records = [
                DocumentRecord(p, key)
                for p in sorted(added)
                if p.is_file() and self._extractor.supports(p)
            ]
            self._index_records(records)

        self._write_batch("files_changed", work)

    def _on_key_changed(self, entry: BibEntry, old_key: str | None, new_key: str | None) -> None:
        if old_key == new_key:
            return
        if old_key is None:
            self.on_entry_added(entry)
            return
        if new_key is None:
            self._write_batch("key_cleared", lambda: self._remove_entry_documents(entry, old_key))
            return

        self._warn_duplicate_key(entry, new_key)
        survivors = self._same_key_entries(old_key, exclude=entry)

        def work() -> None:
            if survivors:
                names = self._linked_names([entry]) - self._linked_names(survivors)
                renamed = 0
                for name in sorted(names):
                    renamed += self._index.update_stored_field(
                        ENTRY_FILE, entry_file_term(old_key, name), KEY, new_key
                    )
                self._pending.rekey(old_key, new_key, names)
            else:
                renamed = self._index.update_stored_field(KEY, old_key, KEY, new_key)
                self._pending.rekey(old_key, new_key)
            self._failed = {k: v for k, v in self._failed.items() if k[0] != old_key}
            logger.info("citation_key_renamed", old=old_key, new=new_key, documents=renamed)

        try:
            self._write_batch("key_changed", work)
        except AdapterIOError as e:
            # The rename was rolled back; drop the old documents and re-extract instead
            logger.error("citation_key_rename_failed", old=old_key, new=new_key, error=e.message)
            self._write_batch("key_changed_reindex", lambda: self._reindex_under_new_key(entry, old_key))

    # =========================================================================
    # Batch helpers (callers hold the lock inside _write_batch)
    # =========================================================================

    def _write_batch(self, operation: str, work: Callable[[], object], *, strict: bool = False) -> bool:
        """Run *work* inside a writer bracket.

        Opens (and afterwards commits) a writer unless one is already open,
        in which case *work* joins the running batch. NOT_IN_USE is a no-op,
        or InvalidStateError when *strict*.
        """
        with self._lock, batch_scope(operation):
            state = self._index.state
            if state is IndexState.NOT_IN_USE:
                if strict:
                    raise InvalidStateError.illegal(state.name, operation)
                logger.warning("indexer_not_in_use", operation=operation)
                return False
            if state is IndexState.WRITING:
                work()
                return True

            self._index.open_writer()
            try:
                work()
            except BaseException:
                self._index.abort_writer()
                raise
            self._index.close_writer()
            return True

    def _index_records(self, records: list[DocumentRecord]) -> _BatchOutcome:
        """Extract, then replace each record's document. Failures are per record."""
        outcome = _BatchOutcome()
        for record, (mtime, text) in self._extract_all(records):
            if text is None or mtime is None:
                self._failed[record.key] = mtime
                outcome.failed.append(record)
                continue
            try:
                self._index.delete_documents(record.cite_key, record.file_name)
                self._index.add_document(
                    IndexedDocument(record.cite_key, record.file_name, text, mtime)
                )
            except AdapterIOError as e:
                logger.error("index_write_failed", path=str(record.file), key=record.cite_key, error=e.message)
                self._failed.pop(record.key, None)
                self._pending.add(record)
                outcome.deferred.append(record)
                continue
            logger.debug("document_indexed", path=str(record.file), key=record.cite_key)
            record.stored_mtime = mtime
            record.index_id = None
            self._failed.pop(record.key, None)
            self._pending.discard(record)
            outcome.indexed.append(record)
        return outcome

    def _extract_all(
        self, records: list[DocumentRecord]
    ) -> list[tuple[DocumentRecord, tuple[int | None, str | None]]]:
        workers = min(self.config.extraction.max_workers, len(records))
        if workers <= 1:
            return [(r, self._extract_one(r)) for r in records]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="citeindex-extract") as pool:
            # Each task gets its own context copy so log lines keep the batch id
            futures = [
                pool.submit(contextvars.copy_context().run, self._extract_one, r) for r in records
            ]
            return [(r, f.result()) for r, f in zip(records, futures, strict=True)]

    def _extract_one(self, record: DocumentRecord) -> tuple[int | None, str | None]:
        """Return (mtime, text). Text is None on failure, already logged."""
        if not self._extractor.supports(record.file):
            logger.warning("unsupported_file_skipped", path=str(record.file))
            return None, None
        try:
            # mtime before extraction: an edit during extraction stays stale
            mtime = record.current_mtime()
        except OSError as e:
            logger.warning("file_unreadable", path=str(record.file), error=str(e))
            return None, None
        try:
            return mtime, self._extractor.extract(record.file)
        except ExtractionError as e:
            logger.warning("extraction_failed", path=str(record.file), key=record.cite_key, error=e.message)
            return mtime, None

    def _delete(self, cite_key: str, file_name: str | None = None) -> None:
        try:
            self._index.delete_documents(cite_key, file_name)
        except AdapterIOError as e:
            logger.error("index_delete_failed", key=cite_key, file=file_name, error=e.message)
            return
        self._pending.discard_key(cite_key, file_name)
        self._failed = {
            k: v
            for k, v in self._failed.items()
            if not (k[0] == cite_key and (file_name is None or k[1] == file_name))
        }
        logger.debug("documents_deleted", key=cite_key, file=file_name)

    def _remove_entry_documents(self, entry: BibEntry, key: str) -> None:
        """Delete *entry*'s documents, sparing files still linked under the same key."""
        survivors = self._same_key_entries(key, exclude=entry)
        if not survivors:
            logger.info("entry_documents_removed", key=key)
            self._delete(key)
            return
        names = self._linked_names([entry]) - self._linked_names(survivors)
        logger.warning("duplicate_citation_key", key=key, entries=len(survivors) + 1, removing=len(names))
        for name in sorted(names):
            self._delete(key, name)

    def _reindex_under_new_key(self, entry: BibEntry, old_key: str) -> None:
        """Rename by re-extraction. Write failures leave the records pending."""
        self._remove_entry_documents(entry, old_key)
        outcome = self._index_records(self._records_for(entry))
        logger.info(
            "citation_key_reindexed",
            old=old_key,
            new=entry.citation_key,
            indexed=len(outcome.indexed),
            deferred=len(outcome.deferred),
        )

    # =========================================================================
    # Entry helpers
    # =========================================================================

    def _supported_files(self, file_field: str | None) -> list[Path]:
        return [p for p in self.collection.linked_files(file_field) if self._extractor.supports(p)]

    def _records_for(self, entry: BibEntry) -> list[DocumentRecord]:
        key = entry.citation_key
        if key is None:
            return []
        return [DocumentRecord(p, key) for p in self._supported_files(entry.file_field)]

    def _linked_names(self, entries: Iterable[BibEntry]) -> set[str]:
        return {
            p.name
            for e in entries
            for p in self.collection.linked_files(e.file_field, existing_only=False)
        }

    def _same_key_entries(self, key: str, *, exclude: BibEntry) -> list[BibEntry]:
        return [e for e in self.collection.entries_with_key(key) if e is not exclude]

    def _warn_duplicate_key(self, entry: BibEntry, key: str) -> None:
        others = self._same_key_entries(key, exclude=entry)
        if others:
            logger.warning("duplicate_citation_key", key=key, entries=len(others) + 1)
