"""Index adapter calls guarded by the lifecycle state machine.

Transitions (anything else raises InvalidStateError)::

    NOT_IN_USE --setup--------> CLOSED
    CLOSED -----open_reader---> SEARCHABLE
    SEARCHABLE -open_writer---> WRITING        (from CLOSED: open_reader first)
    WRITING ----close_writer--> SEARCHABLE     (commit, reader reopened)
    WRITING ----abort_writer--> SEARCHABLE     (rollback, reader reopened)
    SEARCHABLE -close_reader--> CLOSED         (from WRITING: close_writer first)
    CLOSED -----teardown------> NOT_IN_USE

Mutations outside WRITING raise NotWritableError; queries outside
SEARCHABLE/WRITING raise NotSearchableError. ManagedIndex is not locked:
the owner serializes every call except search.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from citeindex.config.constants import CONTENT
from citeindex.core.errors import AdapterIOError, NotSearchableError, SetupError
from citeindex.index.lexical import FullTextIndex, IndexedDocument, ReadSnapshot
from citeindex.index.state import (
    IndexState,
    Operation,
    next_state,
    require_searchable,
    require_writable,
)

logger = structlog.get_logger()

AdapterFactory = Callable[[Path], FullTextIndex]


class ManagedIndex:
    """One index, its adapter, and its current lifecycle state."""

    def __init__(self, adapter_factory: AdapterFactory) -> None:
        self._adapter_factory = adapter_factory
        self._adapter: FullTextIndex | None = None
        self._state = IndexState.NOT_IN_USE

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def path(self) -> Path | None:
        return self._adapter.index_path if self._adapter is not None else None

    def _advance(self, operation: Operation) -> IndexState:
        previous = self._state
        self._state = next_state(previous, operation)
        logger.debug(
            "index_state_changed",
            operation=operation.value,
            previous=previous.name,
            state=self._state.name,
        )
        return self._state

    def _check(self, operation: Operation) -> None:
        next_state(self._state, operation)

    @property
    def adapter(self) -> FullTextIndex:
        if self._adapter is None:
            raise RuntimeError("Index has not been set up")
        return self._adapter

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def setup(self, index_path: Path) -> bool:
        """Bind storage at *index_path*, creating an empty index if absent.

        Returns True if the index was created.
        """
        self._check(Operation.SETUP)
        adapter = self._adapter_factory(index_path)
        try:
            created = adapter.create()
        except AdapterIOError as e:
            raise SetupError.storage_failed(str(index_path), e.message) from e
        if created:
            logger.warning("index_empty", path=str(index_path))
        self._adapter = adapter
        self._advance(Operation.SETUP)
        return created

    def open_reader(self) -> None:
        self._check(Operation.OPEN_READER)
        self.adapter.open_for_read()
        self._advance(Operation.OPEN_READER)

    def open_writer(self) -> None:
        if self._state is IndexState.CLOSED:
            self.open_reader()
        self._check(Operation.OPEN_WRITER)
        self.adapter.open_for_write()
        self._advance(Operation.OPEN_WRITER)

    def close_writer(self) -> None:
        """Commit and reopen the reader so it sees the new commit."""
        self._check(Operation.CLOSE_WRITER)
        try:
            self.adapter.commit_and_reopen()
        except AdapterIOError:
            # The adapter has already dropped the writer
            self._advance(Operation.ABORT_WRITER)
            self._reopen_reader_after_failure()
            raise
        self._advance(Operation.CLOSE_WRITER)

    def abort_writer(self) -> None:
        self._check(Operation.ABORT_WRITER)
        try:
            self.adapter.rollback()
        finally:
            self._advance(Operation.ABORT_WRITER)
            self._reopen_reader_after_failure()

    def _reopen_reader_after_failure(self) -> None:
        try:
            self.adapter.open_for_read()
        except AdapterIOError as e:
            logger.error("reader_reopen_failed", error=e.message)

    def close_reader(self) -> None:
        if self._state is IndexState.WRITING:
            self.close_writer()
        self._check(Operation.CLOSE_READER)
        self.adapter.close_read()
        self._advance(Operation.CLOSE_READER)

    def teardown(self) -> None:
        self._check(Operation.TEARDOWN)
        self.adapter.release()
        self._adapter = None
        self._advance(Operation.TEARDOWN)

    # =========================================================================
    # Guarded adapter calls
    # =========================================================================

    def add_document(self, document: IndexedDocument) -> None:
        require_writable(self._state, "add_document")
        self.adapter.add_document(document)

    def delete_documents(self, cite_key: str, file_name: str | None = None) -> None:
        require_writable(self._state, "delete_documents")
        self.adapter.delete_documents(cite_key, file_name)

    def delete_all(self) -> None:
        require_writable(self._state, "delete_all")
        self.adapter.delete_all()

    def update_stored_field(self, match_field: str, match_value: str, field: str, value: Any) -> int:
        require_writable(self._state, "update_stored_field")
        return self.adapter.update_stored_field(match_field, match_value, field, value)

    def snapshot(self) -> ReadSnapshot:
        """Reader snapshot for an unlocked query.

        Safe against a concurrent close and teardown: a query that loses
        the race gets NotSearchableError.
        """
        adapter = self._adapter
        require_searchable(self._state)
        if adapter is None:
            raise NotSearchableError.for_state(IndexState.NOT_IN_USE.name)
        return adapter.snapshot()

    def search(self, query_text: str, field: str = CONTENT, max_hits: int | None = None) -> list[Any]:
        return self.snapshot().search(query_text, field, max_hits)

    def get_stored_field(self, doc_id: Any, field: str) -> Any:
        return self.snapshot().get_stored_field(doc_id, field)
