"""Full-text index of linked documents via Tantivy.

Thin adapter over the search engine: open/close for reading and writing,
add/delete/update documents, run a query, fetch a stored field. No
synchronization logic lives here; callers bracket write sessions.

Schema::

    citation_key  raw text, stored     exact-match owning entry key
    file_name     raw text, stored     exact-match source file name
    entry_file    raw text             key + file name, for scoped deletes
    content       tokenized, stored    extracted full text
    modified      integer, stored      file mtime (ns) at extraction

Usage::

    index = FullTextIndex(index_path)
    index.create()
    index.open_for_read()

    index.open_for_write()
    index.add_document(IndexedDocument("smith2020", "smith.pdf", text, mtime))
    index.commit_and_reopen()

    hits = index.search("graphene")
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import structlog
import tantivy

from citeindex.config.constants import (
    CONTENT,
    ENTRY_FILE,
    ENTRY_FILE_SEPARATOR,
    FILE_NAME,
    KEY,
    LOOKUP_LIMIT,
    MODIFIED,
)
from citeindex.core.errors import (
    AdapterIOError,
    NotSearchableError,
    NotWritableError,
    QuerySyntaxError,
    SearchError,
)

logger = structlog.get_logger()

_EXACT_FIELDS = frozenset({KEY, FILE_NAME, ENTRY_FILE})
_ATTRS = {KEY: "cite_key", FILE_NAME: "file_name", CONTENT: "content", MODIFIED: "modified"}


def entry_file_term(cite_key: str, file_name: str) -> str:
    return f"{cite_key}{ENTRY_FILE_SEPARATOR}{file_name}"


@dataclass(frozen=True)
class IndexedDocument:
    """The stored form of one (entry, file) document."""

    cite_key: str
    file_name: str
    content: str
    modified: int

    def value_of(self, field: str) -> Any:
        if field == ENTRY_FILE:
            return entry_file_term(self.cite_key, self.file_name)
        return getattr(self, _ATTRS[field])

    def to_tantivy(self) -> tantivy.Document:
        doc = tantivy.Document()
        doc.add_text(KEY, self.cite_key)
        doc.add_text(FILE_NAME, self.file_name)
        doc.add_text(ENTRY_FILE, entry_file_term(self.cite_key, self.file_name))
        doc.add_text(CONTENT, self.content)
        doc.add_integer(MODIFIED, self.modified)
        return doc

    @classmethod
    def from_tantivy(cls, doc: Any) -> IndexedDocument:
        return cls(
            cite_key=doc.get_first(KEY) or "",
            file_name=doc.get_first(FILE_NAME) or "",
            content=doc.get_first(CONTENT) or "",
            modified=int(doc.get_first(MODIFIED) or 0),
        )


def _build_schema() -> Any:
    schema_builder = tantivy.SchemaBuilder()
    # Raw tokenizer: the whole value is one term, for exact matching and deletion
    schema_builder.add_text_field(KEY, stored=True, tokenizer_name="raw")
    schema_builder.add_text_field(FILE_NAME, stored=True, tokenizer_name="raw")
    schema_builder.add_text_field(ENTRY_FILE, stored=False, tokenizer_name="raw")
    schema_builder.add_text_field(CONTENT, stored=True, tokenizer_name="default")
    schema_builder.add_integer_field(MODIFIED, stored=True, indexed=False)
    return schema_builder.build()


class ReadSnapshot:
    """A point-in-time view of the index.

    Hits and stored fields read through one snapshot are consistent with
    each other even if a writer commits in the meantime.
    """

    def __init__(self, index: Any, schema: Any, searcher: Any, max_hits: int) -> None:
        self._index = index
        self._schema = schema
        self._searcher = searcher
        self._max_hits = max_hits

    @property
    def num_docs(self) -> int:
        return int(self._searcher.num_docs)

    def search(
        self,
        query_text: str,
        field: str = CONTENT,
        max_hits: int | None = None,
    ) -> list[Any]:
        """Run *query_text* (Tantivy query syntax) and return ranked doc addresses.

        Raises:
            QuerySyntaxError: the query does not parse.
            SearchError: the engine failed executing it.
        """
        try:
            parsed = self._index.parse_query(query_text, [field])
        except ValueError as e:
            raise QuerySyntaxError.invalid(query_text, str(e)) from e
        return self._run(parsed, max_hits or self._max_hits, query_text)

    def search_keys(self, query_text: str, max_hits: int | None = None) -> set[str]:
        """Distinct citation keys of the documents whose content matches *query_text*."""
        return self.cite_keys(self.search(query_text, CONTENT, max_hits))

    def cite_keys(self, doc_ids: Iterable[Any]) -> set[str]:
        keys: set[str] = set()
        for doc_id in doc_ids:
            key = self.get_stored_field(doc_id, KEY)
            if key:
                keys.add(key)
        return keys

    def term_search(self, field: str, value: str, limit: int | None = None) -> list[Any]:
        """Exact-term search on a raw field."""
        query = tantivy.Query.term_query(self._schema, field, value)
        return self._run(query, limit or max(self.num_docs, 1), f"{field}:{value}")

    def lookup(self, cite_key: str, file_name: str, limit: int = LOOKUP_LIMIT) -> list[Any]:
        """Documents matching both *cite_key* and *file_name*."""
        query = tantivy.Query.boolean_query(
            [
                (tantivy.Occur.Must, tantivy.Query.term_query(self._schema, KEY, cite_key)),
                (tantivy.Occur.Must, tantivy.Query.term_query(self._schema, FILE_NAME, file_name)),
            ]
        )
        return self._run(query, limit, f"{cite_key}/{file_name}")

    def all_documents(self) -> list[Any]:
        return self._run(tantivy.Query.all_query(), max(self.num_docs, 1), "*")

    def get_stored_field(self, doc_id: Any, field: str) -> Any:
        try:
            return self._searcher.doc(doc_id).get_first(field)
        except (OSError, ValueError) as e:
            raise SearchError.failed(f"doc {doc_id}", str(e)) from e

    def get_document(self, doc_id: Any) -> IndexedDocument:
        try:
            return IndexedDocument.from_tantivy(self._searcher.doc(doc_id))
        except (OSError, ValueError) as e:
            raise SearchError.failed(f"doc {doc_id}", str(e)) from e

    def _run(self, query: Any, limit: int, label: str) -> list[Any]:
        try:
            result = self._searcher.search(query, limit)
        except (OSError, ValueError) as e:
            raise SearchError.failed(label, str(e)) from e
        return [doc_address for _score, doc_address in result.hits]


class FullTextIndex:
    """
    Tantivy index holding one document per (entry, linked file).

    Write sessions:
    - open_for_write() acquires the single Tantivy writer
    - add/delete/update calls go to that writer, uncommitted
    - commit_and_reopen() commits, releases the writer and reloads the
      reader, so readers see the new commit immediately and never see
      uncommitted state
    - rollback() discards the session

    The adapter remembers its own uncommitted adds and deletes so that
    update_stored_field() within a session sees them.
    """

    def __init__(
        self,
        index_path: Path | str,
        *,
        heap_size: int = 50_000_000,
        max_hits: int = 9999,
    ) -> None:
        self.index_path = Path(index_path)
        self._heap_size = heap_size
        self._max_hits = max_hits
        self._schema = _build_schema()
        self._index: Any = None
        self._searcher: Any = None
        self._writer: Any = None
        # Uncommitted session bookkeeping
        self._session_adds: list[IndexedDocument] = []
        self._session_deletes: list[tuple[str, str]] = []
        self._session_cleared = False

    # =========================================================================
    # Storage
    # =========================================================================

    def exists(self) -> bool:
        return self.index_path.is_dir() and tantivy.Index.exists(str(self.index_path))

    def create(self) -> bool:
        """Create an empty index if none exists. Returns True if created."""
        if self.exists():
            return False
        try:
            self.index_path.mkdir(parents=True, exist_ok=True)
            self._index = tantivy.Index(self._schema, path=str(self.index_path), reuse=True)
        except (OSError, ValueError) as e:
            raise AdapterIOError.failed("create", str(e)) from e
        logger.info("index_created", path=str(self.index_path))
        return True

    def _ensure_index(self) -> Any:
        if self._index is None:
            if not self.exists():
                raise AdapterIOError.failed("open", f"no index at {self.index_path}")
            try:
                self._index = tantivy.Index(self._schema, path=str(self.index_path), reuse=True)
            except (OSError, ValueError) as e:
                raise AdapterIOError.failed("open", str(e)) from e
        return self._index

    def release(self) -> None:
        """Drop all handles. A pending write session is rolled back."""
        if self._writer is not None:
            self.rollback()
        self._searcher = None
        self._index = None

    # =========================================================================
    # Reader
    # =========================================================================

    @property
    def is_open(self) -> bool:
        return self._searcher is not None

    def open_for_read(self) -> None:
        index = self._ensure_index()
        try:
            index.reload()
            self._searcher = index.searcher()
        except (OSError, ValueError) as e:
            raise AdapterIOError.failed("open reader", str(e)) from e

    def close_read(self) -> None:
        self._searcher = None

    def snapshot(self) -> ReadSnapshot:
        searcher = self._searcher
        if searcher is None:
            raise NotSearchableError.for_state("CLOSED")
        return ReadSnapshot(self._index, self._schema, searcher, self._max_hits)

    def search(self, query_text: str, field: str = CONTENT, max_hits: int | None = None) -> list[Any]:
        return self.snapshot().search(query_text, field, max_hits)

    def get_stored_field(self, doc_id: Any, field: str) -> Any:
        return self.snapshot().get_stored_field(doc_id, field)

    def lookup(self, cite_key: str, file_name: str, limit: int = LOOKUP_LIMIT) -> list[Any]:
        return self.snapshot().lookup(cite_key, file_name, limit)

    def doc_count(self) -> int:
        return self.snapshot().num_docs

    def cite_keys(self) -> set[str]:
        snapshot = self.snapshot()
        return snapshot.cite_keys(snapshot.all_documents())

    # =========================================================================
    # Writer
    # =========================================================================

    @property
    def is_writing(self) -> bool:
        return self._writer is not None

    def open_for_write(self) -> None:
        index = self._ensure_index()
        try:
            self._writer = index.writer(heap_size=self._heap_size)
        except (OSError, ValueError) as e:
            # ValueError: lock held by another writer
            raise AdapterIOError.failed("open writer", str(e)) from e
        self._reset_session()

    def commit_and_reopen(self) -> None:
        """Commit the session, release the writer, reload the reader."""
        writer = self._require_writer("commit")
        try:
            writer.commit()
            writer.wait_merging_threads()
        except (OSError, ValueError) as e:
            self._writer = None
            self._reset_session()
            raise AdapterIOError.failed("commit", str(e)) from e
        self._writer = None
        self._reset_session()
        self.open_for_read()

    def rollback(self) -> None:
        """Discard the session and release the writer."""
        writer = self._require_writer("rollback")
        self._writer = None
        self._reset_session()
        try:
            writer.rollback()
        finally:
            with contextlib.suppress(ValueError):
                writer.wait_merging_threads()

    def add_document(self, document: IndexedDocument) -> None:
        writer = self._require_writer("add_document")
        try:
            writer.add_document(document.to_tantivy())
        except (OSError, ValueError) as e:
            raise AdapterIOError.failed("add_document", str(e)) from e
        self._session_adds.append(document)

    def delete_documents(self, cite_key: str, file_name: str | None = None) -> None:
        """Delete all documents of *cite_key*, or only its *file_name* document."""
        if file_name is None:
            self._delete_term(KEY, cite_key)
        else:
            self._delete_term(ENTRY_FILE, entry_file_term(cite_key, file_name))

    def delete_all(self) -> None:
        writer = self._require_writer("delete_all")
        try:
            writer.delete_all_documents()
        except (OSError, ValueError) as e:
            raise AdapterIOError.failed("delete_all", str(e)) from e
        self._session_adds.clear()
        self._session_cleared = True

    def update_stored_field(self, match_field: str, match_value: str, field: str, value: Any) -> int:
        """Set *field* to *value* on every document whose *match_field* is *match_value*.

        Tantivy cannot update in place, so matching documents are read back
        from their stored fields, deleted by term and re-added. Content is
        not re-extracted. Returns the number of documents rewritten.
        """
        if match_field not in _EXACT_FIELDS:
            raise ValueError(f"Can only match on exact fields, not {match_field!r}")
        if field not in _ATTRS:
            raise ValueError(f"Unknown stored field {field!r}")
        self._require_writer("update_stored_field")

        committed: list[IndexedDocument] = []
        if self._searcher is not None:
            snapshot = self.snapshot()
            for doc_id in snapshot.term_search(match_field, match_value):
                doc = snapshot.get_document(doc_id)
                if not self._deleted_in_session(doc):
                    committed.append(doc)
        uncommitted = [d for d in self._session_adds if d.value_of(match_field) == match_value]

        self._delete_term(match_field, match_value)
        rewritten = [replace(d, **{_ATTRS[field]: value}) for d in committed + uncommitted]
        for doc in rewritten:
            self.add_document(doc)
        return len(rewritten)

    def _delete_term(self, field: str, value: str) -> None:
        writer = self._require_writer("delete_documents")
        try:
            writer.delete_documents(field, value)
        except (OSError, ValueError) as e:
            raise AdapterIOError.failed("delete_documents", str(e)) from e
        self._session_deletes.append((field, value))
        self._session_adds = [d for d in self._session_adds if d.value_of(field) != value]

    def _deleted_in_session(self, doc: IndexedDocument) -> bool:
        if self._session_cleared:
            return True
        return any(doc.value_of(f) == v for f, v in self._session_deletes)

    def _require_writer(self, operation: str) -> Any:
        if self._writer is None:
            raise NotWritableError.for_state("SEARCHABLE" if self.is_open else "CLOSED", operation)
        return self._writer

    def _reset_session(self) -> None:
        self._session_adds = []
        self._session_deletes = []
        self._session_cleared = False
