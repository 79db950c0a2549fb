"""Unit tests for the Tantivy adapter (lexical.py).

Tests cover:
- Index creation and reopening
- Write sessions (commit, rollback, uncommitted isolation)
- Deletion by citation key and by (key, file)
- Stored-field rewrite for key renames
- Search, lookup and stored-field access
"""

from __future__ import annotations

from pathlib import Path

import pytest

from citeindex.config.constants import CONTENT, FILE_NAME, KEY, MODIFIED
from citeindex.core.errors import (
    AdapterIOError,
    NotSearchableError,
    NotWritableError,
    QuerySyntaxError,
)
from citeindex.index.lexical import FullTextIndex, IndexedDocument, entry_file_term


def make_doc(key: str, file_name: str, content: str, modified: int = 1) -> IndexedDocument:
    return IndexedDocument(cite_key=key, file_name=file_name, content=content, modified=modified)


def commit_docs(index: FullTextIndex, *docs: IndexedDocument) -> None:
    index.open_for_write()
    for doc in docs:
        index.add_document(doc)
    index.commit_and_reopen()


def keys_for(index: FullTextIndex, query: str) -> set[str]:
    return index.snapshot().search_keys(query)


class TestCreation:
    """Tests for index creation."""

    def test_create_then_exists(self, temp_dir: Path) -> None:
        """Should create an empty index once."""
        index = FullTextIndex(temp_dir / "idx")

        assert index.exists() is False
        assert index.create() is True
        assert index.exists() is True
        assert FullTextIndex(temp_dir / "idx").create() is False

    def test_open_missing_index_fails(self, temp_dir: Path) -> None:
        """Opening a reader where no index exists is an adapter error."""
        with pytest.raises(AdapterIOError):
            FullTextIndex(temp_dir / "missing").open_for_read()

    def test_documents_survive_reopen(self, temp_dir: Path) -> None:
        """Committed documents are visible to a new adapter on the same path."""
        first = FullTextIndex(temp_dir / "idx")
        first.create()
        commit_docs(first, make_doc("smith2020", "smith.pdf", "graphene lattice"))
        first.release()

        second = FullTextIndex(temp_dir / "idx")
        second.open_for_read()

        assert keys_for(second, "graphene") == {"smith2020"}
        second.release()


class TestWriteSessions:
    """Tests for write session semantics."""

    def test_commit_makes_documents_searchable(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("smith2020", "smith.pdf", "Graphene sheets"))

        assert keys_for(fulltext_index, "graphene") == {"smith2020"}
        assert fulltext_index.doc_count() == 1

    def test_uncommitted_documents_invisible(self, fulltext_index: FullTextIndex) -> None:
        """Readers never observe a writer's uncommitted state."""
        fulltext_index.open_for_write()
        fulltext_index.add_document(make_doc("smith2020", "smith.pdf", "graphene"))

        assert keys_for(fulltext_index, "graphene") == set()

        fulltext_index.commit_and_reopen()
        assert keys_for(fulltext_index, "graphene") == {"smith2020"}

    def test_rollback_discards_session(self, fulltext_index: FullTextIndex) -> None:
        fulltext_index.open_for_write()
        fulltext_index.add_document(make_doc("smith2020", "smith.pdf", "graphene"))
        fulltext_index.rollback()

        assert fulltext_index.is_writing is False
        fulltext_index.open_for_read()
        assert fulltext_index.doc_count() == 0

    def test_writer_released_after_commit(self, fulltext_index: FullTextIndex) -> None:
        """A second session can start once the first committed."""
        commit_docs(fulltext_index, make_doc("a", "a.pdf", "alpha"))
        commit_docs(fulltext_index, make_doc("b", "b.pdf", "beta"))

        assert fulltext_index.cite_keys() == {"a", "b"}

    def test_mutation_without_writer_rejected(self, fulltext_index: FullTextIndex) -> None:
        with pytest.raises(NotWritableError):
            fulltext_index.add_document(make_doc("a", "a.pdf", "alpha"))

    def test_search_without_reader_rejected(self, fulltext_index: FullTextIndex) -> None:
        fulltext_index.close_read()
        with pytest.raises(NotSearchableError):
            fulltext_index.search("alpha")


class TestDeletion:
    """Tests for term deletion."""

    def test_delete_all_documents_of_key(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(
            fulltext_index,
            make_doc("a", "one.pdf", "shared words"),
            make_doc("a", "two.pdf", "shared words"),
            make_doc("b", "three.pdf", "shared words"),
        )

        fulltext_index.open_for_write()
        fulltext_index.delete_documents("a")
        fulltext_index.commit_and_reopen()

        assert keys_for(fulltext_index, "shared") == {"b"}

    def test_delete_single_file_of_key(self, fulltext_index: FullTextIndex) -> None:
        """Scoped delete leaves the key's other files and other keys' same-named files."""
        commit_docs(
            fulltext_index,
            make_doc("a", "one.pdf", "alpha"),
            make_doc("a", "two.pdf", "beta"),
            make_doc("b", "one.pdf", "alpha"),
        )

        fulltext_index.open_for_write()
        fulltext_index.delete_documents("a", "one.pdf")
        fulltext_index.commit_and_reopen()

        assert keys_for(fulltext_index, "alpha") == {"b"}
        assert keys_for(fulltext_index, "beta") == {"a"}

    def test_delete_then_add_in_one_session_keeps_new(self, fulltext_index: FullTextIndex) -> None:
        """Replacing a document within one session leaves only the new version."""
        commit_docs(fulltext_index, make_doc("a", "one.pdf", "old text", modified=1))

        fulltext_index.open_for_write()
        fulltext_index.delete_documents("a", "one.pdf")
        fulltext_index.add_document(make_doc("a", "one.pdf", "new text", modified=2))
        fulltext_index.commit_and_reopen()

        hits = fulltext_index.lookup("a", "one.pdf")
        assert len(hits) == 1
        assert fulltext_index.get_stored_field(hits[0], MODIFIED) == 2
        assert keys_for(fulltext_index, "old") == set()

    def test_delete_all(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("a", "a.pdf", "x"), make_doc("b", "b.pdf", "y"))

        fulltext_index.open_for_write()
        fulltext_index.delete_all()
        fulltext_index.commit_and_reopen()

        assert fulltext_index.doc_count() == 0


class TestUpdateStoredField:
    """Tests for rewriting the citation key of stored documents."""

    def test_rename_committed_documents(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(
            fulltext_index,
            make_doc("old", "one.pdf", "graphene", modified=5),
            make_doc("old", "two.pdf", "lattice", modified=6),
        )

        fulltext_index.open_for_write()
        count = fulltext_index.update_stored_field(KEY, "old", KEY, "new")
        fulltext_index.commit_and_reopen()

        assert count == 2
        assert fulltext_index.cite_keys() == {"new"}
        hits = fulltext_index.lookup("new", "one.pdf")
        assert len(hits) == 1
        # Content and mtime carried over without re-extraction
        assert fulltext_index.get_stored_field(hits[0], CONTENT) == "graphene"
        assert fulltext_index.get_stored_field(hits[0], MODIFIED) == 5

    def test_rename_includes_uncommitted_adds(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("old", "one.pdf", "alpha"))

        fulltext_index.open_for_write()
        fulltext_index.add_document(make_doc("old", "two.pdf", "beta"))
        count = fulltext_index.update_stored_field(KEY, "old", KEY, "new")
        fulltext_index.commit_and_reopen()

        assert count == 2
        assert keys_for(fulltext_index, "alpha OR beta") == {"new"}
        assert fulltext_index.doc_count() == 2

    def test_rename_skips_documents_deleted_in_session(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("old", "one.pdf", "alpha"), make_doc("old", "two.pdf", "beta"))

        fulltext_index.open_for_write()
        fulltext_index.delete_documents("old", "one.pdf")
        count = fulltext_index.update_stored_field(KEY, "old", KEY, "new")
        fulltext_index.commit_and_reopen()

        assert count == 1
        assert fulltext_index.lookup("new", "one.pdf") == []
        assert len(fulltext_index.lookup("new", "two.pdf")) == 1

    def test_rename_scoped_to_one_file(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("k", "one.pdf", "alpha"), make_doc("k", "two.pdf", "beta"))

        fulltext_index.open_for_write()
        fulltext_index.update_stored_field("entry_file", entry_file_term("k", "one.pdf"), KEY, "k2")
        fulltext_index.commit_and_reopen()

        assert keys_for(fulltext_index, "alpha") == {"k2"}
        assert keys_for(fulltext_index, "beta") == {"k"}

    def test_rename_rejects_tokenized_match_field(self, fulltext_index: FullTextIndex) -> None:
        fulltext_index.open_for_write()
        with pytest.raises(ValueError, match="exact"):
            fulltext_index.update_stored_field(CONTENT, "x", KEY, "y")
        fulltext_index.rollback()


class TestSearch:
    """Tests for queries and stored fields."""

    def test_invalid_query_raises_syntax_error(self, fulltext_index: FullTextIndex) -> None:
        with pytest.raises(QuerySyntaxError):
            fulltext_index.search("nosuchfield:value")

    def test_phrase_query(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(
            fulltext_index,
            make_doc("a", "a.pdf", "carbon nanotube growth"),
            make_doc("b", "b.pdf", "growth of carbon"),
        )

        assert keys_for(fulltext_index, '"carbon nanotube"') == {"a"}

    def test_search_keys_distinct_per_entry(self, fulltext_index: FullTextIndex) -> None:
        """Several matching files of one entry yield its key once."""
        commit_docs(
            fulltext_index,
            make_doc("a", "x.pdf", "graphene"),
            make_doc("a", "y.pdf", "graphene oxide"),
            make_doc("b", "z.pdf", "silicon"),
        )

        snapshot = fulltext_index.snapshot()

        assert len(snapshot.search("graphene")) == 2
        assert snapshot.search_keys("graphene") == {"a"}
        assert len(snapshot.search_keys("graphene OR silicon", max_hits=1)) == 1

    def test_lookup_by_key_and_file(self, fulltext_index: FullTextIndex) -> None:
        commit_docs(fulltext_index, make_doc("a", "x.pdf", "alpha"), make_doc("a", "y.pdf", "alpha"))

        hits = fulltext_index.lookup("a", "y.pdf")

        assert len(hits) == 1
        assert fulltext_index.get_stored_field(hits[0], FILE_NAME) == "y.pdf"

    def test_snapshot_stable_across_commit(self, fulltext_index: FullTextIndex) -> None:
        """A snapshot keeps seeing the documents it was taken with."""
        commit_docs(fulltext_index, make_doc("a", "x.pdf", "alpha"))
        snapshot = fulltext_index.snapshot()

        fulltext_index.open_for_write()
        fulltext_index.delete_all()
        fulltext_index.commit_and_reopen()

        hits = snapshot.search("alpha")
        assert [snapshot.get_stored_field(h, KEY) for h in hits] == ["a"]
        assert fulltext_index.doc_count() == 0
