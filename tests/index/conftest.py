"""Shared fixtures for index tests."""

from __future__ import annotations

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from citeindex.index.lexical import FullTextIndex


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fulltext_index(temp_dir: Path) -> Generator[FullTextIndex, None, None]:
    """A freshly created, readable index."""
    index = FullTextIndex(temp_dir / "refs.bib.tantivy")
    index.create()
    index.open_for_read()
    yield index
    index.release()
