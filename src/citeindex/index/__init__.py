"""Index module - full-text index of documents linked from entries.

This module provides:
- Tantivy adapter: one document per (citation key, linked file)
- Lifecycle state machine guarding every adapter call
- Staleness checks comparing stored and on-disk modification times
- Text extraction from linked files

Synchronization with a live collection lives in `citeindex.sync`.
"""

from citeindex.index.extraction import DocumentExtractor, TextExtractor
from citeindex.index.lexical import FullTextIndex, IndexedDocument, ReadSnapshot
from citeindex.index.managed import ManagedIndex
from citeindex.index.records import DocumentRecord, PendingSet
from citeindex.index.staleness import StalenessChecker
from citeindex.index.state import IndexState, Operation, next_state

__all__ = [
    "DocumentExtractor",
    "DocumentRecord",
    "FullTextIndex",
    "IndexState",
    "IndexedDocument",
    "ManagedIndex",
    "Operation",
    "PendingSet",
    "ReadSnapshot",
    "StalenessChecker",
    "TextExtractor",
    "next_state",
]
