"""Bibliographic entry collection consumed by the synchronization engine."""

from citeindex.library.collection import EntryCollection
from citeindex.library.entry import BibEntry, LinkedFile, parse_file_field, resolve_linked_files
from citeindex.library.events import (
    CollectionEvent,
    EntryAddedEvent,
    EntryRemovedEvent,
    EventHandler,
    FieldChangedEvent,
    IndexingEnabledChangedEvent,
)

__all__ = [
    "BibEntry",
    "CollectionEvent",
    "EntryAddedEvent",
    "EntryCollection",
    "EntryRemovedEvent",
    "EventHandler",
    "FieldChangedEvent",
    "IndexingEnabledChangedEvent",
    "LinkedFile",
    "parse_file_field",
    "resolve_linked_files",
]
