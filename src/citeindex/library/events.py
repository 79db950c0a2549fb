"""Change events published by an entry collection."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from citeindex.library.entry import BibEntry


@dataclass(frozen=True)
class EntryAddedEvent:
    entry: BibEntry


@dataclass(frozen=True)
class EntryRemovedEvent:
    entry: BibEntry


@dataclass(frozen=True)
class FieldChangedEvent:
    entry: BibEntry
    field_name: str
    old_value: str | None
    new_value: str | None


@dataclass(frozen=True)
class IndexingEnabledChangedEvent:
    """Collection-level toggle for full-text indexing."""

    enabled: bool


CollectionEvent = Union[
    EntryAddedEvent,
    EntryRemovedEvent,
    FieldChangedEvent,
    IndexingEnabledChangedEvent,
]

EventHandler = Callable[[CollectionEvent], None]
