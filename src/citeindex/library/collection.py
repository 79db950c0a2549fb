"""In-memory entry collection with explicit subscribe/unsubscribe."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path

import structlog

from citeindex.library.entry import BibEntry, resolve_linked_files
from citeindex.library.events import (
    CollectionEvent,
    EntryAddedEvent,
    EntryRemovedEvent,
    EventHandler,
    FieldChangedEvent,
    IndexingEnabledChangedEvent,
)

logger = structlog.get_logger()


class EntryCollection:
    """A live, mutable set of entries backed (optionally) by a file on disk.

    Events are delivered synchronously on the mutating thread, after the
    change has been applied. A subscriber that raises is logged and does
    not prevent delivery to the others.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        file_directories: Iterable[Path | str] = (),
        *,
        fulltext_indexed: bool = False,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self._file_directories = [Path(d) for d in file_directories]
        self._entries: list[BibEntry] = []
        self._handlers: list[EventHandler] = []
        self._lock = threading.RLock()
        self._fulltext_indexed = fulltext_indexed

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[BibEntry]:
        with self._lock:
            return list(self._entries)

    def entries_with_key(self, key: str) -> list[BibEntry]:
        with self._lock:
            return [e for e in self._entries if e.citation_key == key]

    def add_entry(self, entry: BibEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            entry._attach(self._on_field_changed)
        self._publish(EntryAddedEvent(entry))

    def remove_entry(self, entry: BibEntry) -> bool:
        with self._lock:
            try:
                self._entries.remove(entry)
            except ValueError:
                return False
            entry._attach(None)
        self._publish(EntryRemovedEvent(entry))
        return True

    def _on_field_changed(
        self, entry: BibEntry, name: str, old: str | None, new: str | None
    ) -> None:
        self._publish(FieldChangedEvent(entry, name, old, new))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @property
    def file_directories(self) -> list[Path]:
        """Directories searched for relative links, then the library's own."""
        dirs = list(self._file_directories)
        if self.path is not None and self.path.parent not in dirs:
            dirs.append(self.path.parent)
        return dirs

    def linked_files(self, value: str | None, *, existing_only: bool = True) -> list[Path]:
        return resolve_linked_files(value, self.file_directories, existing_only=existing_only)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @property
    def fulltext_indexed(self) -> bool:
        return self._fulltext_indexed

    @fulltext_indexed.setter
    def fulltext_indexed(self, enabled: bool) -> None:
        if enabled == self._fulltext_indexed:
            return
        self._fulltext_indexed = enabled
        self._publish(IndexingEnabledChangedEvent(enabled))

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def _publish(self, event: CollectionEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    error=str(e),
                    exc_info=True,
                )
