"""Drives engine setup/teardown from the collection's indexing toggle."""

from __future__ import annotations

import structlog

from citeindex.core.errors import CiteIndexError
from citeindex.index.state import IndexState
from citeindex.library.collection import EntryCollection
from citeindex.library.events import CollectionEvent, IndexingEnabledChangedEvent
from citeindex.sync.engine import SyncEngine

logger = structlog.get_logger()


class IndexingController:
    """Permanently subscribed to *collection*; turns indexing on and off.

    The engine itself only subscribes while set up. This controller stays
    subscribed so it sees the toggle in both directions.
    """

    def __init__(self, collection: EntryCollection, engine: SyncEngine) -> None:
        self.collection = collection
        self.engine = engine
        self._attached = False

    def attach(self) -> None:
        """Subscribe, and set up at once if indexing is already enabled."""
        if self._attached:
            return
        self.collection.subscribe(self.handle_event)
        self._attached = True
        if self.collection.fulltext_indexed:
            self.enable()

    def detach(self) -> None:
        """Tear the engine down and unsubscribe."""
        if not self._attached:
            return
        self.disable()
        self.collection.unsubscribe(self.handle_event)
        self._attached = False

    def handle_event(self, event: CollectionEvent) -> None:
        if isinstance(event, IndexingEnabledChangedEvent):
            if event.enabled:
                self.enable()
            else:
                self.disable()

    def enable(self) -> bool:
        """Set the engine up. Returns False (logged) if that failed."""
        if self.engine.state is not IndexState.NOT_IN_USE:
            return True
        try:
            self.engine.setup()
        except CiteIndexError as e:
            logger.error("indexing_enable_failed", error=e.message, code=e.code.name)
            return False
        logger.info("indexing_enabled", index=str(self.engine.index_path))
        return True

    def disable(self) -> None:
        state = self.engine.state
        if state is IndexState.NOT_IN_USE:
            return
        if state is not IndexState.CLOSED:
            self.engine.close()
        self.engine.teardown()
        logger.info("indexing_disabled")
