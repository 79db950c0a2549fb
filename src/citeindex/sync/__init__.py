"""Keeps the full-text index in step with a live entry collection."""

from citeindex.sync.controller import IndexingController
from citeindex.sync.engine import EngineStatus, SweepStats, SyncEngine
from citeindex.sync.scheduler import SweepScheduler

__all__ = [
    "EngineStatus",
    "IndexingController",
    "SweepScheduler",
    "SweepStats",
    "SyncEngine",
]
