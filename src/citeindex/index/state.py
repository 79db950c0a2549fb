"""Index lifecycle states and their legal transitions."""

from __future__ import annotations

from enum import Enum

from citeindex.core.errors import InvalidStateError, NotSearchableError, NotWritableError


class IndexState(Enum):
    """Lifecycle state of one managed index."""

    NOT_IN_USE = "not_in_use"
    CLOSED = "closed"
    SEARCHABLE = "searchable"
    WRITING = "writing"


class Operation(Enum):
    """State-changing operations."""

    SETUP = "setup"
    OPEN_READER = "open_reader"
    OPEN_WRITER = "open_writer"
    CLOSE_WRITER = "close_writer"
    ABORT_WRITER = "abort_writer"
    CLOSE_READER = "close_reader"
    TEARDOWN = "teardown"


TRANSITIONS: dict[tuple[IndexState, Operation], IndexState] = {
    (IndexState.NOT_IN_USE, Operation.SETUP): IndexState.CLOSED,
    (IndexState.CLOSED, Operation.OPEN_READER): IndexState.SEARCHABLE,
    (IndexState.SEARCHABLE, Operation.OPEN_WRITER): IndexState.WRITING,
    (IndexState.WRITING, Operation.CLOSE_WRITER): IndexState.SEARCHABLE,
    (IndexState.WRITING, Operation.ABORT_WRITER): IndexState.SEARCHABLE,
    (IndexState.SEARCHABLE, Operation.CLOSE_READER): IndexState.CLOSED,
    (IndexState.CLOSED, Operation.TEARDOWN): IndexState.NOT_IN_USE,
}

SEARCHABLE_STATES = frozenset({IndexState.SEARCHABLE, IndexState.WRITING})


def next_state(current: IndexState, operation: Operation) -> IndexState:
    """Return the state *operation* leads to, or raise InvalidStateError."""
    try:
        return TRANSITIONS[(current, operation)]
    except KeyError:
        raise InvalidStateError.illegal(current.name, operation.value) from None


def require_writable(current: IndexState, operation: str) -> None:
    if current is not IndexState.WRITING:
        raise NotWritableError.for_state(current.name, operation)


def require_searchable(current: IndexState) -> None:
    if current not in SEARCHABLE_STATES:
        raise NotSearchableError.for_state(current.name)
