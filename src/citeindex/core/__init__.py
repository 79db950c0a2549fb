"""Core module exports."""

from citeindex.core.errors import (
    AdapterIOError,
    CiteIndexError,
    ConfigError,
    ErrorCode,
    ExtractionError,
    InvalidStateError,
    NotSearchableError,
    NotWritableError,
    QuerySyntaxError,
    SearchError,
    SetupError,
    StateError,
)
from citeindex.core.logging import (
    batch_scope,
    clear_batch_id,
    configure_logging,
    get_batch_id,
    get_logger,
    set_batch_id,
)

__all__ = [
    # Errors
    "AdapterIOError",
    "CiteIndexError",
    "ConfigError",
    "ErrorCode",
    "ExtractionError",
    "InvalidStateError",
    "NotSearchableError",
    "NotWritableError",
    "QuerySyntaxError",
    "SearchError",
    "SetupError",
    "StateError",
    # Logging
    "batch_scope",
    "clear_batch_id",
    "configure_logging",
    "get_batch_id",
    "get_logger",
    "set_batch_id",
]
