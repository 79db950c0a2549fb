"""citeindex error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index state
- 4xxx: Setup
- 5xxx: Extraction
- 6xxx: Adapter / search / query
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index state (3xxx)
    INVALID_STATE = 3001
    NOT_WRITABLE = 3002
    NOT_SEARCHABLE = 3003

    # Setup (4xxx)
    SETUP_UNSAVED_COLLECTION = 4001
    SETUP_STORAGE_FAILED = 4002

    # Extraction (5xxx)
    EXTRACTION_FAILED = 5001
    EXTRACTION_UNSUPPORTED = 5002

    # Adapter (6xxx)
    ADAPTER_IO_ERROR = 6001
    SEARCH_FAILED = 6002
    QUERY_SYNTAX_ERROR = 6003


@dataclass(frozen=True)
class CiteIndexError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'NOT_WRITABLE')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CiteIndexError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class StateError(CiteIndexError):
    """Lifecycle misuse. Always surfaced to the caller, never retried."""


class InvalidStateError(StateError):
    """An operation is not a legal transition from the current state."""

    @classmethod
    def illegal(cls, current: str, attempted: str) -> "InvalidStateError":
        return cls(
            code=ErrorCode.INVALID_STATE,
            message=f"Cannot {attempted} while index is {current}",
            details={"current": current, "attempted": attempted},
        )

    @property
    def current(self) -> str:
        return str(self.details.get("current", ""))

    @property
    def attempted(self) -> str:
        return str(self.details.get("attempted", ""))


class NotWritableError(StateError):
    """A mutating index call was made outside a write session."""

    @classmethod
    def for_state(cls, current: str, operation: str) -> "NotWritableError":
        return cls(
            code=ErrorCode.NOT_WRITABLE,
            message=f"Index is {current}, {operation} requires WRITING",
            details={"current": current, "operation": operation},
        )


class NotSearchableError(StateError):
    """A query was made while no reader is open."""

    @classmethod
    def for_state(cls, current: str) -> "NotSearchableError":
        return cls(
            code=ErrorCode.NOT_SEARCHABLE,
            message=f"Index is {current}, search requires SEARCHABLE or WRITING",
            details={"current": current},
        )


class SetupError(CiteIndexError):
    """Index setup failed. Fatal to setup."""

    @classmethod
    def unsaved_collection(cls) -> "SetupError":
        return cls(
            code=ErrorCode.SETUP_UNSAVED_COLLECTION,
            message="Cannot index a collection that has no storage path (unsaved)",
        )

    @classmethod
    def storage_failed(cls, path: str, reason: str) -> "SetupError":
        return cls(
            code=ErrorCode.SETUP_STORAGE_FAILED,
            message=f"Failed to open or create index at {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class ExtractionError(CiteIndexError):
    """Text extraction from a single file failed. Non-fatal to a batch."""

    @classmethod
    def failed(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_FAILED,
            message=f"Could not extract text from {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unsupported(cls, path: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_UNSUPPORTED,
            message=f"Unsupported document type: {path}",
            details={"path": path},
        )


class AdapterIOError(CiteIndexError):
    """An underlying index engine call failed."""

    @classmethod
    def failed(cls, operation: str, reason: str) -> "AdapterIOError":
        return cls(
            code=ErrorCode.ADAPTER_IO_ERROR,
            message=f"Index {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
        )


class SearchError(AdapterIOError):
    """The index engine failed while executing a query."""

    @classmethod
    def failed(cls, operation: str, reason: str) -> "SearchError":
        return cls(
            code=ErrorCode.SEARCH_FAILED,
            message=f"Search failed for {operation!r}: {reason}",
            details={"query": operation, "reason": reason},
        )


class QuerySyntaxError(CiteIndexError):
    """Query text could not be parsed. No state change."""

    @classmethod
    def invalid(cls, query: str, reason: str) -> "QuerySyntaxError":
        return cls(
            code=ErrorCode.QUERY_SYNTAX_ERROR,
            message=f"Invalid query {query!r}: {reason}",
            details={"query": query, "reason": reason},
        )
