"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CITEINDEX__SECTION__KEY)
3. Library YAML (<library dir>/.citeindex.yaml)
4. Global YAML (~/.config/citeindex/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CITEINDEX__<SECTION>__<KEY>=<VALUE>

Examples:
    CITEINDEX__LOGGING__LEVEL=DEBUG
    CITEINDEX__SWEEP__INTERVAL_SEC=30
    CITEINDEX__INDEX__MAX_HITS=500
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CITEINDEX__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every indexed file.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Full-text index configuration.

    Env vars:
        CITEINDEX__INDEX__SUFFIX: Suffix appended to the library path
        CITEINDEX__INDEX__INDEX_DIR: Store indexes in this directory instead
        CITEINDEX__INDEX__MAX_HITS: Maximum documents returned per query
    """

    suffix: str = Field(
        default=".tantivy",
        description="Appended to the library file path to locate its index.",
    )
    index_dir: str | None = Field(
        default=None,
        description="Override index storage directory. The index is named after "
        "the library file inside it. Default: next to the library file.",
    )
    writer_heap_bytes: int = Field(
        default=50_000_000,
        description="Memory budget for the index writer.",
    )
    max_hits: int = Field(
        default=9999,
        description="Maximum documents fetched per search.",
    )
    supported_extensions: list[str] = Field(
        default_factory=lambda: [".pdf"],
        description="Linked files with these extensions are extracted and indexed.",
    )

    @field_validator("suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError(f"Suffix must be a non-empty file name suffix: {v!r}")
        return v

    @field_validator("writer_heap_bytes")
    @classmethod
    def validate_heap(cls, v: int) -> int:
        # tantivy refuses writer heaps below 15MB
        if v < 15_000_000:
            raise ValueError(f"Writer heap must be at least 15000000 bytes, got {v}")
        return v

    @field_validator("max_hits")
    @classmethod
    def validate_max_hits(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_hits must be positive, got {v}")
        return v

    @field_validator("supported_extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class SweepConfig(BaseModel):
    """Reconciliation sweep configuration.

    Env vars:
        CITEINDEX__SWEEP__INTERVAL_SEC: Delay between sweeps
        CITEINDEX__SWEEP__RETRY_FAILED: Keep failed records pending
    """

    initial_delay_sec: float = Field(
        default=0.1,
        description="Grace period between setup and the first sweep.",
    )
    interval_sec: float = Field(
        default=5.0,
        description="Fixed delay between the end of one sweep and the start of the next.",
    )
    rescan: bool = Field(
        default=True,
        description="Rescan all linked files for staleness at the start of each sweep. "
        "Catches files edited on disk after setup.",
    )
    retry_failed: bool = Field(
        default=False,
        description="Keep records whose reindex failed in the pending set. "
        "RISK: a permanently unreadable file is re-extracted on every sweep.",
    )

    @field_validator("initial_delay_sec")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Delay must be non-negative, got {v}")
        return v

    @field_validator("interval_sec")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Sweep interval must be positive, got {v}")
        return v


class ExtractionConfig(BaseModel):
    """Text extraction configuration.

    Env vars:
        CITEINDEX__EXTRACTION__MAX_WORKERS: Parallel extractions per batch
    """

    max_workers: int = Field(
        default=1,
        description="Threads used to extract the files of one batch. "
        "Index writes stay serialized regardless.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be at least 1, got {v}")
        return v


class CiteIndexConfig(BaseModel):
    """Root configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
