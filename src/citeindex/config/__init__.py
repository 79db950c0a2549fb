"""Config module exports."""

from citeindex.config.loader import index_path_for, load_config
from citeindex.config.models import (
    CiteIndexConfig,
    ExtractionConfig,
    IndexConfig,
    LoggingConfig,
    LogOutputConfig,
    SweepConfig,
)

__all__ = [
    "load_config",
    "index_path_for",
    "CiteIndexConfig",
    "ExtractionConfig",
    "IndexConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "SweepConfig",
]
