"""Shared fixtures for synchronization engine tests."""

from __future__ import annotations

import os
from collections import Counter
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from citeindex.config.models import CiteIndexConfig, ExtractionConfig, IndexConfig, SweepConfig
from citeindex.core.errors import ExtractionError
from citeindex.index.managed import AdapterFactory
from citeindex.index.state import IndexState
from citeindex.library.collection import EntryCollection
from citeindex.sync.engine import SyncEngine


class CountingExtractor:
    """Plain-text extractor that counts calls per file name.

    Names in ``failing`` raise ExtractionError; names in ``crashing``
    raise an unexpected RuntimeError.
    """

    def __init__(self) -> None:
        self.calls: Counter[str] = Counter()
        self.failing: set[str] = set()
        self.crashing: set[str] = set()

    def supports(self, path: Path) -> bool:
        return path.suffix == ".txt"

    def extract(self, path: Path) -> str:
        self.calls[path.name] += 1
        if path.name in self.crashing:
            raise RuntimeError("extractor bug")
        if path.name in self.failing:
            raise ExtractionError.failed(str(path), "unreadable")
        return path.read_text()


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    library = tmp_path / "library"
    library.mkdir()
    (library / "refs.bib").write_text("")
    return library


@pytest.fixture
def collection(library_dir: Path) -> EntryCollection:
    return EntryCollection(library_dir / "refs.bib")


@pytest.fixture
def extractor() -> CountingExtractor:
    return CountingExtractor()


def make_config(max_workers: int = 1, **sweep: Any) -> CiteIndexConfig:
    """Text files only; the background sweep effectively never fires."""
    sweep_settings = {"initial_delay_sec": 3600, "interval_sec": 3600, **sweep}
    return CiteIndexConfig(
        index=IndexConfig(supported_extensions=[".txt"]),
        sweep=SweepConfig(**sweep_settings),
        extraction=ExtractionConfig(max_workers=max_workers),
    )


@pytest.fixture
def engine_factory(
    collection: EntryCollection, extractor: CountingExtractor
) -> Generator[Callable[..., SyncEngine], None, None]:
    """Build engines over the shared collection; all are torn down afterwards."""
    engines: list[SyncEngine] = []

    def _make(
        max_workers: int = 1, adapter_factory: AdapterFactory | None = None, **sweep: Any
    ) -> SyncEngine:
        engine = SyncEngine(
            collection,
            config=make_config(max_workers, **sweep),
            extractor=extractor,
            adapter_factory=adapter_factory,
        )
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        if engine.state is IndexState.NOT_IN_USE:
            continue
        if engine.state is not IndexState.CLOSED:
            engine.close()
        engine.teardown()


@pytest.fixture
def engine(engine_factory: Callable[..., SyncEngine]) -> SyncEngine:
    return engine_factory()


@pytest.fixture
def write_doc(library_dir: Path) -> Callable[..., Path]:
    """Write a linked text file into the library directory."""

    def _write(name: str, text: str, mtime_ns: int | None = None) -> Path:
        path = library_dir / name
        path.write_text(text)
        if mtime_ns is not None:
            os.utime(path, ns=(mtime_ns, mtime_ns))
        return path

    return _write
