"""CLI utilities."""

from pathlib import Path

import click

from citeindex.config.loader import index_path_for, load_config
from citeindex.core.errors import CiteIndexError
from citeindex.index.lexical import FullTextIndex


def open_library_index(library: Path) -> FullTextIndex:
    """Open the index belonging to *library* for reading.

    Raises:
        click.ClickException: If the config is invalid or no index exists
    """
    library = library.resolve()
    try:
        config = load_config(library)
    except CiteIndexError as e:
        raise click.ClickException(e.message) from e

    index_path = index_path_for(library, config)
    index = FullTextIndex(
        index_path,
        heap_size=config.index.writer_heap_bytes,
        max_hits=config.index.max_hits,
    )
    if not index.exists():
        raise click.ClickException(
            f"No full-text index for '{library}' (expected at {index_path}). "
            "Enable full-text indexing for this library first."
        )
    try:
        index.open_for_read()
    except CiteIndexError as e:
        raise click.ClickException(e.message) from e
    return index
