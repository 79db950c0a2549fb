"""citeindex stats command - summarize a library's full-text index."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from citeindex.cli.utils import open_library_index
from citeindex.core.errors import CiteIndexError


@click.command()
@click.argument("library", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats_command(library: Path, as_json: bool) -> None:
    """Show document and citation key counts for LIBRARY's index."""
    index = open_library_index(library)
    try:
        documents = index.doc_count()
        keys = len(index.cite_keys())
    except CiteIndexError as e:
        raise click.ClickException(e.message) from e
    finally:
        index.release()

    if as_json:
        click.echo(
            json.dumps({"index": str(index.index_path), "documents": documents, "citation_keys": keys})
        )
        return

    table = Table(show_header=False, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("name", style="cyan")
    table.add_column("value", justify="right")
    table.add_row("Index", str(index.index_path))
    table.add_row("Documents", str(documents))
    table.add_row("Citation keys", str(keys))
    Console().print(table)
