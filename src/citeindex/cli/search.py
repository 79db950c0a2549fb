"""citeindex search command - query a library's full-text index."""

import json
from pathlib import Path

import click

from citeindex.cli.utils import open_library_index
from citeindex.core.errors import CiteIndexError


@click.command()
@click.argument("library", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def search_command(library: Path, query: str, as_json: bool) -> None:
    """Print the citation keys of entries whose linked files match QUERY.

    LIBRARY is the bibliography file the index belongs to. QUERY uses the
    index query syntax (terms, "quoted phrases", AND/OR).
    """
    index = open_library_index(library)
    try:
        keys = index.snapshot().search_keys(query)
    except CiteIndexError as e:
        raise click.ClickException(e.message) from e
    finally:
        index.release()

    if as_json:
        click.echo(json.dumps({"query": query, "keys": sorted(keys)}))
        return
    for key in sorted(keys):
        click.echo(key)
