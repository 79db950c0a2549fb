"""citeindex CLI - read-only access to a library's full-text index."""

import click

from citeindex.cli.search import search_command
from citeindex.cli.stats import stats_command
from citeindex.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="citeindex")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """citeindex - full-text search over documents linked from a bibliography."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(search_command, name="search")
cli.add_command(stats_command, name="stats")


if __name__ == "__main__":
    cli()
