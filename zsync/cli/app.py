from __future__ import annotations

import typer

from zsync import __version__
from zsync.cli.commands.release_cmd import release


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


app.command()(release)


@app.command()
def version() -> None:
    """Show version and exit."""
    typer.echo(__version__)


def main() -> None:
    app()
