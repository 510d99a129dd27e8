"""Typer application and global options."""

import typer

from .. import __version__


app = typer.Typer(
    name="entityforge",
    help="Generate game items, NPCs and locations from a prompt.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"entityforge {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """EntityForge: prompt-to-entity generation pipeline."""


# Register commands
from .commands import config, create  # noqa: E402,F401
