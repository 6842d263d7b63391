from __future__ import annotations

import typer

from espenv import __version__
from espenv.cli.commands.install import install
from espenv.cli.commands.uninstall import uninstall
from espenv.cli.commands.update import update

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Install and maintain the Espressif Rust toolchains.",
)


# Commands
app.command()(install)
app.command()(update)
app.command()(uninstall)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    pass


def main() -> None:
    app()
