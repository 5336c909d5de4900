from __future__ import annotations

from typing import Annotated

import typer
from typer.main import get_command

from covfetch._meta import __version__
from covfetch.cli import batch, fetch, merge
from covfetch.cli._shared import configure_logging


def _print_version(value: bool) -> None:  # noqa: FBT001
    if value:
        typer.echo(f"covfetch {__version__}")
        raise typer.Exit


def create_app() -> typer.Typer:
    app = typer.Typer(help="Fetch JaCoCo execution data from running JVMs and merge it.", no_args_is_help=True)

    @app.callback()
    def _root(
        *,
        version: Annotated[  # noqa: ARG001
            bool,
            typer.Option("--version", help="Show version and exit", callback=_print_version, is_eager=True),
        ] = False,
        verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Emit diagnostic logging")] = False,
        quiet: Annotated[bool, typer.Option("-q", "--quiet", help="Only log errors")] = False,
    ) -> None:
        configure_logging(quiet=quiet, verbose=verbose)

    fetch.register(app)
    batch.register(app)
    merge.register(app)

    return app


def main() -> None:
    app = create_app()
    get_command(app)()


# Click-compatible object for tooling that imports it
cli = get_command(create_app())

__all__ = ["cli", "create_app", "main"]
