from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import click.utils as click_utils
import typer

from covfetch.cli._shared import exit_on_error, resolve_use_color
from covfetch.cli.exit_codes import EXIT_NOINPUT, EXIT_OK
from covfetch.merge import load, merge
from covfetch.render.info import render_exec_info


def _require_existing(paths: list[Path]) -> None:
    missing = [p for p in paths if not p.is_file()]
    if missing:
        typer.echo(f"ERROR: exec file not found: {', '.join(str(p) for p in missing)}", err=True)
        raise typer.Exit(code=EXIT_NOINPUT)


def merge_cmd(
    inputs: Annotated[list[Path], typer.Argument(help="Exec files to merge, in order.")],
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Merged exec file to create (must not exist)."),
    ],
) -> None:
    """Merge exec files; probes of the same class are OR-ed together."""
    _require_existing(inputs)
    with exit_on_error():
        merged = merge(inputs, output)
    typer.echo(str(merged))
    raise typer.Exit(code=EXIT_OK)


def info_cmd(
    exec_file: Annotated[Path, typer.Argument(help="Exec file to inspect.")],
    color: Annotated[bool, typer.Option("--color", help="Force color output")] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable color output")] = False,
) -> None:
    """List the sessions of an exec file and count its class records and hit probes."""
    _require_existing([exec_file])
    with exit_on_error():
        sessions, executions = load([exec_file])

    is_tty = bool(getattr(sys.stdout, "isatty", lambda: False)())
    color_allowed = is_tty and not click_utils.should_strip_ansi(sys.stdout)
    use_color = resolve_use_color(color=color, no_color=no_color, color_allowed=color_allowed)
    typer.echo(render_exec_info(sessions, executions, title=exec_file.name, color=use_color))
    raise typer.Exit(code=EXIT_OK)


def register(app: typer.Typer) -> None:
    app.command("merge")(merge_cmd)
    app.command("info")(info_cmd)


__all__ = ["register"]
