from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import typer

from covfetch._meta import logger
from covfetch.cli.exit_codes import EXIT_CONFIG, EXIT_DATAERR, EXIT_GENERIC, EXIT_UNAVAILABLE
from covfetch.core.config import LOG_FORMAT
from covfetch.errors import AcquisitionError, CovfetchError, ExecDataFormatError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterator


def configure_logging(*, quiet: bool, verbose: bool) -> None:
    """Configure logging based on *quiet*/*verbose*."""
    level = logging.ERROR if quiet else (logging.DEBUG if verbose else logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)


def exit_code_for(exc: CovfetchError) -> int:
    if isinstance(exc, ValidationError):
        return EXIT_CONFIG
    if isinstance(exc, ExecDataFormatError):
        return EXIT_DATAERR
    if isinstance(exc, AcquisitionError):
        return EXIT_UNAVAILABLE
    return EXIT_GENERIC


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report a covfetch error on stderr and exit with its sysexits code."""
    try:
        yield
    except CovfetchError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=exit_code_for(exc)) from exc


def resolve_use_color(*, color: bool, no_color: bool, color_allowed: bool) -> bool:
    # CLI flags take precedence over the terminal default.
    if no_color:
        return False
    if color:
        return True
    return color_allowed


__all__ = ["configure_logging", "exit_code_for", "exit_on_error", "resolve_use_color"]
