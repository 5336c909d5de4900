"""Combine execution data from several streams into one exec file.

Records for the same class id are OR-ed probe by probe; session records are
kept side by side. Inputs are decoded completely before the destination is
opened, so a failing input never leaves a partial merge file behind.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import IO, TYPE_CHECKING

from covfetch._meta import logger
from covfetch.errors import AcquisitionError, ExecDataFormatError
from covfetch.execdata.reader import read_records
from covfetch.execdata.store import (
    ClassNameMismatchError,
    ExecutionDataStore,
    ProbeCountMismatchError,
    SessionInfoStore,
    collect,
)
from covfetch.execdata.writer import ExecDataWriter

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

StreamSource = str | Path | bytes | bytearray | IO[bytes]


def describe(source: StreamSource, index: int) -> str:
    if isinstance(source, (str, Path)):
        return f"'{Path(source).absolute()}'"
    name = getattr(source, "name", None)
    if isinstance(name, str):
        return f"'{name}'"
    return f"input #{index + 1}"


def load(inputs: Iterable[StreamSource]) -> tuple[SessionInfoStore, ExecutionDataStore]:
    """Decode every input in order and accumulate its records.

    Raises
    ------
    AcquisitionError
        When an input cannot be read or decoded, or two records for one class
        id are incompatible.
    """
    sessions = SessionInfoStore()
    executions = ExecutionDataStore()
    for index, source in enumerate(inputs):
        label = describe(source, index)
        logger.debug("loading execution data from %s", label)
        try:
            if isinstance(source, (str, Path)):
                with Path(source).open("rb") as fh:
                    collect(read_records(fh), sessions, executions)
            elif isinstance(source, (bytes, bytearray)):
                collect(read_records(io.BytesIO(source)), sessions, executions)
            else:
                collect(read_records(source), sessions, executions)
        except ExecDataFormatError as exc:
            msg = f"error loading data from {label}: {exc}"
            raise ExecDataFormatError(msg) from exc
        except (ProbeCountMismatchError, ClassNameMismatchError) as exc:
            msg = f"{exc} (while loading {label})"
            raise type(exc)(msg) from exc
        except OSError as exc:
            msg = f"error reading {label}: {exc}"
            raise AcquisitionError(msg) from exc
    return sessions, executions


def write(
    sessions: SessionInfoStore,
    executions: ExecutionDataStore,
    stream: IO[bytes],
) -> None:
    writer = ExecDataWriter(stream)
    writer.write_all(sessions)
    writer.write_all(executions)
    writer.flush()


def prepare_destination(destination: Path) -> Path:
    """Refuse an existing *destination* and create its parent directory."""
    destination = Path(destination)
    if destination.exists():
        msg = f"file already exists: '{destination.absolute()}'"
        raise AcquisitionError(msg)
    parent = destination.absolute().parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"error creating directory: '{parent}'"
        raise AcquisitionError(msg) from exc
    return destination


def merge(inputs: Sequence[StreamSource], destination: str | Path) -> Path:
    """Merge *inputs* into a new exec file at *destination* and return its path."""
    target = prepare_destination(Path(destination))
    sessions, executions = load(inputs)

    logger.info(
        "writing merged data (%d sessions, %d classes) to '%s'",
        len(sessions),
        len(executions),
        target.absolute(),
    )
    try:
        fh = target.open("xb")
    except OSError as exc:
        msg = f"cannot create merge file: '{target.absolute()}': {exc}"
        raise AcquisitionError(msg) from exc
    try:
        with fh:
            write(sessions, executions, fh)
    except OSError as exc:
        target.unlink(missing_ok=True)
        msg = f"error saving merged execution data to file: '{target.absolute()}'"
        raise AcquisitionError(msg) from exc
    return target


__all__ = ["StreamSource", "load", "merge", "prepare_destination", "write"]
