from __future__ import annotations

import io
from typing import TYPE_CHECKING

from covfetch.execdata import codec
from covfetch.execdata.model import (
    FORMAT_VERSION,
    MAGIC_NUMBER,
    BlockType,
    DumpCommand,
    ExecutionData,
    SessionInfo,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import BinaryIO

    from covfetch.execdata.model import RemoteRecord


def encode_header() -> bytes:
    return bytes((BlockType.HEADER,)) + codec.encode_u16(MAGIC_NUMBER) + codec.encode_u16(FORMAT_VERSION)


def encode_session_info(info: SessionInfo) -> bytes:
    return b"".join((
        bytes((BlockType.SESSION_INFO,)),
        codec.encode_utf(info.id),
        codec.encode_i64(info.start),
        codec.encode_i64(info.dump),
    ))


def encode_execution_data(data: ExecutionData) -> bytes:
    return b"".join((
        bytes((BlockType.EXECUTION_DATA,)),
        codec.encode_u64(data.id),
        codec.encode_utf(data.name),
        codec.encode_bool_array(data.probes),
    ))


def encode_dump_command(command: DumpCommand) -> bytes:
    return bytes((BlockType.CMD_DUMP,)) + codec.encode_bool(command.dump) + codec.encode_bool(command.reset)


def encode_cmd_ok() -> bytes:
    return bytes((BlockType.CMD_OK,))


class ExecDataWriter:
    """Serialise records to *stream*; the header is written on construction."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._stream.write(encode_header())

    def write(self, record: RemoteRecord) -> None:
        if isinstance(record, SessionInfo):
            self._stream.write(encode_session_info(record))
        elif isinstance(record, ExecutionData):
            self._stream.write(encode_execution_data(record))
        elif isinstance(record, DumpCommand):
            self._stream.write(encode_dump_command(record))
        else:
            msg = f"cannot encode {type(record).__name__}"
            raise TypeError(msg)

    def write_all(self, records: Iterable[RemoteRecord]) -> None:
        for record in records:
            self.write(record)

    def write_cmd_ok(self) -> None:
        self._stream.write(encode_cmd_ok())

    def flush(self) -> None:
        self._stream.flush()


def dump_records(records: Iterable[RemoteRecord]) -> bytes:
    """Return a complete exec stream (header included) holding *records*."""
    buf = io.BytesIO()
    ExecDataWriter(buf).write_all(records)
    return buf.getvalue()


__all__ = [
    "ExecDataWriter",
    "dump_records",
    "encode_cmd_ok",
    "encode_dump_command",
    "encode_execution_data",
    "encode_header",
    "encode_session_info",
]
