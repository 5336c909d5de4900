"""Pull-based decoder for execution data streams.

``ExecDataReader`` turns a binary stream into a lazy, finite iterator of typed
records. The iterator is not restartable: it consumes the underlying stream.
The same decoder serves exec files (``remote=False``) and the agent's TCP
control protocol (``remote=True``), where a command-ok block ends the dump.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from covfetch._meta import logger
from covfetch.errors import ExecDataFormatError
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
    from collections.abc import Iterator
    from typing import BinaryIO

    from covfetch.execdata.model import Record, RemoteRecord


class IncompatibleVersionError(ExecDataFormatError):
    """The stream header announces a format version this decoder does not speak."""

    def __init__(self, actual: int) -> None:
        super().__init__(
            f"cannot read execution data version 0x{actual:04x}; expected 0x{FORMAT_VERSION:04x}"
        )
        self.actual = actual


class ExecDataReader:
    """Decode blocks from *stream* on iteration.

    Parameters
    ----------
    stream:
        Binary stream positioned at the start of a block.
    remote:
        Accept the remote-control blocks (dump command, command ok). A
        command-ok block ends iteration, as does the end of the stream.
    """

    def __init__(self, stream: BinaryIO, *, remote: bool = False) -> None:
        self._stream = stream
        self._remote = remote
        self._first_block = True
        self._exhausted = False

    def __iter__(self) -> Iterator[RemoteRecord]:
        while not self._exhausted:
            block = self._stream.read(1)
            if not block:
                self._exhausted = True
                return
            record = self._read_block(block[0])
            if record is not None:
                yield record

    def _read_block(self, block_type: int) -> RemoteRecord | None:
        if self._first_block and block_type != BlockType.HEADER:
            msg = f"invalid execution data: expected header block, got 0x{block_type:02x}"
            raise ExecDataFormatError(msg)
        self._first_block = False

        if block_type == BlockType.HEADER:
            self._read_header()
            return None
        if block_type == BlockType.SESSION_INFO:
            return SessionInfo(
                id=codec.read_utf(self._stream),
                start=codec.read_i64(self._stream),
                dump=codec.read_i64(self._stream),
            )
        if block_type == BlockType.EXECUTION_DATA:
            return ExecutionData(
                id=codec.read_u64(self._stream),
                name=codec.read_utf(self._stream),
                probes=codec.read_bool_array(self._stream),
            )
        if self._remote and block_type == BlockType.CMD_OK:
            logger.debug("command ok received, end of dump")
            self._exhausted = True
            return None
        if self._remote and block_type == BlockType.CMD_DUMP:
            return DumpCommand(dump=codec.read_bool(self._stream), reset=codec.read_bool(self._stream))
        msg = f"unknown block type 0x{block_type:02x}"
        raise ExecDataFormatError(msg)

    def _read_header(self) -> None:
        magic = codec.read_u16(self._stream)
        if magic != MAGIC_NUMBER:
            msg = f"invalid execution data: bad magic number 0x{magic:04x}"
            raise ExecDataFormatError(msg)
        version = codec.read_u16(self._stream)
        if version != FORMAT_VERSION:
            raise IncompatibleVersionError(version)


def read_records(data: bytes | BinaryIO) -> Iterator[Record]:
    """Yield the session and execution records of an exec file or byte string."""
    stream = io.BytesIO(data) if isinstance(data, (bytes, bytearray, memoryview)) else data
    for record in ExecDataReader(stream):
        if isinstance(record, (SessionInfo, ExecutionData)):
            yield record


__all__ = ["ExecDataReader", "IncompatibleVersionError", "read_records"]
