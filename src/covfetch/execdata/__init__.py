"""JaCoCo execution data: records, wire codec and merge stores."""

from covfetch.execdata.model import (
    FORMAT_VERSION,
    HEADER_SIZE,
    MAGIC_NUMBER,
    BlockType,
    DumpCommand,
    ExecutionData,
    SessionInfo,
)
from covfetch.execdata.reader import ExecDataReader, read_records
from covfetch.execdata.store import ExecutionDataStore, SessionInfoStore
from covfetch.execdata.writer import ExecDataWriter, dump_records

__all__ = [
    "FORMAT_VERSION",
    "HEADER_SIZE",
    "MAGIC_NUMBER",
    "BlockType",
    "DumpCommand",
    "ExecDataReader",
    "ExecDataWriter",
    "ExecutionData",
    "ExecutionDataStore",
    "SessionInfo",
    "SessionInfoStore",
    "dump_records",
    "read_records",
]
