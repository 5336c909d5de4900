from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

MAGIC_NUMBER = 0xC0C0
FORMAT_VERSION = 0x1007

# header block: type byte + magic + version
HEADER_SIZE = 5


class BlockType(IntEnum):
    """Leading type byte of every block in an execution data stream."""

    HEADER = 0x01
    SESSION_INFO = 0x10
    EXECUTION_DATA = 0x11
    CMD_OK = 0x20
    CMD_DUMP = 0x40


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Metadata of one capture: session id plus start and dump time (epoch millis)."""

    id: str
    start: int
    dump: int


@dataclass(frozen=True, slots=True)
class ExecutionData:
    """Probe flags recorded for one class, identified by its content-derived id."""

    id: int
    name: str
    probes: tuple[bool, ...]

    @property
    def hit_count(self) -> int:
        return sum(self.probes)

    def merged_with(self, other: ExecutionData) -> ExecutionData:
        """Return the element-wise OR of both probe arrays.

        The caller guarantees that ids, names and probe counts agree.
        """
        return ExecutionData(
            id=self.id,
            name=self.name,
            probes=tuple(a or b for a, b in zip(self.probes, other.probes, strict=True)),
        )


@dataclass(frozen=True, slots=True)
class DumpCommand:
    """Remote request to dump (and optionally reset) the agent's counters."""

    dump: bool = True
    reset: bool = False


Record = SessionInfo | ExecutionData
RemoteRecord = SessionInfo | ExecutionData | DumpCommand


def format_class_id(class_id: int) -> str:
    return f"{class_id & 0xFFFFFFFFFFFFFFFF:016x}"


__all__ = [
    "FORMAT_VERSION",
    "HEADER_SIZE",
    "MAGIC_NUMBER",
    "BlockType",
    "DumpCommand",
    "ExecutionData",
    "Record",
    "RemoteRecord",
    "SessionInfo",
    "format_class_id",
]
