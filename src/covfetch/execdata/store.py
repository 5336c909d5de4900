from __future__ import annotations

from typing import TYPE_CHECKING

from covfetch.errors import AcquisitionError
from covfetch.execdata.model import ExecutionData, SessionInfo, format_class_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from covfetch.execdata.model import Record


class ProbeCountMismatchError(AcquisitionError):
    """Two records share a class id but not the number of probes."""


class ClassNameMismatchError(AcquisitionError):
    """Two records share a class id but name different classes."""


class SessionInfoStore:
    """Session records keyed by session id.

    A repeated id replaces the stored metadata but keeps the position where
    the id was first seen.
    """

    def __init__(self) -> None:
        self._infos: dict[str, SessionInfo] = {}

    def put(self, info: SessionInfo) -> None:
        self._infos[info.id] = info

    def __iter__(self) -> Iterator[SessionInfo]:
        return iter(list(self._infos.values()))

    def __len__(self) -> int:
        return len(self._infos)

    def is_empty(self) -> bool:
        return not self._infos


class ExecutionDataStore:
    """Execution records keyed by class id, combined by logical OR on insert."""

    def __init__(self) -> None:
        self._entries: dict[int, ExecutionData] = {}

    def put(self, data: ExecutionData) -> None:
        existing = self._entries.get(data.id)
        if existing is None:
            self._entries[data.id] = data
            return
        if existing.name != data.name:
            msg = (
                f"different class names {existing.name!r} and {data.name!r} "
                f"for id {format_class_id(data.id)}"
            )
            raise ClassNameMismatchError(msg)
        if len(existing.probes) != len(data.probes):
            msg = (
                f"probe count mismatch for class {data.name!r} with id {format_class_id(data.id)}: "
                f"{len(existing.probes)} != {len(data.probes)}"
            )
            raise ProbeCountMismatchError(msg)
        self._entries[data.id] = existing.merged_with(data)

    def get(self, class_id: int) -> ExecutionData | None:
        return self._entries.get(class_id)

    def __contains__(self, class_id: object) -> bool:
        return class_id in self._entries

    def __iter__(self) -> Iterator[ExecutionData]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


def collect(
    records: Iterable[Record],
    sessions: SessionInfoStore,
    executions: ExecutionDataStore,
) -> None:
    """Route each decoded record into its store."""
    for record in records:
        if isinstance(record, SessionInfo):
            sessions.put(record)
        elif isinstance(record, ExecutionData):
            executions.put(record)


__all__ = [
    "ClassNameMismatchError",
    "ExecutionDataStore",
    "ProbeCountMismatchError",
    "SessionInfoStore",
    "collect",
]
