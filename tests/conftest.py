from __future__ import annotations

import io
import logging
import socket
import threading
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest
from click.testing import CliRunner

from covfetch.execdata import ExecDataWriter, ExecutionData, SessionInfo, dump_records
from covfetch.execdata.model import Record

# header block (type byte, magic, version) + dump command block
REQUEST_SIZE = 5 + 3


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Click CLI runner for invoking the command-line interface."""
    return CliRunner()


@pytest.fixture
def exec_record() -> Callable[..., ExecutionData]:
    def build(class_id: int, probes: Sequence[bool | int], name: str | None = None) -> ExecutionData:
        return ExecutionData(id=class_id, name=name or f"com/example/C{class_id}", probes=tuple(map(bool, probes)))

    return build


@pytest.fixture
def session_record() -> Callable[..., SessionInfo]:
    def build(session_id: str = "host-1", start: int = 1_700_000_000_000, dump: int = 1_700_000_060_000) -> SessionInfo:
        return SessionInfo(id=session_id, start=start, dump=dump)

    return build


@pytest.fixture
def exec_file(tmp_path: Path) -> Callable[..., Path]:
    def write(records: Sequence[Record], *, filename: str = "jacoco.exec") -> Path:
        path = tmp_path / filename
        path.write_bytes(dump_records(records))
        return path

    return write


def _agent_response(records: Sequence[Record], *, cmd_ok: bool = True) -> bytes:
    """Bytes a tcpserver agent sends back for a dump request."""
    buf = io.BytesIO()
    writer = ExecDataWriter(buf)
    writer.write_all(records)
    if cmd_ok:
        writer.write_cmd_ok()
    return buf.getvalue()


class FakeAgent:
    """One-shot TCP server that answers a dump request with canned bytes."""

    def __init__(self, response: bytes) -> None:
        self.response = response
        self.received = b""
        self._server = socket.create_server(("127.0.0.1", 0))
        self._server.settimeout(5)
        self.host = "127.0.0.1"
        self.port = self._server.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def locator(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    def _serve(self) -> None:
        try:
            conn, _ = self._server.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(5)
            buf = b""
            while len(buf) < REQUEST_SIZE:
                chunk = conn.recv(REQUEST_SIZE - len(buf))
                if not chunk:
                    break
                buf += chunk
            self.received = buf
            conn.sendall(self.response)

    def close(self) -> None:
        self._thread.join(timeout=5)
        self._server.close()


@pytest.fixture
def fake_agent() -> Iterator[Callable[[bytes], FakeAgent]]:
    agents: list[FakeAgent] = []

    def start(response: bytes) -> FakeAgent:
        agent = FakeAgent(response)
        agents.append(agent)
        return agent

    yield start
    for agent in agents:
        agent.close()


@pytest.fixture
def closed_port() -> int:
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def agent_response() -> Callable[..., bytes]:
    return _agent_response


@pytest.fixture(autouse=True)
def _reset_logger_level() -> Iterator[None]:
    # the CLI sets the package logger level from -v/-q
    yield
    logging.getLogger("covfetch").setLevel(logging.NOTSET)
