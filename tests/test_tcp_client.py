from __future__ import annotations

import pytest

from covfetch.errors import AcquisitionError, ExecDataFormatError
from covfetch.execdata import read_records
from covfetch.execdata.writer import encode_header
from covfetch.transport.tcp import TcpCoverageClient

HEADER = encode_header()


@pytest.fixture
def client() -> TcpCoverageClient:
    return TcpCoverageClient(timeout=5)


def test_fetch_returns_records_as_exec_stream(fake_agent, agent_response, client, session_record, exec_record) -> None:
    records = [session_record(), exec_record(1, [1, 0, 1]), exec_record(2, [0, 0])]
    agent = fake_agent(agent_response(records))

    data = client.fetch(agent.host, agent.port, False)

    assert data.startswith(HEADER)
    assert list(read_records(data)) == records


def test_request_is_header_plus_dump_command(fake_agent, agent_response, client, exec_record) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1])]))
    client.fetch(agent.host, agent.port, False)
    assert agent.received == HEADER + b"\x40\x01\x00"


def test_reset_flag_is_sent(fake_agent, agent_response, client, exec_record) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1])]))
    client.fetch(agent.host, agent.port, True)
    assert agent.received == HEADER + b"\x40\x01\x01"


def test_agent_closing_without_cmd_ok(fake_agent, agent_response, client, exec_record) -> None:
    record = exec_record(1, [1])
    agent = fake_agent(agent_response([record], cmd_ok=False))
    assert list(read_records(client.fetch(agent.host, agent.port, False))) == [record]


def test_header_only_response_is_no_data(fake_agent, agent_response, client) -> None:
    agent = fake_agent(agent_response([]))
    with pytest.raises(AcquisitionError, match="no data received"):
        client.fetch(agent.host, agent.port, False)


def test_empty_response_is_no_data(fake_agent, client) -> None:
    agent = fake_agent(b"")
    with pytest.raises(AcquisitionError, match="no data received"):
        client.fetch(agent.host, agent.port, False)


def test_garbage_response(fake_agent, client) -> None:
    agent = fake_agent(b"HTTP/1.1 400 Bad Request\r\n\r\n")
    with pytest.raises(AcquisitionError, match="invalid execution data") as excinfo:
        client.fetch(agent.host, agent.port, False)
    assert isinstance(excinfo.value.__cause__, ExecDataFormatError)


def test_truncated_response(fake_agent, agent_response, client, exec_record) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1] * 40)], cmd_ok=False)[:-2])
    with pytest.raises(AcquisitionError, match="invalid execution data"):
        client.fetch(agent.host, agent.port, False)


def test_connection_refused(client, closed_port) -> None:
    with pytest.raises(AcquisitionError, match="unable to dump coverage data") as excinfo:
        client.fetch("127.0.0.1", closed_port, False)
    assert isinstance(excinfo.value.__cause__, OSError)
