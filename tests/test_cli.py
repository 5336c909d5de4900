from __future__ import annotations

import textwrap
from pathlib import Path

from _pytest.monkeypatch import MonkeyPatch
from click.testing import CliRunner

from covfetch import __version__
from covfetch.cli import cli
from covfetch.cli.exit_codes import EXIT_CONFIG, EXIT_DATAERR, EXIT_NOINPUT, EXIT_OK, EXIT_UNAVAILABLE
from covfetch.execdata import read_records

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _run(runner: CliRunner, args: list[str]) -> tuple[int, str]:
    """Invoke the CLI and return *(exit_code, output)* for convenience."""
    result = runner.invoke(cli, args)
    return result.exit_code, result.output


# --------------------------------------------------------------------------- #
# tests                                                                       #
# --------------------------------------------------------------------------- #


def test_cli_version(cli_runner: CliRunner) -> None:
    code, out = _run(cli_runner, ["--version"])
    assert code == EXIT_OK
    assert out.strip() == f"covfetch {__version__}"


def test_cli_no_arguments_shows_help(cli_runner: CliRunner) -> None:
    _code, out = _run(cli_runner, [])
    for command in ("tcp", "jmx", "batch", "merge", "info"):
        assert command in out


# --- tcp ---


def test_tcp_writes_exec_file(tmp_path: Path, cli_runner: CliRunner, fake_agent, agent_response, exec_record) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1, 0])]))
    out = tmp_path / "dump" / "jacoco.exec"

    code, output = _run(cli_runner, ["tcp", agent.host, str(agent.port), "-o", str(out), "--no-reset"])

    assert code == EXIT_OK, output
    assert str(out) in output
    assert list(read_records(out.read_bytes())) == [exec_record(1, [1, 0])]
    assert agent.received.endswith(b"\x40\x01\x00")


def test_tcp_resets_by_default(tmp_path: Path, cli_runner: CliRunner, fake_agent, agent_response, exec_record) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1])]))
    code, output = _run(cli_runner, ["tcp", agent.host, str(agent.port), "-o", str(tmp_path / "a.exec")])
    assert code == EXIT_OK, output
    assert agent.received.endswith(b"\x40\x01\x01")


def test_tcp_no_data(tmp_path: Path, cli_runner: CliRunner, fake_agent, agent_response) -> None:
    agent = fake_agent(agent_response([]))
    out = tmp_path / "a.exec"
    code, output = _run(cli_runner, ["tcp", agent.host, str(agent.port), "-o", str(out)])
    assert code == EXIT_UNAVAILABLE
    assert "no data received" in output
    assert not out.exists()


def test_tcp_invalid_port(tmp_path: Path, cli_runner: CliRunner) -> None:
    code, output = _run(cli_runner, ["tcp", "localhost", "70000", "-o", str(tmp_path / "a.exec")])
    assert code == EXIT_CONFIG
    assert "invalid port" in output


def test_tcp_refuses_existing_output(
    tmp_path: Path, cli_runner: CliRunner, fake_agent, agent_response, exec_record
) -> None:
    agent = fake_agent(agent_response([exec_record(1, [1])]))
    out = tmp_path / "a.exec"
    out.write_bytes(b"old")
    code, output = _run(cli_runner, ["tcp", agent.host, str(agent.port), "-o", str(out)])
    assert code == EXIT_UNAVAILABLE
    assert "file already exists" in output
    assert out.read_bytes() == b"old"


# --- jmx ---


def test_jmx_rmi_without_proxy(tmp_path: Path, cli_runner: CliRunner) -> None:
    locator = "service:jmx:rmi:///jndi/rmi://localhost:9999/jmxrmi"
    code, output = _run(cli_runner, ["jmx", locator, "-o", str(tmp_path / "a.exec")])
    assert code == EXIT_CONFIG
    assert "Jolokia proxy" in output


def test_jmx_invalid_locator(tmp_path: Path, cli_runner: CliRunner) -> None:
    code, output = _run(cli_runner, ["jmx", "jmx://localhost:9999", "-o", str(tmp_path / "a.exec")])
    assert code == EXIT_CONFIG
    assert "invalid locator" in output


def test_jmx_unreachable_agent(tmp_path: Path, cli_runner: CliRunner, closed_port: int) -> None:
    locator = f"service:jmx:jolokia://127.0.0.1:{closed_port}/jolokia"
    code, output = _run(cli_runner, ["jmx", locator, "-o", str(tmp_path / "a.exec"), "--timeout", "5"])
    assert code == EXIT_UNAVAILABLE
    assert "ERROR:" in output


# --- merge / info ---


def test_merge_command(tmp_path: Path, cli_runner: CliRunner, exec_file, session_record, exec_record) -> None:
    a = exec_file([session_record("a"), exec_record(1, [1, 0, 0])], filename="a.exec")
    b = exec_file([session_record("b"), exec_record(1, [0, 1, 0])], filename="b.exec")
    out = tmp_path / "merged.exec"

    code, output = _run(cli_runner, ["merge", str(a), str(b), "-o", str(out)])

    assert code == EXIT_OK, output
    records = list(read_records(out.read_bytes()))
    assert records[-1].probes == (True, True, False)


def test_merge_missing_input(tmp_path: Path, cli_runner: CliRunner) -> None:
    code, output = _run(cli_runner, ["merge", str(tmp_path / "nope.exec"), "-o", str(tmp_path / "m.exec")])
    assert code == EXIT_NOINPUT
    assert "exec file not found" in output


def test_merge_mismatch(tmp_path: Path, cli_runner: CliRunner, exec_file, exec_record) -> None:
    a = exec_file([exec_record(1, [1])], filename="a.exec")
    b = exec_file([exec_record(1, [1, 1])], filename="b.exec")
    out = tmp_path / "m.exec"
    code, output = _run(cli_runner, ["merge", str(a), str(b), "-o", str(out)])
    assert code == EXIT_UNAVAILABLE
    assert "probe count mismatch" in output
    assert not out.exists()


def test_info_lists_sessions(cli_runner: CliRunner, exec_file, session_record, exec_record) -> None:
    path = exec_file([session_record("worker-7"), exec_record(1, [1]), exec_record(2, [0])])
    code, output = _run(cli_runner, ["info", str(path), "--no-color"])
    assert code == EXIT_OK, output
    assert "worker-7" in output
    assert "2 class records, 1 of 2 probes hit" in output


def test_info_bracketed_session_id(cli_runner: CliRunner, exec_file, session_record, exec_record) -> None:
    path = exec_file([session_record("worker[/]"), exec_record(1, [1])], filename="run[1].exec")
    code, output = _run(cli_runner, ["info", str(path), "--no-color"])
    assert code == EXIT_OK, output
    assert "worker[/]" in output
    assert "run[1].exec" in output


def test_info_without_sessions(cli_runner: CliRunner, exec_file, exec_record) -> None:
    path = exec_file([exec_record(1, [1])])
    code, output = _run(cli_runner, ["info", str(path)])
    assert code == EXIT_OK
    assert "no session records" in output


def test_info_corrupt_file(tmp_path: Path, cli_runner: CliRunner) -> None:
    bad = tmp_path / "bad.exec"
    bad.write_bytes(b"\x01\xca\xfe\x10\x07")
    code, output = _run(cli_runner, ["info", str(bad)])
    assert code == EXIT_DATAERR
    assert "bad magic number" in output


# --- batch ---


def test_batch_from_config(tmp_path: Path, cli_runner: CliRunner, fake_agent, agent_response, exec_record) -> None:
    first = fake_agent(agent_response([exec_record(1, [1, 0])]))
    second = fake_agent(agent_response([exec_record(1, [0, 1])]))
    config = tmp_path / "covfetch.toml"
    config.write_text(
        textwrap.dedent(
            f"""
            output_dir = "out"
            merge = true

            [[sources]]
            service_url = "{first.locator}"

            [[sources]]
            type = "tcp"
            hostname = "{second.host}"
            port = {second.port}
            """
        ),
        encoding="utf-8",
    )

    code, output = _run(cli_runner, ["batch", "-c", str(config)])

    assert code == EXIT_OK, output
    merged = tmp_path.resolve() / "out" / "merged.exec"
    assert str(merged) in output
    assert (tmp_path / "out" / "jacoco1.exec").is_file()
    assert (tmp_path / "out" / "jacoco2.exec").is_file()
    (record,) = read_records(merged.read_bytes())
    assert record.probes == (True, True)


def test_batch_source_option_and_failures(
    tmp_path: Path,
    cli_runner: CliRunner,
    monkeypatch: MonkeyPatch,
    fake_agent,
    agent_response,
    exec_record,
    closed_port: int,
) -> None:
    monkeypatch.chdir(tmp_path)
    agent = fake_agent(agent_response([exec_record(1, [1])]))
    args = [
        "batch",
        "--output-dir",
        str(tmp_path),
        "-s",
        f"tcp://127.0.0.1:{closed_port}",
        "-s",
        agent.locator,
        "--timeout",
        "5",
    ]

    code, output = _run(cli_runner, ["-q", *args])

    assert code == EXIT_OK, output
    assert str(tmp_path / "jacoco2.exec") in output
    assert "1 step(s) failed" in output
    assert not (tmp_path / "jacoco1.exec").exists()


def test_batch_fail_on_error(tmp_path: Path, cli_runner: CliRunner, monkeypatch: MonkeyPatch, closed_port: int) -> None:
    monkeypatch.chdir(tmp_path)
    args = ["batch", "--output-dir", str(tmp_path), "-s", f"tcp://127.0.0.1:{closed_port}", "--fail-on-error"]
    code, output = _run(cli_runner, args)
    assert code == EXIT_UNAVAILABLE
    assert "error while fetching execution data" in output


def test_batch_without_sources(tmp_path: Path, cli_runner: CliRunner) -> None:
    config = tmp_path / "covfetch.toml"
    config.write_text("fail_on_error = true\n", encoding="utf-8")
    code, output = _run(cli_runner, ["batch", "-c", str(config)])
    assert code == EXIT_UNAVAILABLE
    assert "no sources specified" in output


def test_batch_bad_config(tmp_path: Path, cli_runner: CliRunner) -> None:
    config = tmp_path / "covfetch.toml"
    config.write_text("mrege = true\n", encoding="utf-8")
    code, output = _run(cli_runner, ["batch", "-c", str(config)])
    assert code == EXIT_CONFIG
    assert "unknown configuration option" in output
