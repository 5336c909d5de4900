from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from covfetch.acquire import fetch_to_file
from covfetch.cli._shared import exit_on_error
from covfetch.cli.exit_codes import EXIT_OK
from covfetch.core.config import DEFAULT_OUTPUT_FILE, DEFAULT_TIMEOUT
from covfetch.source import SourceSpec
from covfetch.transport.rpc import RpcCoverageClient
from covfetch.transport.tcp import TcpCoverageClient

_RESET_HELP = "Clear the remote agent's coverage counters after the dump."


def _report(saved: bool, output: Path) -> None:  # noqa: FBT001
    if saved:
        typer.echo(str(output))
    else:
        typer.echo("WARNING: no execution data received, nothing saved", err=True)


def tcp_cmd(
    hostname: Annotated[str, typer.Argument(help="Host running the agent in tcpserver mode.")],
    port: Annotated[int, typer.Argument(help="Port the agent listens on.")],
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Exec file to create (must not exist)."),
    ] = DEFAULT_OUTPUT_FILE,
    reset: Annotated[bool, typer.Option("--reset/--no-reset", help=_RESET_HELP)] = True,
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="Connect/read timeout in seconds.", min=0.1),
    ] = DEFAULT_TIMEOUT,
) -> None:
    """Dump execution data from an agent's TCP server."""
    spec = SourceSpec(type="tcp", hostname=hostname, port=port, output_file=output, reset_after_fetch=reset)
    with exit_on_error():
        saved = fetch_to_file(spec, tcp_client=TcpCoverageClient(timeout=timeout))
    _report(saved, output)
    raise typer.Exit(code=EXIT_OK)


def jmx_cmd(
    locator: Annotated[
        str,
        typer.Argument(help="Service URL, e.g. service:jmx:jolokia://host:8778/jolokia"),
    ],
    username: Annotated[str | None, typer.Option("-u", "--username", help="Management user.")] = None,
    password: Annotated[str | None, typer.Option("-p", "--password", help="Management password.")] = None,
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Exec file to create (must not exist)."),
    ] = DEFAULT_OUTPUT_FILE,
    reset: Annotated[bool, typer.Option("--reset/--no-reset", help=_RESET_HELP)] = True,
    proxy_url: Annotated[
        str | None,
        typer.Option("--proxy-url", help="Jolokia proxy for service URLs that are not a Jolokia agent."),
    ] = None,
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="HTTP timeout in seconds.", min=0.1),
    ] = DEFAULT_TIMEOUT,
) -> None:
    """Fetch execution data through the agent's management interface."""
    spec = SourceSpec(
        service_url=locator,
        username=username,
        password=password,
        output_file=output,
        reset_after_fetch=reset,
    )
    with exit_on_error():
        saved = fetch_to_file(spec, rpc_client=RpcCoverageClient(proxy_url=proxy_url, timeout=timeout))
    _report(saved, output)
    raise typer.Exit(code=EXIT_OK)


def register(app: typer.Typer) -> None:
    app.command("tcp")(tcp_cmd)
    app.command("jmx")(jmx_cmd)


__all__ = ["register"]
