from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer

from covfetch._meta import logger
from covfetch.acquire import run_batch
from covfetch.cli._shared import exit_on_error
from covfetch.cli.exit_codes import EXIT_OK
from covfetch.config import BatchConfig, discover_config, load_config_file
from covfetch.source import SourceSpec


def _load(config: Path | None) -> BatchConfig:
    if config is not None:
        return load_config_file(config)
    found = discover_config()
    if found is None:
        logger.debug("no configuration file found, using defaults")
        return BatchConfig()
    return found


def batch_cmd(
    config: Annotated[
        Path | None,
        typer.Option("-c", "--config", help="TOML file with [[sources]] (default: covfetch.toml or pyproject.toml)."),
    ] = None,
    source: Annotated[
        list[str] | None,
        typer.Option("-s", "--source", help="Extra source locator (repeatable), fetched after configured sources."),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option("--output-dir", help="Directory for jacoco<N>.exec files of sources without output_file."),
    ] = None,
    merge: Annotated[
        bool | None,
        typer.Option("--merge/--no-merge", help="Merge all fetched files into one."),
    ] = None,
    merge_file: Annotated[
        Path | None,
        typer.Option("--merge-file", help="Merged exec file (default: <output-dir>/merged.exec)."),
    ] = None,
    fail_on_error: Annotated[
        bool | None,
        typer.Option("--fail-on-error/--no-fail-on-error", help="Stop at the first failing source."),
    ] = None,
    proxy_url: Annotated[
        str | None,
        typer.Option("--proxy-url", help="Jolokia proxy for service URLs that are not a Jolokia agent."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Connect/read timeout in seconds.", min=0.1),
    ] = None,
) -> None:
    """Fetch from every configured source in order, optionally merging the results.

    Sources reset the remote counters after the dump unless they set
    reset_after_fetch = false.
    """
    with exit_on_error():
        cfg = _load(config)
        extra = tuple(SourceSpec(service_url=s) for s in source or ())
        overrides: dict[str, object] = {"sources": cfg.sources + extra}
        if output_dir is not None:
            overrides["output_dir"] = output_dir
        if merge is not None:
            overrides["merge"] = merge
        if merge_file is not None:
            overrides["merge_file"] = merge_file
        if fail_on_error is not None:
            overrides["fail_on_error"] = fail_on_error
        if proxy_url is not None:
            overrides["proxy_url"] = proxy_url
        if timeout is not None:
            overrides["timeout"] = timeout
        plan = replace(cfg, **overrides).to_plan()
        result = run_batch(plan)

    for path in result.outputs:
        typer.echo(str(path))
    if result.merged is not None:
        typer.echo(str(result.merged))
    if result.failures:
        typer.echo(f"WARNING: {len(result.failures)} step(s) failed, see log", err=True)
    raise typer.Exit(code=EXIT_OK)


def register(app: typer.Typer) -> None:
    app.command("batch")(batch_cmd)


__all__ = ["register"]
