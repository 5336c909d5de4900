"""Fetch execution data for one or many sources and save it to disk.

This is the glue between :mod:`covfetch.source`, the transport clients and
:mod:`covfetch.merge`. Sources are processed one after another; at most one
connection is open at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

from covfetch._meta import logger
from covfetch.core.config import DEFAULT_MERGE_FILE_NAME, DEFAULT_OUTPUT_DIR, DEFAULT_TIMEOUT, default_output_file
from covfetch.errors import AcquisitionError, BatchError, CovfetchError, ValidationError
from covfetch.merge import merge as merge_files
from covfetch.merge import prepare_destination
from covfetch.source import ResolvedSource, RpcEndpoint, SourceSpec, TcpEndpoint
from covfetch.transport.rpc import RpcCoverageClient
from covfetch.transport.tcp import TcpCoverageClient

if TYPE_CHECKING:
    from collections.abc import Sequence


def fetch(
    resolved: ResolvedSource,
    *,
    tcp_client: TcpCoverageClient | None = None,
    rpc_client: RpcCoverageClient | None = None,
) -> bytes:
    """Pull the raw exec stream for an already resolved source."""
    endpoint = resolved.endpoint
    if isinstance(endpoint, TcpEndpoint):
        client = tcp_client or TcpCoverageClient()
        return client.fetch(endpoint.hostname, endpoint.port, reset=resolved.reset_after_fetch)
    if isinstance(endpoint, RpcEndpoint):
        rpc = rpc_client or RpcCoverageClient()
        return rpc.fetch(
            endpoint.service_url,
            endpoint.username,
            endpoint.password,
            reset=resolved.reset_after_fetch,
        )
    msg = f"unsupported endpoint: {endpoint!r}"  # pragma: no cover
    raise ValidationError(msg)  # pragma: no cover


def save_execution_data(data: bytes | None, output_file: Path) -> bool:
    """Write *data* to the new file *output_file*.

    Returns ``False`` (and writes nothing) for an empty payload.

    Raises
    ------
    AcquisitionError
        When *output_file* exists already or cannot be written.
    """
    logger.info("saving execution data to file: '%s'", Path(output_file).absolute())
    target = prepare_destination(Path(output_file))
    if not data:
        logger.warning("execution data is empty, nothing to save")
        return False
    try:
        with target.open("xb") as fh:
            fh.write(data)
    except OSError as exc:
        msg = f"error saving execution data to file: '{target.absolute()}'"
        raise AcquisitionError(msg) from exc
    return True


def fetch_to_file(
    spec: SourceSpec,
    *,
    tcp_client: TcpCoverageClient | None = None,
    rpc_client: RpcCoverageClient | None = None,
) -> bool:
    """Resolve *spec*, fetch its data and save it to ``spec.output_file``."""
    resolved = spec.resolve()
    if resolved.output_file is None:
        msg = "no output file given for source"
        raise ValidationError(msg)
    data = fetch(resolved, tcp_client=tcp_client, rpc_client=rpc_client)
    return save_execution_data(data, resolved.output_file)


# --------------------------------------------------------------------------- #
# Batch                                                                       #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class BatchPlan:
    """Everything a batch run needs.

    ``fail_on_error`` stops the run at the first failure; otherwise failures
    are logged and the remaining sources are still processed.
    """

    sources: tuple[SourceSpec, ...]
    output_dir: Path = DEFAULT_OUTPUT_DIR
    merge: bool = False
    merge_file: Path | None = None
    fail_on_error: bool = False
    timeout: float | None = DEFAULT_TIMEOUT
    proxy_url: str | None = None

    @property
    def resolved_merge_file(self) -> Path:
        return self.merge_file or self.output_dir / DEFAULT_MERGE_FILE_NAME


@dataclass(frozen=True, slots=True)
class SourceFailure:
    index: int
    error: CovfetchError


@dataclass(slots=True)
class BatchResult:
    outputs: list[Path] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)
    merged: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.failures


def _handle_error(plan: BatchPlan, result: BatchResult, index: int, exc: CovfetchError) -> None:
    if plan.fail_on_error:
        msg = f"error while fetching execution data: {exc}"
        raise BatchError(msg) from exc
    logger.warning("error while fetching execution data, reason: %s", exc)
    result.failures.append(SourceFailure(index=index, error=exc))


def with_default_output(spec: SourceSpec, output_dir: Path, index: int) -> SourceSpec:
    if spec.output_file is not None:
        return spec
    return replace(spec, output_file=default_output_file(output_dir, index))


def run_batch(
    plan: BatchPlan,
    *,
    tcp_client: TcpCoverageClient | None = None,
    rpc_client: RpcCoverageClient | None = None,
) -> BatchResult:
    """Fetch every source of *plan* in order, then merge when requested.

    Raises
    ------
    BatchError
        Only when ``plan.fail_on_error`` is set, wrapping the first failure.
    """
    tcp_client = tcp_client or TcpCoverageClient(timeout=plan.timeout)
    rpc_client = rpc_client or RpcCoverageClient(proxy_url=plan.proxy_url, timeout=plan.timeout)
    result = BatchResult()

    if not plan.sources:
        _handle_error(plan, result, -1, ValidationError("no sources specified"))
        return result

    for index, source in enumerate(plan.sources):
        spec = with_default_output(source, plan.output_dir, index)
        try:
            logger.debug("source %d: %r", index + 1, spec)
            if fetch_to_file(spec, tcp_client=tcp_client, rpc_client=rpc_client):
                result.outputs.append(spec.output_file)
        except CovfetchError as exc:
            _handle_error(plan, result, index, exc)

    if plan.merge:
        inputs = merge_inputs(plan.sources, plan.output_dir)
        try:
            result.merged = merge_files(inputs, plan.resolved_merge_file)
        except CovfetchError as exc:
            _handle_error(plan, result, len(plan.sources), exc)
    return result


def merge_inputs(sources: Sequence[SourceSpec], output_dir: Path) -> list[Path]:
    """Output files of *sources* that exist on disk, in source order."""
    paths = [with_default_output(s, output_dir, i).output_file for i, s in enumerate(sources)]
    return [p for p in paths if p is not None and p.is_file()]


__all__ = [
    "BatchPlan",
    "BatchResult",
    "SourceFailure",
    "fetch",
    "fetch_to_file",
    "merge_inputs",
    "run_batch",
    "save_execution_data",
    "with_default_output",
]
