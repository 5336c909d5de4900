"""Batch configuration read from TOML.

Either a dedicated ``covfetch.toml`` or a ``[tool.covfetch]`` table in
``pyproject.toml``::

    output_dir = "target/covfetch"
    merge = true
    fail_on_error = false

    [[sources]]
    service_url = "tcp://app1.example.com:6300"

    [[sources]]
    type = "jmx"
    hostname = "app2.example.com"
    port = 9999
    username = "monitor"
    password = "secret"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from covfetch._meta import logger
from covfetch.acquire import BatchPlan
from covfetch.core.config import CONFIG_FILE_NAME, DEFAULT_OUTPUT_DIR, DEFAULT_TIMEOUT
from covfetch.errors import ValidationError
from covfetch.source import SourceSpec

if TYPE_CHECKING:
    from collections.abc import Mapping

_KEYS = frozenset({"output_dir", "merge", "merge_file", "fail_on_error", "timeout", "proxy_url", "sources"})


@dataclass(frozen=True, slots=True)
class BatchConfig:
    sources: tuple[SourceSpec, ...] = ()
    output_dir: Path = DEFAULT_OUTPUT_DIR
    merge: bool = False
    merge_file: Path | None = None
    fail_on_error: bool = False
    timeout: float | None = DEFAULT_TIMEOUT
    proxy_url: str | None = None
    origin: Path | None = field(default=None, compare=False)

    def to_plan(self) -> BatchPlan:
        return BatchPlan(
            sources=self.sources,
            output_dir=self.output_dir,
            merge=self.merge,
            merge_file=self.merge_file,
            fail_on_error=self.fail_on_error,
            timeout=self.timeout,
            proxy_url=self.proxy_url,
        )


def _bool(table: Mapping[str, Any], key: str, default: bool) -> bool:  # noqa: FBT001
    value = table.get(key, default)
    if not isinstance(value, bool):
        msg = f"{key!r} must be a boolean, got {value!r}"
        raise ValidationError(msg)
    return value


def _path(table: Mapping[str, Any], key: str, base: Path) -> Path | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        msg = f"{key!r} must be a non-empty path string, got {value!r}"
        raise ValidationError(msg)
    path = Path(value)
    return path if path.is_absolute() else base / path


def _timeout(table: Mapping[str, Any]) -> float | None:
    value = table.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        msg = f"'timeout' must be a positive number of seconds, got {value!r}"
        raise ValidationError(msg)
    return float(value)


def parse_config(table: Mapping[str, Any], *, base: Path, origin: Path | None = None) -> BatchConfig:
    """Build a :class:`BatchConfig` from a TOML table; relative paths use *base*."""
    unknown = sorted(set(table) - _KEYS)
    if unknown:
        msg = f"unknown configuration option(s): {', '.join(unknown)}"
        raise ValidationError(msg)

    raw_sources = table.get("sources", [])
    if not isinstance(raw_sources, list) or not all(isinstance(s, dict) for s in raw_sources):
        msg = "'sources' must be an array of tables"
        raise ValidationError(msg)

    proxy_url = table.get("proxy_url")
    if proxy_url is not None and not isinstance(proxy_url, str):
        msg = f"'proxy_url' must be a string, got {proxy_url!r}"
        raise ValidationError(msg)

    return BatchConfig(
        sources=tuple(SourceSpec.from_mapping(s, base=base) for s in raw_sources),
        output_dir=_path(table, "output_dir", base) or base / DEFAULT_OUTPUT_DIR,
        merge=_bool(table, "merge", default=False),
        merge_file=_path(table, "merge_file", base),
        fail_on_error=_bool(table, "fail_on_error", default=False),
        timeout=_timeout(table),
        proxy_url=proxy_url,
        origin=origin,
    )


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config_file(path: Path) -> BatchConfig:
    """Load an explicitly requested config file; every problem is a ValidationError."""
    try:
        data = _read_toml(path)
    except (OSError, tomllib.TOMLDecodeError) as e:
        msg = f"cannot read configuration {path}: {e}"
        raise ValidationError(msg) from e
    if path.name == "pyproject.toml":
        data = data.get("tool", {}).get("covfetch", {})
    return parse_config(data, base=path.resolve().parent, origin=path)


def _get_table_from_pyproject(pyproject: Path) -> dict[str, Any] | None:
    """Extract ``[tool.covfetch]`` from pyproject.toml."""
    try:
        data = _read_toml(pyproject)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to parse %s: %s", pyproject, e)
        return None
    table = data.get("tool", {}).get("covfetch")
    return table if isinstance(table, dict) else None


def _get_table_from_config(config_path: Path) -> dict[str, Any] | None:
    try:
        return _read_toml(config_path)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to parse %s: %s", config_path, e)
        return None


def discover_config(cwd: Path | None = None) -> BatchConfig | None:
    """Look for ``covfetch.toml``, then ``[tool.covfetch]`` in ``pyproject.toml``."""
    root = (cwd or Path.cwd()).resolve()
    candidates = [
        (root / CONFIG_FILE_NAME, _get_table_from_config),
        (root / "pyproject.toml", _get_table_from_pyproject),
    ]
    for path, extractor in candidates:
        if path.exists():
            table = extractor(path)
            if table is not None:
                logger.info("Using configuration from %s", path)
                return parse_config(table, base=root, origin=path)
    return None


__all__ = ["BatchConfig", "discover_config", "load_config_file", "parse_config"]
