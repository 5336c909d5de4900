"""Tests for batch configuration loading and module side-effect behavior."""

from __future__ import annotations

import importlib
import logging
import sys
import textwrap
import tomllib
from typing import TYPE_CHECKING

import pytest

from covfetch.config import BatchConfig, discover_config, load_config_file, parse_config
from covfetch.core.config import DEFAULT_OUTPUT_DIR, DEFAULT_TIMEOUT
from covfetch.errors import ValidationError

if TYPE_CHECKING:
    from pathlib import Path

    from _pytest.monkeypatch import MonkeyPatch


CONFIG = textwrap.dedent(
    """
    output_dir = "out"
    merge = true
    timeout = 5
    proxy_url = "http://proxy:8080/jolokia"

    [[sources]]
    service_url = "tcp://localhost:6300"
    output_file = "first.exec"

    [[sources]]
    type = "jmx"
    hostname = "localhost"
    port = 9999
    reset_after_fetch = false
    """
)


def test_import_has_no_side_effects(monkeypatch: MonkeyPatch) -> None:
    """Importing the package should not configure logging."""
    basic_called = False

    def fake_basic(*args, **kwargs):
        nonlocal basic_called
        basic_called = True

    monkeypatch.setattr(logging, "basicConfig", fake_basic)

    for name in [m for m in sys.modules if m == "covfetch" or m.startswith("covfetch.")]:
        monkeypatch.delitem(sys.modules, name)

    importlib.import_module("covfetch.cli")

    assert not basic_called


# --- Tests for parse_config ---


def test_parse_config_defaults(tmp_path: Path) -> None:
    cfg = parse_config({}, base=tmp_path)
    assert cfg == BatchConfig(output_dir=tmp_path / DEFAULT_OUTPUT_DIR)
    assert cfg.timeout == DEFAULT_TIMEOUT
    assert cfg.sources == ()


def test_parse_config_relative_paths(tmp_path: Path) -> None:
    cfg = parse_config(tomllib.loads(CONFIG), base=tmp_path)

    assert cfg.output_dir == tmp_path / "out"
    assert cfg.merge is True
    assert cfg.timeout == 5.0
    assert cfg.proxy_url == "http://proxy:8080/jolokia"
    first, second = cfg.sources
    assert first.output_file == tmp_path / "first.exec"
    assert second.type == "jmx"
    assert second.reset_after_fetch is False

    plan = cfg.to_plan()
    assert plan.sources == cfg.sources
    assert plan.resolved_merge_file == tmp_path / "out" / "merged.exec"


@pytest.mark.parametrize(
    ("table", "message"),
    [
        ({"outputdir": "x"}, "unknown configuration option"),
        ({"merge": "yes"}, "'merge' must be a boolean"),
        ({"fail_on_error": 1}, "'fail_on_error' must be a boolean"),
        ({"timeout": 0}, "'timeout' must be a positive number"),
        ({"timeout": True}, "'timeout' must be a positive number"),
        ({"output_dir": ""}, "non-empty path"),
        ({"proxy_url": 8080}, "'proxy_url' must be a string"),
        ({"sources": {"type": "tcp"}}, "'sources' must be an array of tables"),
        ({"sources": [{"host": "x"}]}, "unknown source option"),
    ],
)
def test_parse_config_rejects_bad_values(tmp_path: Path, table: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        parse_config(table, base=tmp_path)


def test_sources_are_not_resolved_while_loading(tmp_path: Path) -> None:
    cfg = parse_config({"sources": [{"type": "tcp", "hostname": "localhost", "port": 0}]}, base=tmp_path)
    assert cfg.sources[0].resolved is None


# --- Tests for loading files ---


def test_load_config_file(tmp_path: Path) -> None:
    path = tmp_path / "covfetch.toml"
    path.write_text(CONFIG, encoding="utf-8")
    cfg = load_config_file(path)
    assert cfg.origin == path
    assert len(cfg.sources) == 2


def test_load_config_file_from_pyproject(tmp_path: Path) -> None:
    path = tmp_path / "pyproject.toml"
    path.write_text('[tool.covfetch]\nmerge = true\n[[tool.covfetch.sources]]\nlocator = "tcp://localhost:1"\n')
    cfg = load_config_file(path)
    assert cfg.merge is True
    assert cfg.sources[0].service_url == "tcp://localhost:1"


def test_load_config_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="cannot read configuration"):
        load_config_file(tmp_path / "missing.toml")
    bad = tmp_path / "bad.toml"
    bad.write_text("merge = ", encoding="utf-8")
    with pytest.raises(ValidationError, match="cannot read configuration"):
        load_config_file(bad)


# --- Tests for discover_config ---


def test_discover_prefers_dedicated_file(tmp_path: Path) -> None:
    (tmp_path / "covfetch.toml").write_text("merge = true\n", encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text("[tool.covfetch]\nmerge = false\n", encoding="utf-8")
    cfg = discover_config(tmp_path)
    assert cfg is not None
    assert cfg.merge is True
    assert cfg.origin == tmp_path.resolve() / "covfetch.toml"


def test_discover_falls_back_to_pyproject(tmp_path: Path, monkeypatch: MonkeyPatch) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.covfetch]\nfail_on_error = true\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    cfg = discover_config()
    assert cfg is not None
    assert cfg.fail_on_error is True


def test_discover_ignores_pyproject_without_table(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.pytest.ini_options]\naddopts = ['-q']\n", encoding="utf-8")
    assert discover_config(tmp_path) is None


def test_discover_warns_on_invalid_toml(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / "pyproject.toml").write_text("[tool.covfetch\n", encoding="utf-8")
    assert discover_config(tmp_path) is None
    assert "Failed to parse" in caplog.text


def test_discover_nothing(tmp_path: Path) -> None:
    assert discover_config(tmp_path) is None
