"""Central configuration and constants for ``covfetch``."""

from __future__ import annotations

from pathlib import Path

# Default logging format used by the CLI entry point.
LOG_FORMAT = "%(levelname)s: %(message)s"

MAX_PORT = 2**16 - 1

# Connect/read timeout for remote agents, in seconds.
DEFAULT_TIMEOUT = 30.0

DEFAULT_OUTPUT_DIR = Path("target/covfetch")
DEFAULT_OUTPUT_FILE = DEFAULT_OUTPUT_DIR / "jacoco.exec"
DEFAULT_MERGE_FILE_NAME = "merged.exec"
OUTPUT_FILE_PREFIX = "jacoco"
OUTPUT_FILE_SUFFIX = ".exec"

# Locator synthesised for an explicit ``jmx`` source.
JMX_URL_PREFIX = "service:jmx:rmi:///jndi/rmi://"
JMX_URL_SUFFIX = "/jmxrmi"

JMX_CREDENTIALS_KEY = "jmx.remote.credentials"
RUNTIME_OBJECT_NAME = "org.jacoco:type=Runtime"
FETCH_OPERATION = "getExecutionData"

CONFIG_FILE_NAME = "covfetch.toml"


def default_output_file(output_dir: Path, index: int) -> Path:
    """Return ``<output_dir>/jacoco<index+1>.exec`` for the zero-based *index*."""
    return output_dir / f"{OUTPUT_FILE_PREFIX}{index + 1}{OUTPUT_FILE_SUFFIX}"


__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_MERGE_FILE_NAME",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_OUTPUT_FILE",
    "DEFAULT_TIMEOUT",
    "FETCH_OPERATION",
    "JMX_CREDENTIALS_KEY",
    "JMX_URL_PREFIX",
    "JMX_URL_SUFFIX",
    "LOG_FORMAT",
    "MAX_PORT",
    "RUNTIME_OBJECT_NAME",
    "default_output_file",
]
