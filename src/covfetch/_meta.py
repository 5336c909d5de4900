from __future__ import annotations

import logging
from importlib.metadata import version

__version__ = version("covfetch")

logger = logging.getLogger("covfetch")

__all__ = ["__version__", "logger"]
