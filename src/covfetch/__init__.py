"""Fetch JaCoCo execution data from remote agents and merge it."""

from covfetch._meta import __version__, logger

__all__ = ["__version__", "logger"]
