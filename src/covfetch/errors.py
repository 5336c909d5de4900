"""Centralised exception hierarchy for covfetch."""

from __future__ import annotations


class CovfetchError(Exception):
    """Base class for all custom covfetch exceptions."""


class ValidationError(CovfetchError):
    """Input is missing or invalid; raised before any network I/O where possible."""


class AcquisitionError(CovfetchError):
    """Fetching, decoding, saving or merging execution data failed."""


class ExecDataFormatError(AcquisitionError):
    """A byte stream does not contain valid execution data."""


class BatchError(AcquisitionError):
    """A fail-fast batch run stopped at the first failing step."""


__all__ = [
    "AcquisitionError",
    "BatchError",
    "CovfetchError",
    "ExecDataFormatError",
    "ValidationError",
]
