"""
Exception types raised by the archive indexing and caching engine.

Per-artifact failures (ExtractionError) never escalate to a rebuild failure,
and rebuild failures (ScanError, CacheCorruptError) never escalate to a
request failure: the archive service always serves some snapshot.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class ArchiveError(Exception):
    """Base class for all archive errors."""


class ScanError(ArchiveError):
    """Listing the repository root (or one of its directories) failed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot scan {path}: {reason}")
        self.path = path
        self.reason = reason


class ExtractionError(ArchiveError):
    """A single artifact could not be turned into a package descriptor."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(f"{path}: {message}" if path is not None else message)
        self.path = path


class MissingTerminatorError(ExtractionError):
    """
    A single-file package has no "ends here" trailer line.

    The header itself may be perfectly readable, so callers can re-parse
    leniently instead of discarding the artifact.
    """


class CacheCorruptError(ArchiveError):
    """The fast-reload cache file is missing or cannot be parsed."""


class CacheWriteError(ArchiveError):
    """The cache store could not be written."""
