"""
Pydantic models for the package archive.

This module defines the data models used throughout the application:
- Archive configuration
- Package descriptors and their dependency references
- Index entries and the persisted fast-reload cache document
- The immutable snapshot served to package clients

All models use Pydantic for validation and serialization.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Archive configuration (archive.json)
# ---------------------------------------------------------------------------


class ArchiveConfig(BaseModel):
    """
    Top-level configuration describing the archive.
    Persisted at: <DATA_DIR>/archive.json
    """

    archive_title: str = Field(
        default="Python package archive",
        description="Human-friendly name for this archive.",
    )
    package_root: Optional[str] = Field(
        default=None,
        description="Repository root holding <name>/<version>/<name>.<ext>. Defaults to <DATA_DIR>/packages.",
    )
    store_dir: Optional[str] = Field(
        default=None,
        description="Directory holding the archive-contents cache files. Defaults to <DATA_DIR>/store.",
    )
    single_file_extension: str = Field(
        default=".el",
        description="File extension of single-file packages.",
    )
    bundle_extension: str = Field(
        default=".tar",
        description="File extension of multi-file package bundles.",
    )
    refresh_interval_seconds: int = Field(
        default=300,
        ge=5,
        description="How often the background task checks whether the cache is stale.",
    )
    extraction_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on the time spent extracting metadata from one artifact.",
    )
    extraction_workers: int = Field(
        default=4,
        ge=1,
        description="Number of worker threads used for metadata extraction during a rebuild.",
    )
    purge_privilege_threshold: int = Field(
        default=1,
        description="A forced refresh with a privilege level above this value also deletes the on-disk cache.",
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Timestamp when this configuration was first created.",
    )


# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------


class ArtifactKind(str, Enum):
    """
    How a package is distributed on disk.

    The values double as the symbols used in the served archive-contents.
    """

    SINGLE_FILE = "single"
    BUNDLE = "tar"


def _check_version(value: Tuple[int, ...]) -> Tuple[int, ...]:
    if not value:
        raise ValueError("version must contain at least one component")
    if any(part < 0 for part in value):
        raise ValueError("version components must be non-negative")
    return value


class Requirement(BaseModel):
    """A dependency reference: package name plus minimum version."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: Tuple[int, ...] = Field(
        description="Minimum acceptable version of the required package.",
    )

    @field_validator("version")
    @classmethod
    def _version_not_empty(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        return _check_version(value)


class PackageDescriptor(BaseModel):
    """
    Structured metadata extracted from a single artifact.

    Immutable: the index replaces descriptors, it never edits them.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: Tuple[int, ...]
    requirements: Tuple[Requirement, ...] = Field(default_factory=tuple)
    summary: str = ""
    kind: ArtifactKind
    commentary: Optional[str] = Field(
        default=None,
        description="Long description of the package, served as <name>-readme.txt.",
    )

    @field_validator("version")
    @classmethod
    def _version_not_empty(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        return _check_version(value)


class IndexEntry(BaseModel):
    """The single (kind, descriptor) pair kept per package name."""

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    descriptor: PackageDescriptor
    source: Optional[str] = Field(
        default=None,
        description="Artifact path relative to the repository root. Used to serve downloads.",
    )


class CachedArchive(BaseModel):
    """
    Document stored in the fast-reload cache file.
    Persisted at: <STORE_DIR>/archive-contents.json
    """

    format_version: int = Field(
        default=1,
        description="Layout version of this document; unknown versions are treated as corrupt.",
    )
    entries: Dict[str, IndexEntry] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Served snapshot
# ---------------------------------------------------------------------------


class SnapshotEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    version: Tuple[int, ...]
    requirements: Tuple[Requirement, ...] = ()
    summary: str = ""
    kind: ArtifactKind


class ArchiveSnapshot(BaseModel):
    """
    Immutable, client-protocol-shaped rendering of the index.

    generated_at is the repository root's modification time when the
    snapshot was taken and is what the HTTP layer sends as Last-Modified.
    """

    model_config = ConfigDict(frozen=True)

    entries: Tuple[SnapshotEntry, ...] = ()
    generated_at: datetime

    def __len__(self) -> int:
        return len(self.entries)

    def names(self) -> Tuple[str, ...]:
        return tuple(entry.name for entry in self.entries)
