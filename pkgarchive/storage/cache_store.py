"""
On-disk cache of the archive index.

Two files live in the store directory:
* archive-contents       the served representation, ready for a proxy
* archive-contents.json  the fast-reload form read back by load()
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from pkgarchive.core.errors import CacheCorruptError, CacheWriteError
from pkgarchive.data.archive_index import ArchiveIndex
from pkgarchive.domain.models import ArtifactKind, CachedArchive, SnapshotEntry
from pkgarchive.domain.sexp import dump_archive_contents

logger = logging.getLogger(__name__)

CONTENTS_FILENAME = "archive-contents"
CACHE_FILENAME = "archive-contents.json"
CACHE_FORMAT_VERSION = 1


def snapshot_entries(index: ArchiveIndex):
    """Served-form entries of an index, sorted by package name."""
    return tuple(
        SnapshotEntry(
            name=name,
            version=entry.descriptor.version,
            requirements=entry.descriptor.requirements,
            summary=entry.descriptor.summary,
            kind=ArtifactKind(entry.kind),
        )
        for name, entry in index.items()
    )


class CacheStore:
    """Reads and writes the cache files of one store directory."""

    def __init__(self, store_dir: Path):
        self.store_dir = Path(store_dir)

    @property
    def cache_path(self) -> Path:
        return self.store_dir / CACHE_FILENAME

    @property
    def contents_path(self) -> Path:
        return self.store_dir / CONTENTS_FILENAME

    def _write_atomic(self, path: Path, text: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheWriteError(f"Cannot write {path}: {exc}") from exc

    def save(self, index: ArchiveIndex) -> Optional[Path]:
        """
        Persist index to the store. Returns the fast-reload cache path, or
        None if the store is not writable (the index is still usable from
        memory, so this is only logged).
        """
        document = CachedArchive(format_version=CACHE_FORMAT_VERSION, entries=index.as_dict())
        try:
            self._write_atomic(self.contents_path, dump_archive_contents(snapshot_entries(index)))
            self._write_atomic(self.cache_path, document.model_dump_json(indent=2))
        except CacheWriteError as exc:
            logger.warning(f"Archive cache not saved: {exc}")
            return None
        logger.info(f"Saved archive cache with {len(index)} packages to {self.cache_path}")
        return self.cache_path

    def load(self) -> ArchiveIndex:
        """
        Read the fast-reload cache back into an index.

        Raises CacheCorruptError if the file is missing or malformed.
        """
        path = self.cache_path
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise CacheCorruptError(f"No cache at {path}") from exc
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CacheCorruptError(f"Unreadable cache {path}: {exc}") from exc

        try:
            document = CachedArchive(**raw) if isinstance(raw, dict) else None
        except ValidationError as exc:
            raise CacheCorruptError(f"Invalid cache {path}: {exc}") from exc
        if document is None:
            raise CacheCorruptError(f"Invalid cache {path}: expected a JSON object")
        if document.format_version != CACHE_FORMAT_VERSION:
            raise CacheCorruptError(f"Unsupported cache format {document.format_version} in {path}")

        for name, entry in document.entries.items():
            if entry.descriptor.name != name:
                raise CacheCorruptError(f"Cache entry {name!r} holds descriptor for {entry.descriptor.name!r}")
        return ArchiveIndex(document.entries)

    def purge(self) -> bool:
        """Delete both cache files. Returns True if anything was removed."""
        removed = False
        for path in (self.cache_path, self.contents_path):
            try:
                path.unlink()
                removed = True
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning(f"Could not delete {path}: {exc}")
        if removed:
            logger.info(f"Purged archive cache in {self.store_dir}")
        return removed
