"""
Archive service: the single entry point used by the HTTP layer.

Responsibilities:
- Hand out immutable snapshots of the archive index
- Decide between adopting the persisted cache and rebuilding from disk
- Run at most one rebuild at a time; concurrent callers wait for it
- Keep serving the previous index when a rebuild fails
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, Tuple

from pkgarchive.core.errors import CacheCorruptError, ScanError
from pkgarchive.data.archive_index import ArchiveIndex
from pkgarchive.data.config import get_data_dir, package_root, store_dir
from pkgarchive.data.discovery import discover_artifacts
from pkgarchive.data.metadata import MetadataExtractor
from pkgarchive.domain.models import ArchiveConfig, ArchiveSnapshot, ArtifactKind, SnapshotEntry
from pkgarchive.domain.package_format import NO_COMMENTARY
from pkgarchive.domain.sexp import dump_archive_contents
from pkgarchive.domain.versions import format_version
from pkgarchive.storage.cache_store import CacheStore, snapshot_entries
from pkgarchive.storage.staleness import is_stale, root_timestamp

logger = logging.getLogger(__name__)


class ArchiveService:
    """
    Owns the in-memory index of one repository root.

    The index object is never mutated once adopted: rebuilds construct a
    new ArchiveIndex and swap the reference, so readers holding the
    previous one are unaffected.
    """

    def __init__(
        self,
        root: Path,
        store: CacheStore,
        extractor: Optional[MetadataExtractor] = None,
        single_file_extension: str = ".el",
        bundle_extension: str = ".tar",
        purge_privilege_threshold: int = 1,
    ):
        self.root = Path(root)
        self.store = store
        self.extractor = extractor or MetadataExtractor()
        self.single_file_extension = single_file_extension
        self.bundle_extension = bundle_extension
        self.purge_privilege_threshold = purge_privilege_threshold

        self._lock = threading.Lock()
        self._index: Optional[ArchiveIndex] = None
        # Last successfully built or loaded index, served if a rebuild fails.
        self._last_good: Optional[ArchiveIndex] = None
        self._pending: Optional[Future] = None
        self._rendered: Optional[Tuple[ArchiveIndex, Tuple[SnapshotEntry, ...]]] = None

    @classmethod
    def from_config(cls, config: ArchiveConfig, data_dir: Optional[Path] = None) -> "ArchiveService":
        data_dir = data_dir or get_data_dir()
        root = package_root(config, data_dir)
        root.mkdir(parents=True, exist_ok=True)
        return cls(
            root=root,
            store=CacheStore(store_dir(config, data_dir)),
            extractor=MetadataExtractor(
                timeout_seconds=config.extraction_timeout_seconds,
                max_workers=config.extraction_workers,
            ),
            single_file_extension=config.single_file_extension,
            bundle_extension=config.bundle_extension,
            purge_privilege_threshold=config.purge_privilege_threshold,
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_snapshot(self, force_refresh: bool = False, privilege: int = 0) -> ArchiveSnapshot:
        """
        Return the current archive snapshot, loading or rebuilding the
        index when nothing is held in memory.

        force_refresh drops the in-memory index first. When privilege is
        above the configured threshold the on-disk cache is deleted too,
        which forces a full rebuild.

        Never raises for scan or cache problems; the worst case is an
        empty snapshot.
        """
        if force_refresh:
            self.invalidate(privilege)
        index = self._current_index()
        return ArchiveSnapshot(entries=self._entries_for(index), generated_at=root_timestamp(self.root))

    def refresh(self, privilege: int = 0) -> Tuple[ArchiveSnapshot, bool]:
        """
        Administrative trigger: force a refresh at the given privilege level.
        Returns the new snapshot and whether the on-disk cache was purged.
        """
        purged = self.invalidate(privilege)
        return self.get_snapshot(), purged

    def invalidate(self, privilege: int = 0) -> bool:
        """
        Forget the in-memory index. Returns True if the on-disk cache was
        purged as well.
        """
        with self._lock:
            self._index = None
        if privilege > self.purge_privilege_threshold:
            logger.info(f"Forced refresh at privilege {privilege}, purging on-disk cache")
            return self.store.purge()
        return False

    def refresh_if_stale(self) -> bool:
        """
        Rebuild when the cache is older than the repository root. The
        current index stays visible until the new one is swapped in.
        """
        if not is_stale(self.root, self.store.cache_path):
            return False
        logger.info(f"Archive cache for {self.root} is stale, rebuilding")
        self._rebuild_once()
        return True

    def render_contents(self, snapshot: Optional[ArchiveSnapshot] = None) -> str:
        if snapshot is None:
            snapshot = self.get_snapshot()
        return dump_archive_contents(snapshot.entries)

    @property
    def loaded_package_count(self) -> Optional[int]:
        """Package count of the in-memory index, None when nothing is loaded."""
        with self._lock:
            return len(self._index) if self._index is not None else None

    # ------------------------------------------------------------------
    # Artifact lookups
    # ------------------------------------------------------------------

    def find_artifact(self, filename: str) -> Optional[Path]:
        """
        Map a download name such as "foo-1.2.el" to the indexed artifact.
        Only the indexed (highest) version of a package can be fetched.
        """
        kinds = (
            (self.single_file_extension, ArtifactKind.SINGLE_FILE),
            (self.bundle_extension, ArtifactKind.BUNDLE),
        )
        for ext, kind in kinds:
            if not filename.endswith(ext):
                continue
            name, sep, version = filename[: -len(ext)].rpartition("-")
            if not sep:
                continue
            entry = self._current_index().get(name)
            if entry is None or entry.kind != kind or entry.source is None:
                continue
            if format_version(entry.descriptor.version) != version:
                continue

            path = (self.root / entry.source).resolve()
            if self.root.resolve() not in path.parents or not path.is_file():
                return None
            return path
        return None

    def readme(self, name: str) -> Optional[str]:
        entry = self._current_index().get(name)
        if entry is None:
            return None
        return entry.descriptor.commentary or NO_COMMENTARY

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entries_for(self, index: ArchiveIndex) -> Tuple[SnapshotEntry, ...]:
        rendered = self._rendered
        if rendered is not None and rendered[0] is index:
            return rendered[1]
        entries = snapshot_entries(index)
        self._rendered = (index, entries)
        return entries

    def _current_index(self) -> ArchiveIndex:
        with self._lock:
            if self._index is not None:
                return self._index

        loaded = self._load_if_fresh()
        if loaded is not None:
            with self._lock:
                if self._index is None:
                    self._index = loaded
                    self._last_good = loaded
                return self._index

        return self._rebuild_once()

    def _load_if_fresh(self) -> Optional[ArchiveIndex]:
        if is_stale(self.root, self.store.cache_path):
            return None
        try:
            index = self.store.load()
        except CacheCorruptError as exc:
            logger.warning(f"Ignoring archive cache: {exc}")
            return None
        logger.info(f"Loaded archive cache with {len(index)} packages from {self.store.cache_path}")
        return index

    def _rebuild_once(self) -> ArchiveIndex:
        """
        Rebuild the index, or wait for the rebuild already in progress.
        """
        with self._lock:
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()
        if not owner:
            return pending.result()

        index: Optional[ArchiveIndex] = None
        try:
            index = self._rebuild_or_fall_back()
        finally:
            with self._lock:
                self._pending = None
            # Waiters of an interrupted rebuild get the previous index.
            pending.set_result(index if index is not None else self._fall_back())
        return index

    def _rebuild_or_fall_back(self) -> ArchiveIndex:
        try:
            index = self._build_index()
        except ScanError as exc:
            logger.error(f"Archive rebuild aborted: {exc}")
            return self._fall_back()
        except Exception as exc:
            logger.error(f"Archive rebuild failed: {exc}", exc_info=True)
            return self._fall_back()

        with self._lock:
            self._index = index
            self._last_good = index
        return index

    def _fall_back(self) -> ArchiveIndex:
        with self._lock:
            if self._last_good is not None:
                self._index = self._last_good
                return self._last_good
        return ArchiveIndex()

    def _build_index(self) -> ArchiveIndex:
        started = time.monotonic()
        candidates = discover_artifacts(self.root, self.single_file_extension, self.bundle_extension)
        index = ArchiveIndex.build(
            (candidate.kind, descriptor, candidate.relative_path)
            for candidate, descriptor in self.extractor.extract_all(candidates)
        )
        self.store.save(index)
        logger.info(
            f"Rebuilt archive index for {self.root}: {len(index)} packages "
            f"from {len(candidates)} artifacts in {time.monotonic() - started:.2f}s"
        )
        return index
