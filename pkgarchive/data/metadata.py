"""
Metadata extraction for discovered artifacts.

Wraps the package-format reader so that:
* single-file packages missing their "ends here" trailer are repaired
  instead of rejected,
* every failure surfaces as ExtractionError for that one artifact,
* a rebuild never waits more than the configured timeout on one artifact.
"""
from __future__ import annotations

import logging
import tarfile
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Iterable, Iterator, List, Optional, Tuple

from pkgarchive.core.errors import ExtractionError, MissingTerminatorError
from pkgarchive.data.discovery import Candidate
from pkgarchive.domain import package_format
from pkgarchive.domain.models import ArtifactKind, PackageDescriptor

logger = logging.getLogger(__name__)


class MetadataExtractor:
    """
    Turns Candidates into PackageDescriptors.

    Instances are stateless apart from their settings and may be shared
    between threads.
    """

    def __init__(self, timeout_seconds: Optional[float] = 30.0, max_workers: int = 4):
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers

    # ------------------------------------------------------------------
    # Single artifact
    # ------------------------------------------------------------------

    def extract(self, candidate: Candidate) -> PackageDescriptor:
        """
        Extract the descriptor of one artifact or raise ExtractionError.
        """
        try:
            if candidate.kind is ArtifactKind.BUNDLE:
                descriptor = self._extract_bundle(candidate)
            else:
                descriptor = self._extract_single_file(candidate)
        except ExtractionError as exc:
            if exc.path is None:
                raise ExtractionError(str(exc), candidate.path) from exc
            raise
        except (OSError, UnicodeDecodeError, tarfile.TarError, ValueError) as exc:
            raise ExtractionError(str(exc), candidate.path) from exc

        if descriptor.name != candidate.name:
            raise ExtractionError(
                f"Package declares name {descriptor.name!r}, expected {candidate.name!r}",
                candidate.path,
            )
        return descriptor

    def _extract_single_file(self, candidate: Candidate) -> PackageDescriptor:
        with open(candidate.path, "r", encoding="utf-8") as handle:
            text = handle.read()

        filename = candidate.path.name
        try:
            return package_format.parse_single_file(text, filename)
        except MissingTerminatorError:
            logger.debug(f"{candidate.path} has no terminator line, using lenient header parse")

        descriptor = package_format.parse_single_file_header(text, filename)
        commentary = package_format.extract_commentary(text) or package_format.NO_COMMENTARY
        return descriptor.model_copy(update={"commentary": commentary})

    def _extract_bundle(self, candidate: Candidate) -> PackageDescriptor:
        with tarfile.open(candidate.path, "r") as tar:
            return package_format.parse_bundle(tar, candidate.name)

    # ------------------------------------------------------------------
    # Whole scan
    # ------------------------------------------------------------------

    def extract_all(
        self, candidates: Iterable[Candidate]
    ) -> Iterator[Tuple[Candidate, PackageDescriptor]]:
        """
        Extract every candidate, skipping (and logging) the ones that fail
        or exceed the per-artifact timeout.

        Results are collected in candidate order. When an artifact times out
        its worker is abandoned, and the work still queued behind it moves to
        a fresh pool. That way a hung artifact only ever costs its own timeout.
        """
        candidates = list(candidates)
        if not candidates:
            return

        futures: List[Optional[Future]] = [None] * len(candidates)
        executor = self._submit_waiting(candidates, futures, 0)
        try:
            for position, candidate in enumerate(candidates):
                try:
                    descriptor = futures[position].result(timeout=self.timeout_seconds)
                except FutureTimeoutError:
                    logger.warning(
                        f"Skipping {candidate.path}: extraction exceeded {self.timeout_seconds}s"
                    )
                    if executor is not None:
                        executor.shutdown(wait=False, cancel_futures=True)
                    executor = self._submit_waiting(candidates, futures, position + 1)
                    continue
                except ExtractionError as exc:
                    logger.warning(f"Skipping unparsable artifact: {exc}")
                    continue
                except Exception as exc:
                    logger.warning(f"Skipping {candidate.path}: unexpected error {exc!r}", exc_info=True)
                    continue
                yield candidate, descriptor
        finally:
            # A hung extraction keeps its worker thread but never the rebuild.
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

    def _submit_waiting(
        self, candidates: List[Candidate], futures: List[Optional[Future]], start: int
    ) -> Optional[ThreadPoolExecutor]:
        """
        Submit candidates from start onwards that have not been submitted yet
        or were cancelled with a previous pool. Returns the new pool, or None
        when nothing was left to submit.
        """
        waiting = [
            position
            for position in range(start, len(candidates))
            if futures[position] is None or futures[position].cancelled()
        ]
        if not waiting:
            return None

        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(waiting)),
            thread_name_prefix="pkgarchive-extract",
        )
        for position in waiting:
            futures[position] = executor.submit(self.extract, candidates[position])
        return executor
