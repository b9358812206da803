"""Tests for the metadata extraction adapter."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import single_file_text
from pkgarchive.core.errors import ExtractionError
from pkgarchive.data.discovery import Candidate
from pkgarchive.data.metadata import MetadataExtractor
from pkgarchive.domain import package_format
from pkgarchive.domain.models import ArtifactKind


def _candidate(path, kind=ArtifactKind.SINGLE_FILE):
    return Candidate(path=path, name=path.parent.parent.name, version_dir=path.parent.name, kind=kind)


class TestExtract:
    def test_single_file(self, make_single):
        path = make_single("foo", "1.0")
        descriptor = MetadataExtractor().extract(_candidate(path))

        assert descriptor.name == "foo"
        assert descriptor.version == (1, 0)
        assert descriptor.commentary == "Does useful things.\n"

    def test_missing_terminator_uses_commentary_block(self, make_single):
        path = make_single("foo", "1.0", commentary="Recovered text.", terminator=False)
        descriptor = MetadataExtractor().extract(_candidate(path))

        assert descriptor.version == (1, 0)
        assert descriptor.commentary == "Recovered text.\n"

    def test_missing_terminator_without_commentary(self, make_single):
        path = make_single("foo", "1.0", commentary=None, terminator=False)
        descriptor = MetadataExtractor().extract(_candidate(path))

        assert descriptor.commentary == "No commentary."

    def test_bundle(self, make_bundle):
        path = make_bundle("bar", "2.0", readme="Hello\n")
        descriptor = MetadataExtractor().extract(_candidate(path, ArtifactKind.BUNDLE))

        assert descriptor.kind is ArtifactKind.BUNDLE
        assert descriptor.version == (2, 0)

    def test_corrupt_bundle(self, make_bundle):
        path = make_bundle("bar", "2.0", data=b"not a tar file at all")
        with pytest.raises(ExtractionError) as excinfo:
            MetadataExtractor().extract(_candidate(path, ArtifactKind.BUNDLE))
        assert excinfo.value.path == path

    def test_name_must_match_directory(self, make_single):
        path = make_single("foo", "1.0", text=single_file_text("foo", "1.0"))
        candidate = Candidate(path=path, name="other", version_dir="1.0", kind=ArtifactKind.SINGLE_FILE)
        with pytest.raises(ExtractionError):
            MetadataExtractor().extract(candidate)

    def test_non_utf8_file(self, make_single):
        path = make_single("foo", "1.0")
        path.write_bytes(b"\xff\xfe\x00bad")
        with pytest.raises(ExtractionError):
            MetadataExtractor().extract(_candidate(path))

    def test_bundle_is_closed_when_parsing_fails(self, make_bundle, monkeypatch):
        path = make_bundle("bar", "1.0")
        handle = MagicMock()
        handle.__exit__.return_value = False
        monkeypatch.setattr("pkgarchive.data.metadata.tarfile.open", lambda *args, **kwargs: handle)

        def _boom(tar, name):
            raise ExtractionError("broken")

        monkeypatch.setattr(package_format, "parse_bundle", _boom)

        with pytest.raises(ExtractionError):
            MetadataExtractor().extract(_candidate(path, ArtifactKind.BUNDLE))
        handle.__enter__.assert_called_once()
        handle.__exit__.assert_called_once()


class TestExtractAll:
    def test_skips_failures(self, make_single, make_bundle):
        good = [make_single("a", "1.0"), make_single("b", "1.0")]
        bad = make_bundle("c", "1.0", data=b"garbage")
        candidates = [_candidate(p) for p in good] + [_candidate(bad, ArtifactKind.BUNDLE)]

        results = list(MetadataExtractor().extract_all(candidates))

        assert sorted(d.name for _, d in results) == ["a", "b"]

    def test_empty(self):
        assert list(MetadataExtractor().extract_all([])) == []

    def test_hung_extraction_is_abandoned(self, make_single):
        paths = [make_single("slow", "1.0"), make_single("fast", "1.0")]
        release = threading.Event()

        class _Extractor(MetadataExtractor):
            def extract(self, candidate):
                if candidate.name == "slow":
                    release.wait(5)
                return super().extract(candidate)

        try:
            results = list(_Extractor(timeout_seconds=0.2, max_workers=2).extract_all(
                [_candidate(p) for p in paths]
            ))
        finally:
            release.set()

        assert [d.name for _, d in results] == ["fast"]

    def test_hung_extraction_does_not_starve_queued_work(self, make_single):
        """With a single worker, artifacts queued behind a hung one still get extracted."""
        paths = [make_single("a", "1.0"), make_single("b", "1.0"), make_single("c", "1.0")]
        release = threading.Event()

        class _Extractor(MetadataExtractor):
            def extract(self, candidate):
                if candidate.name == "a":
                    release.wait(10)
                return super().extract(candidate)

        started = time.monotonic()
        try:
            results = list(_Extractor(timeout_seconds=0.5, max_workers=1).extract_all(
                [_candidate(p) for p in paths]
            ))
        finally:
            release.set()

        assert [d.name for _, d in results] == ["b", "c"]
        assert time.monotonic() - started < 5
