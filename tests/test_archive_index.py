"""Tests for the highest-version-wins index."""

from itertools import permutations

from pkgarchive.data.archive_index import ArchiveIndex
from pkgarchive.domain.models import ArtifactKind, PackageDescriptor


def _descriptor(name, version, summary="s"):
    return PackageDescriptor(name=name, version=version, summary=summary, kind=ArtifactKind.SINGLE_FILE)


class TestMerge:
    def test_keeps_highest_version(self):
        """Submitting 1.0, 0.9 and 1.2 leaves 1.2 stored."""
        index = ArchiveIndex()
        for version in [(1, 0), (0, 9), (1, 2)]:
            index.merge("foo", ArtifactKind.SINGLE_FILE, _descriptor("foo", version))

        assert index.get("foo").descriptor.version == (1, 2)
        assert len(index) == 1

    def test_equal_version_does_not_replace(self):
        index = ArchiveIndex()
        assert index.merge("foo", ArtifactKind.SINGLE_FILE, _descriptor("foo", (1, 0), "first"))
        assert not index.merge("foo", ArtifactKind.SINGLE_FILE, _descriptor("foo", (1, 0, 0), "second"))

        assert index.get("foo").descriptor.summary == "first"

    def test_kind_follows_winning_descriptor(self):
        index = ArchiveIndex()
        index.merge("foo", ArtifactKind.SINGLE_FILE, _descriptor("foo", (1,)))
        bundle = PackageDescriptor(name="foo", version=(2,), kind=ArtifactKind.BUNDLE)
        index.merge("foo", ArtifactKind.BUNDLE, bundle, source="foo/2/foo.tar")

        entry = index.get("foo")
        assert entry.kind is ArtifactKind.BUNDLE
        assert entry.source == "foo/2/foo.tar"

    def test_result_is_independent_of_arrival_order(self):
        descriptors = [
            _descriptor("foo", (1, 0)),
            _descriptor("foo", (2, 0)),
            _descriptor("bar", (0, 1)),
            _descriptor("foo", (1, 5)),
        ]
        results = [
            ArchiveIndex.build((ArtifactKind.SINGLE_FILE, d, None) for d in order)
            for order in permutations(descriptors)
        ]

        assert all(result == results[0] for result in results)
        assert results[0].names() == ["bar", "foo"]
        assert results[0].get("foo").descriptor.version == (2, 0)

    def test_membership_and_iteration(self):
        index = ArchiveIndex.build(
            (ArtifactKind.SINGLE_FILE, _descriptor(name, (1,)), None) for name in ["b", "a"]
        )
        assert "a" in index
        assert "c" not in index
        assert list(index) == ["a", "b"]
