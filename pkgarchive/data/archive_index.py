"""
In-memory, highest-version-wins index of the archive.
"""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pkgarchive.domain.models import ArtifactKind, IndexEntry, PackageDescriptor
from pkgarchive.domain.versions import is_newer


class ArchiveIndex:
    """
    Mapping from package name to the single IndexEntry with the highest
    version seen so far.

    Entries can only be replaced by a strictly newer version. There is no
    way to remove one; a reset means building a new ArchiveIndex. Once an
    index has been handed to the archive service it is treated as frozen.
    """

    def __init__(self, entries: Optional[Dict[str, IndexEntry]] = None):
        self._entries: Dict[str, IndexEntry] = dict(entries or {})

    @classmethod
    def build(
        cls, pairs: Iterable[Tuple[ArtifactKind, PackageDescriptor, Optional[str]]]
    ) -> "ArchiveIndex":
        """Reduce (kind, descriptor, source) triples into a new index."""
        index = cls()
        for kind, descriptor, source in pairs:
            index.merge(descriptor.name, kind, descriptor, source=source)
        return index

    def merge(
        self,
        name: str,
        kind: ArtifactKind,
        descriptor: PackageDescriptor,
        source: Optional[str] = None,
    ) -> bool:
        """
        Store descriptor under name if name is new or descriptor's version
        is strictly greater than the stored one. Returns True if stored.
        """
        current = self._entries.get(name)
        if current is not None and not is_newer(descriptor.version, current.descriptor.version):
            return False
        self._entries[name] = IndexEntry(kind=kind, descriptor=descriptor, source=source)
        return True

    def get(self, name: str) -> Optional[IndexEntry]:
        return self._entries.get(name)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def items(self) -> List[Tuple[str, IndexEntry]]:
        return sorted(self._entries.items())

    def as_dict(self) -> Dict[str, IndexEntry]:
        return dict(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArchiveIndex):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ArchiveIndex({len(self._entries)} packages)"
