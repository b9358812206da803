"""
Artifact discovery: walk the repository root and find package artifacts.

Expected layout: <root>/<package-name>/<version>/<package-name><ext>, where
<ext> is the single-file or the bundle extension. Anything else is ignored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from pkgarchive.core.errors import ScanError
from pkgarchive.domain.models import ArtifactKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A file that looks like a package artifact."""

    path: Path
    name: str
    version_dir: str
    kind: ArtifactKind

    @property
    def relative_path(self) -> str:
        return f"{self.name}/{self.version_dir}/{self.path.name}"


def _list_dir(path: Path) -> List[Path]:
    try:
        return list(path.iterdir())
    except OSError as exc:
        raise ScanError(path, exc.strerror or str(exc)) from exc


def discover_artifacts(
    root: Path,
    single_file_extension: str = ".el",
    bundle_extension: str = ".tar",
) -> List[Candidate]:
    """
    Return every candidate artifact under root, ordered by package and
    version directory name so equal versions always resolve the same way.

    Raises ScanError when root (or any directory below it) cannot be listed.
    """
    root = Path(root)
    if not root.is_dir():
        raise ScanError(root, "not a directory")

    extensions = {
        single_file_extension: ArtifactKind.SINGLE_FILE,
        bundle_extension: ArtifactKind.BUNDLE,
    }
    candidates: List[Candidate] = []

    for pkg_dir in sorted(_list_dir(root)):
        if not pkg_dir.is_dir():
            continue
        name = pkg_dir.name

        for version_dir in sorted(_list_dir(pkg_dir)):
            if not version_dir.is_dir():
                continue

            for ext, kind in extensions.items():
                artifact = version_dir / f"{name}{ext}"
                if artifact.is_file():
                    candidates.append(
                        Candidate(path=artifact, name=name, version_dir=version_dir.name, kind=kind)
                    )

    logger.debug(f"Discovered {len(candidates)} candidate artifacts under {root}")
    return candidates
