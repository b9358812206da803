"""Shared fixtures for building package trees on disk."""

import io
import tarfile
from pathlib import Path
from typing import Optional

import pytest

from pkgarchive.data.metadata import MetadataExtractor
from pkgarchive.services.archive_service import ArchiveService
from pkgarchive.storage.cache_store import CacheStore


def single_file_text(
    name: str,
    version: str,
    summary: str = "A test package",
    requires: Optional[str] = None,
    commentary: Optional[str] = "Does useful things.",
    terminator: bool = True,
) -> str:
    lines = [f";;; {name}.el --- {summary}  -*- lexical-binding: t -*-", ";; Author: Someone"]
    lines.append(f";; Version: {version}")
    if requires is not None:
        lines.append(f";; Package-Requires: {requires}")
    if commentary is not None:
        lines += [";;; Commentary:", ";;", f";; {commentary}", ";;"]
    lines += [";;; Code:", "", f"(provide '{name})"]
    if terminator:
        lines.append(f";;; {name}.el ends here")
    return "\n".join(lines) + "\n"


def bundle_bytes(
    name: str,
    version: str,
    summary: str = "A bundled package",
    requires: str = "nil",
    readme: Optional[str] = None,
    pkg_file: bool = True,
) -> bytes:
    buffer = io.BytesIO()
    members = {f"{name}-{version}/{name}.el": f"(provide '{name})\n"}
    if pkg_file:
        members[f"{name}-{version}/{name}-pkg.el"] = (
            f'(define-package "{name}" "{version}" "{summary}" \'{requires})\n'
        )
    if readme is not None:
        members[f"{name}-{version}/README"] = readme

    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for member_name, text in members.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(member_name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def repo_root(tmp_path) -> Path:
    root = tmp_path / "packages"
    root.mkdir()
    return root


@pytest.fixture
def make_single(repo_root):
    """Write <root>/<name>/<version>/<name>.el and return its path."""

    def _make(name: str, version: str, text: Optional[str] = None, **kwargs) -> Path:
        version_dir = repo_root / name / version
        version_dir.mkdir(parents=True, exist_ok=True)
        path = version_dir / f"{name}.el"
        path.write_text(text if text is not None else single_file_text(name, version, **kwargs), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def make_bundle(repo_root):
    """Write <root>/<name>/<version>/<name>.tar and return its path."""

    def _make(name: str, version: str, data: Optional[bytes] = None, **kwargs) -> Path:
        version_dir = repo_root / name / version
        version_dir.mkdir(parents=True, exist_ok=True)
        path = version_dir / f"{name}.tar"
        path.write_bytes(data if data is not None else bundle_bytes(name, version, **kwargs))
        return path

    return _make


@pytest.fixture
def store(tmp_path) -> CacheStore:
    return CacheStore(tmp_path / "store")


@pytest.fixture
def service(repo_root, store) -> ArchiveService:
    return ArchiveService(
        root=repo_root,
        store=store,
        extractor=MetadataExtractor(timeout_seconds=10, max_workers=2),
        purge_privilege_threshold=1,
    )
