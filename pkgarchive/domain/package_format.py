"""
Reader for the two package formats found in the archive.

Single-file packages carry their metadata in a comment preamble:

    ;;; foo.el --- One line summary  -*- lexical-binding: t -*-
    ;; Version: 1.2
    ;; Package-Requires: ((bar "1.0"))
    ;;; Commentary:
    ;; Longer description.
    ;;; Code:
    ...
    ;;; foo.el ends here

Bundles are tar files containing a "<name>-pkg.el" descriptor holding a
define-package form and, optionally, a README.

These functions do no I/O of their own beyond reading members from an
already opened tar file; opening and closing artifacts is the caller's job.
"""
from __future__ import annotations

import posixpath
import re
import tarfile
from typing import Any, List, Optional, Tuple

from pkgarchive.core.errors import ExtractionError, MissingTerminatorError
from pkgarchive.domain.models import ArtifactKind, PackageDescriptor, Requirement
from pkgarchive.domain.sexp import SexpSyntaxError, Symbol, read, read_all
from pkgarchive.domain.versions import parse_version

NO_COMMENTARY = "No commentary."

_FIRST_LINE_RE = re.compile(
    r"^;;;\s*(?P<file>\S+)\s+---\s*(?P<summary>.*?)\s*(?:-\*-.*-\*-)?\s*$"
)
_HEADER_RE = r"^;+\s*{}\s*:[ \t]*(?P<value>.*?)\s*$"
_COMMENTARY_START_RE = re.compile(r"^;;;\s*Commentary:?\s*$", re.IGNORECASE | re.MULTILINE)
_COMMENTARY_END_RE = re.compile(
    r"^;;;\s*(?:Code|Change\s*Log|History)\s*:?\s*$|^;;;\s*\S+\s+ends here",
    re.IGNORECASE | re.MULTILINE,
)
_README_NAMES = ("README", "README.txt", "README.md", "README.org")


def _header(text: str, name: str) -> Optional[str]:
    match = re.search(_HEADER_RE.format(re.escape(name)), text, re.IGNORECASE | re.MULTILINE)
    if match is None:
        return None
    return match.group("value") or None


def _has_terminator(text: str, filename: str) -> bool:
    pattern = r"^;;;\s*{}\s+ends here".format(re.escape(filename))
    return re.search(pattern, text, re.MULTILINE) is not None


def _parse_requirements(raw: Any, where: str) -> Tuple[Requirement, ...]:
    if raw in (None, []):
        return ()
    if not isinstance(raw, list):
        raise ExtractionError(f"Malformed requirements in {where}")

    requirements: List[Requirement] = []
    for item in raw:
        if isinstance(item, Symbol):
            item = [item]
        if not isinstance(item, list) or not item or not isinstance(item[0], str):
            raise ExtractionError(f"Malformed requirement {item!r} in {where}")
        version = item[1] if len(item) > 1 else "0"
        try:
            requirements.append(Requirement(name=str(item[0]), version=parse_version(version)))
        except ValueError as exc:
            raise ExtractionError(f"Bad version for requirement {item[0]} in {where}: {exc}") from exc
    return tuple(requirements)


def extract_commentary(text: str) -> Optional[str]:
    """
    Return the ";;; Commentary:" block of a file with the comment
    markers stripped, or None when the block is absent or empty.
    """
    start = _COMMENTARY_START_RE.search(text)
    if start is None:
        return None
    end = _COMMENTARY_END_RE.search(text, start.end())
    block = text[start.end(): end.start() if end else len(text)]

    lines = []
    for line in block.splitlines():
        if not line.startswith(";"):
            # The comment block stops at the first line of code.
            if line.strip():
                break
            lines.append("")
            continue
        lines.append(re.sub(r"^;+ ?", "", line).rstrip())
    commentary = "\n".join(lines).strip("\n")
    return commentary + "\n" if commentary.strip() else None


def parse_single_file_header(text: str, filename: str) -> PackageDescriptor:
    """
    Parse the preamble of a single-file package without requiring the
    trailing "ends here" line. The descriptor carries no commentary.
    """
    first_line = text.split("\n", 1)[0].rstrip("\r")
    match = _FIRST_LINE_RE.match(first_line)
    if match is None or match.group("file") != filename:
        raise ExtractionError(f"Missing ';;; {filename} --- summary' header line")

    name = filename.rsplit(".", 1)[0]
    raw_version = _header(text, "Package-Version") or _header(text, "Version")
    if raw_version is None:
        raise ExtractionError(f"No Version header in {filename}")
    try:
        version = parse_version(raw_version)
    except ValueError as exc:
        raise ExtractionError(f"Bad Version header in {filename}: {exc}") from exc

    raw_requires = _header(text, "Package-Requires")
    requirements: Tuple[Requirement, ...] = ()
    if raw_requires is not None:
        try:
            requirements = _parse_requirements(read(raw_requires), filename)
        except SexpSyntaxError as exc:
            raise ExtractionError(f"Unreadable Package-Requires in {filename}: {exc}") from exc

    return PackageDescriptor(
        name=name,
        version=version,
        requirements=requirements,
        summary=match.group("summary"),
        kind=ArtifactKind.SINGLE_FILE,
    )


def parse_single_file(text: str, filename: str) -> PackageDescriptor:
    """
    Parse a single-file package, including its commentary.

    Raises MissingTerminatorError when the file lacks its
    ";;; <filename> ends here" line, ExtractionError for any other problem.
    """
    descriptor = parse_single_file_header(text, filename)
    if not _has_terminator(text, filename):
        raise MissingTerminatorError(f"{filename} lacks ';;; {filename} ends here'")
    return descriptor.model_copy(update={"commentary": extract_commentary(text)})


def _find_member(tar: tarfile.TarFile, basenames) -> Optional[tarfile.TarInfo]:
    # Prefer the shallowest match so a nested vendored copy never wins.
    matches = [
        member for member in tar.getmembers()
        if member.isfile() and posixpath.basename(member.name) in basenames
    ]
    if not matches:
        return None
    return min(matches, key=lambda m: m.name.count("/"))


def _read_member(tar: tarfile.TarFile, member: tarfile.TarInfo) -> str:
    handle = tar.extractfile(member)
    if handle is None:
        raise ExtractionError(f"Cannot read {member.name}")
    with handle:
        return handle.read().decode("utf-8")


def parse_bundle(tar: tarfile.TarFile, name: str) -> PackageDescriptor:
    """Parse the "<name>-pkg.el" descriptor of an opened bundle."""
    member = _find_member(tar, (f"{name}-pkg.el",))
    if member is None:
        raise ExtractionError(f"Bundle has no {name}-pkg.el")

    try:
        forms = read_all(_read_member(tar, member))
    except SexpSyntaxError as exc:
        raise ExtractionError(f"Unreadable {member.name}: {exc}") from exc

    form = next(
        (f for f in forms if isinstance(f, list) and f and f[0] == Symbol("define-package")),
        None,
    )
    if form is None or len(form) < 3:
        raise ExtractionError(f"No define-package form in {member.name}")

    args = form[1:]
    pkg_name, raw_version = args[0], args[1]
    summary = args[2] if len(args) > 2 and isinstance(args[2], str) and not isinstance(args[2], Symbol) else ""
    raw_requires = args[3] if len(args) > 3 and isinstance(args[3], list) else None
    if not isinstance(pkg_name, str) or not isinstance(raw_version, str):
        raise ExtractionError(f"Malformed define-package form in {member.name}")

    try:
        version = parse_version(raw_version)
    except ValueError as exc:
        raise ExtractionError(f"Bad version in {member.name}: {exc}") from exc

    commentary = None
    readme = _find_member(tar, _README_NAMES)
    if readme is not None:
        commentary = _read_member(tar, readme)

    return PackageDescriptor(
        name=str(pkg_name),
        version=version,
        requirements=_parse_requirements(raw_requires, member.name),
        summary=summary,
        kind=ArtifactKind.BUNDLE,
        commentary=commentary,
    )
