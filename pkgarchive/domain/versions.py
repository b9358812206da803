from __future__ import annotations

from itertools import zip_longest
from typing import Sequence, Tuple

Version = Tuple[int, ...]


def parse_version(value: str) -> Version:
    """
    Convert a dotted version string such as "1.2.0" into (1, 2, 0).

    Only non-negative integer components are accepted; anything else raises
    ValueError so that callers can reject the artifact.
    """
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError("Empty version string")

    parts = []
    for part in text.split("."):
        if not part.isdigit():
            raise ValueError(f"Invalid version component {part!r} in {text!r}")
        parts.append(int(part))
    return tuple(parts)


def format_version(version: Sequence[int]) -> str:
    return ".".join(str(part) for part in version)


def compare_versions(a: Sequence[int], b: Sequence[int]) -> int:
    """
    Compare two versions component by component.

    Missing trailing components count as 0, so (1, 0) == (1,) and
    (1, 0, 1) > (1,). Returns -1, 0 or 1.
    """
    for left, right in zip_longest(a, b, fillvalue=0):
        if left != right:
            return -1 if left < right else 1
    return 0


def is_newer(candidate: Sequence[int], current: Sequence[int]) -> bool:
    """True only when candidate is strictly greater than current."""
    return compare_versions(candidate, current) > 0
