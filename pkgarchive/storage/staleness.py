"""
Decide whether the persisted cache still reflects the repository root.

Only the root directory's own modification time is consulted. Adding or
removing a package directory updates it; editing a file two levels down
does not, so such changes are picked up only on a forced refresh.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


def mtime_seconds(path: Path) -> Optional[int]:
    """Whole-second modification time of path, or None if it cannot be read."""
    try:
        return int(Path(path).stat().st_mtime)
    except OSError:
        return None


def is_stale(root: Path, cache_path: Path) -> bool:
    cache_mtime = mtime_seconds(cache_path)
    if cache_mtime is None:
        return True
    root_mtime = mtime_seconds(root)
    if root_mtime is None:
        return True
    return root_mtime > cache_mtime


def root_timestamp(root: Path) -> datetime:
    """
    Timestamp used as a snapshot's generated_at: the root's modification
    time, or now when the root cannot be read.
    """
    seconds = mtime_seconds(root)
    if seconds is None:
        return datetime.now(timezone.utc).replace(microsecond=0)
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
