from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from pkgarchive.core.dependencies import get_archive_service
from pkgarchive.services.archive_service import ArchiveService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/admin/refresh")
async def admin_refresh(
    level: int = Query(default=0, ge=0, description="Privilege level of the refresh request."),
    archive: ArchiveService = Depends(get_archive_service),
) -> dict:
    """
    Drop the in-memory index and serve a fresh snapshot. Levels above the
    configured threshold also delete the on-disk cache, forcing a rescan.
    """
    snapshot, purged = await run_in_threadpool(archive.refresh, level)
    logger.info(f"Admin refresh at level {level}: {len(snapshot)} packages, purged={purged}")
    return {
        "packages": len(snapshot),
        "purged": purged,
        "generated_at": snapshot.generated_at.isoformat(),
    }
