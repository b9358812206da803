from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import FileResponse, PlainTextResponse
from fastapi.concurrency import run_in_threadpool

from pkgarchive.core.dependencies import get_archive_service
from pkgarchive.services.archive_service import ArchiveService

logger = logging.getLogger(__name__)
router = APIRouter()


def _if_modified_since(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# 1. GET /archive-contents
# ---------------------------------------------------------------------------

@router.get("/archive-contents")
async def get_archive_contents(
    request: Request,
    archive: ArchiveService = Depends(get_archive_service),
) -> Response:
    """
    The archive index polled by package clients.

    Always answers with a valid body (possibly an empty archive); a
    conditional request at or after the snapshot time gets a 304.
    """
    snapshot = await run_in_threadpool(archive.get_snapshot)
    headers = {"Last-Modified": format_datetime(snapshot.generated_at, usegmt=True)}

    since = _if_modified_since(request.headers.get("if-modified-since"))
    if since is not None and since >= snapshot.generated_at:
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    return PlainTextResponse(archive.render_contents(snapshot), headers=headers)


# ---------------------------------------------------------------------------
# 2. GET /{name}-readme.txt
# ---------------------------------------------------------------------------

@router.get("/{name}-readme.txt")
async def get_readme(
    name: str,
    archive: ArchiveService = Depends(get_archive_service),
) -> PlainTextResponse:
    commentary = await run_in_threadpool(archive.readme, name)
    if commentary is None:
        raise HTTPException(status_code=404, detail="Package not found")
    return PlainTextResponse(commentary)


# ---------------------------------------------------------------------------
# 3. GET /{name}-{version}.{ext}
# ---------------------------------------------------------------------------

@router.get("/{filename}")
async def download_artifact(
    filename: str,
    archive: ArchiveService = Depends(get_archive_service),
) -> FileResponse:
    """
    Serve the indexed artifact of a package, e.g. "foo-1.2.el".
    """
    path = await run_in_threadpool(archive.find_artifact, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Artifact not found")

    return FileResponse(
        path=str(path),
        filename=filename,
        media_type="application/octet-stream",
    )
