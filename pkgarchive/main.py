import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.concurrency import run_in_threadpool

from pkgarchive.api.admin import router as admin_router
from pkgarchive.api.archive import router as archive_router
from pkgarchive.core.dependencies import get_archive_service, get_config
from pkgarchive.domain.models import ArchiveConfig
from pkgarchive.services.archive_service import ArchiveService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Python package archive",
    version="0.1.0",
    description="FastAPI service indexing a directory tree of packages and serving archive-contents.",
)

_REFRESH_TASK: Optional[asyncio.Task] = None


async def _periodic_refresh_loop() -> None:
    """
    Background task that rebuilds the archive whenever the repository root
    has changed since the cache was written.
    """
    while True:
        await asyncio.sleep(get_config().refresh_interval_seconds)
        try:
            await run_in_threadpool(get_archive_service().refresh_if_stale)
        except Exception as e:
            logger.error(f"Error in archive refresh loop: {e}", exc_info=True)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Load archive.json, warm the archive index (from cache or by scanning)
    and start the periodic staleness check.
    """
    global _REFRESH_TASK

    archive = get_archive_service()
    snapshot = await run_in_threadpool(archive.get_snapshot)
    logger.info(f"Serving {len(snapshot)} packages from {archive.root}")

    if _REFRESH_TASK is None:
        _REFRESH_TASK = asyncio.create_task(_periodic_refresh_loop())


@app.on_event("shutdown")
async def shutdown_event() -> None:
    global _REFRESH_TASK
    if _REFRESH_TASK is not None:
        _REFRESH_TASK.cancel()
        _REFRESH_TASK = None


@app.get("/")
async def index(config: ArchiveConfig = Depends(get_config)) -> dict:
    """
    Short description of the archive so you can see something in a browser.
    """
    return {
        "title": config.archive_title,
        "archive_contents": "/packages/archive-contents",
    }


@app.get("/health")
async def health(archive: ArchiveService = Depends(get_archive_service)) -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok", "packages": archive.loaded_package_count}


app.include_router(archive_router, prefix="/packages", tags=["archive"])
app.include_router(admin_router, tags=["admin"])


if __name__ == "__main__":
    """
    Allow running `python -m pkgarchive.main` to start the Uvicorn
    development server.
    """
    import uvicorn

    uvicorn.run(
        "pkgarchive.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
