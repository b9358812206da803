from pathlib import Path
from typing import Optional

from pkgarchive.data.config import get_data_dir, load_config
from pkgarchive.domain.models import ArchiveConfig
from pkgarchive.services.archive_service import ArchiveService

_data_dir: Optional[Path] = None
_config: Optional[ArchiveConfig] = None
_archive_service: Optional[ArchiveService] = None


def get_app_data_dir() -> Path:
    global _data_dir
    if _data_dir is None:
        _data_dir = get_data_dir()
    return _data_dir


def get_config() -> ArchiveConfig:
    global _config
    if _config is None:
        _config = load_config(get_app_data_dir())
    return _config


def get_archive_service() -> ArchiveService:
    global _archive_service
    if _archive_service is None:
        _archive_service = ArchiveService.from_config(get_config(), get_app_data_dir())
    return _archive_service

