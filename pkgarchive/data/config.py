from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from pkgarchive.domain.models import ArchiveConfig

logger = logging.getLogger(__name__)

DATA_ROOT_ENV_VAR = "PKGARCHIVE_DATA_DIR"
CONFIG_FILENAME = "archive.json"

# Resolve project root (not the Python package root)
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_DATA_DIR = _PROJECT_ROOT / "data"


def get_data_dir() -> Path:
    """
    Determine the data directory path.

    Priority:
    1. Environment variable PKGARCHIVE_DATA_DIR
    2. '<project root>/data'
    """
    env_path = os.environ.get(DATA_ROOT_ENV_VAR)
    if env_path:
        data_dir = Path(env_path).expanduser()
    else:
        data_dir = _DEFAULT_DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def load_config(data_dir: Path) -> ArchiveConfig:
    """
    Load archive.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    path = data_dir / CONFIG_FILENAME
    config = ArchiveConfig()
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            config = ArchiveConfig(**raw)
        except (OSError, ValueError, TypeError, ValidationError) as exc:
            # If parsing fails, fall back to defaults and overwrite file.
            logger.warning(f"Ignoring unreadable {path}: {exc}")

    try:
        path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    except OSError as exc:
        logger.warning(f"Could not persist {path}: {exc}")
    return config


def _resolve(data_dir: Path, value: Optional[str], default: str) -> Path:
    path = Path(value).expanduser() if value else Path(default)
    if not path.is_absolute():
        path = data_dir / path
    return path


def package_root(config: ArchiveConfig, data_dir: Path) -> Path:
    return _resolve(data_dir, config.package_root, "packages")


def store_dir(config: ArchiveConfig, data_dir: Path) -> Path:
    return _resolve(data_dir, config.store_dir, "store")
