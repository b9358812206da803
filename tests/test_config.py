"""Tests for archive configuration loading."""

import json

import pytest
from pydantic import ValidationError

from pkgarchive.data.config import DATA_ROOT_ENV_VAR, get_data_dir, load_config, package_root, store_dir
from pkgarchive.domain.models import ArchiveConfig


class TestLoadConfig:
    def test_defaults_are_persisted(self, tmp_path):
        config = load_config(tmp_path)

        written = json.loads((tmp_path / "archive.json").read_text(encoding="utf-8"))
        assert written["single_file_extension"] == config.single_file_extension == ".el"
        assert written["bundle_extension"] == ".tar"

    def test_existing_values_are_kept_and_new_fields_added(self, tmp_path):
        (tmp_path / "archive.json").write_text(json.dumps({"refresh_interval_seconds": 60}), encoding="utf-8")

        config = load_config(tmp_path)

        assert config.refresh_interval_seconds == 60
        written = json.loads((tmp_path / "archive.json").read_text(encoding="utf-8"))
        assert "purge_privilege_threshold" in written

    def test_unreadable_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "archive.json").write_text("{oops", encoding="utf-8")

        config = load_config(tmp_path)

        assert config.refresh_interval_seconds == 300
        written = json.loads((tmp_path / "archive.json").read_text(encoding="utf-8"))
        assert written["refresh_interval_seconds"] == 300

    def test_invalid_values_fall_back_to_defaults(self, tmp_path):
        (tmp_path / "archive.json").write_text(json.dumps({"extraction_timeout_seconds": -1}), encoding="utf-8")
        assert load_config(tmp_path).extraction_timeout_seconds == 30.0

    def test_validation(self):
        with pytest.raises(ValidationError):
            ArchiveConfig(refresh_interval_seconds=1)


class TestPaths:
    def test_env_var_sets_data_dir(self, tmp_path, monkeypatch):
        target = tmp_path / "custom"
        monkeypatch.setenv(DATA_ROOT_ENV_VAR, str(target))

        assert get_data_dir() == target
        assert target.is_dir()

    def test_default_locations(self, tmp_path):
        config = ArchiveConfig()
        assert package_root(config, tmp_path) == tmp_path / "packages"
        assert store_dir(config, tmp_path) == tmp_path / "store"

    def test_absolute_locations(self, tmp_path):
        config = ArchiveConfig(package_root=str(tmp_path / "elsewhere"))
        assert package_root(config, tmp_path / "data") == tmp_path / "elsewhere"
