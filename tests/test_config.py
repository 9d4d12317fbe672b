"""Tests for OversightConfig resolution: defaults, config file, environment."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from agent_oversight.config import (
    CONFIG_FILE_NAME,
    DEFAULT_STORAGE_DIR_NAME,
    OversightConfig,
    _detect_project_root,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    """Remove any OVERSIGHT_* variables inherited from the outer environment."""
    for key in list(os.environ):
        if key.startswith("OVERSIGHT_"):
            monkeypatch.delenv(key, raising=False)


def write_config(project_dir: Path, data) -> Path:
    path = project_dir / DEFAULT_STORAGE_DIR_NAME / CONFIG_FILE_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_documented_defaults(self, project_dir) -> None:
        config = OversightConfig(project_root=str(project_dir))
        assert config.enabled is True
        assert config.auto_terminate is False
        assert config.check_interval_seconds == 30
        assert config.max_concurrent == 10
        assert config.loop_repeat_threshold == 4
        assert config.max_cost_per_task == 10.0
        assert config.max_time_per_task == 1800
        assert config.error_threshold == 10
        assert config.log_level == "INFO"

    def test_storage_path_defaults_under_project_root(self, project_dir) -> None:
        config = OversightConfig(project_root=str(project_dir))
        assert config.project_root == str(project_dir.resolve())
        assert config.storage_path == str(project_dir.resolve() / DEFAULT_STORAGE_DIR_NAME)

    def test_explicit_storage_path(self, project_dir, tmp_path) -> None:
        target = tmp_path / "elsewhere"
        config = OversightConfig(project_root=str(project_dir), storage_path=str(target))
        assert config.storage_path == str(target.resolve())

    def test_project_root_detection(self, project_dir) -> None:
        nested = project_dir / "src" / "pkg"
        nested.mkdir(parents=True)
        assert _detect_project_root(nested) == project_dir.resolve()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_log_level_normalised(self, project_dir) -> None:
        config = OversightConfig(project_root=str(project_dir), log_level=" debug ")
        assert config.log_level == "DEBUG"

    def test_invalid_log_level(self, project_dir) -> None:
        with pytest.raises(ValidationError, match="log_level"):
            OversightConfig(project_root=str(project_dir), log_level="LOUD")

    def test_invalid_loop_severity(self, project_dir) -> None:
        with pytest.raises(ValidationError, match="loop_severity"):
            OversightConfig(project_root=str(project_dir), loop_severity="severe")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("max_concurrent", 0),
            ("max_concurrent", 101),
            ("loop_repeat_threshold", 1),
            ("max_cost_per_task", 0),
            ("cost_warning_fraction", 1.5),
            ("deviation_threshold", -0.1),
        ],
    )
    def test_out_of_range(self, project_dir, field: str, value) -> None:
        with pytest.raises(ValidationError):
            OversightConfig(project_root=str(project_dir), **{field: value})

    def test_with_overrides_validates(self, project_dir) -> None:
        config = OversightConfig(project_root=str(project_dir))
        assert config.with_overrides(error_threshold=3).error_threshold == 3
        assert config.error_threshold == 10
        with pytest.raises(ValidationError):
            config.with_overrides(max_concurrent=0)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_defaults_without_file(self, project_dir) -> None:
        config = OversightConfig.load(str(project_dir))
        assert config.auto_terminate is False
        assert config.project_root == str(project_dir.resolve())

    def test_values_from_file(self, project_dir) -> None:
        write_config(project_dir, {"auto_terminate": True, "error_threshold": 5})
        config = OversightConfig.load(str(project_dir))
        assert config.auto_terminate is True
        assert config.error_threshold == 5

    def test_explicit_config_path(self, project_dir, tmp_path) -> None:
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"max_concurrent": 3}), encoding="utf-8")
        config = OversightConfig.load(str(project_dir), config_path=str(path))
        assert config.max_concurrent == 3

    def test_malformed_file_is_ignored(self, project_dir, caplog) -> None:
        path = project_dir / DEFAULT_STORAGE_DIR_NAME / CONFIG_FILE_NAME
        path.parent.mkdir(parents=True)
        path.write_text("{broken", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="agent_oversight.config"):
            config = OversightConfig.load(str(project_dir))

        assert config.error_threshold == 10
        assert "invalid JSON" in caplog.text

    def test_non_object_file_is_ignored(self, project_dir) -> None:
        write_config(project_dir, ["auto_terminate"])
        assert OversightConfig.load(str(project_dir)).auto_terminate is False

    def test_env_overrides(self, project_dir, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_AUTO_TERMINATE", "yes")
        monkeypatch.setenv("OVERSIGHT_MAX_COST_PER_TASK", "2.5")
        monkeypatch.setenv("OVERSIGHT_LOOP_REPEAT_THRESHOLD", "6")
        config = OversightConfig.load(str(project_dir))
        assert config.auto_terminate is True
        assert config.max_cost_per_task == 2.5
        assert config.loop_repeat_threshold == 6

    def test_env_beats_file(self, project_dir, monkeypatch) -> None:
        write_config(project_dir, {"error_threshold": 5, "max_concurrent": 4})
        monkeypatch.setenv("OVERSIGHT_ERROR_THRESHOLD", "7")
        config = OversightConfig.load(str(project_dir))
        assert config.error_threshold == 7
        assert config.max_concurrent == 4

    def test_unparseable_env_value_is_ignored(self, project_dir, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_MAX_CONCURRENT", "lots")
        assert OversightConfig.load(str(project_dir)).max_concurrent == 10

    def test_env_storage_path(self, project_dir, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("OVERSIGHT_STORAGE_PATH", str(tmp_path / "records"))
        config = OversightConfig.load(str(project_dir))
        assert config.storage_path == str((tmp_path / "records").resolve())


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestSave:
    def test_save_then_load(self, project_dir) -> None:
        config = OversightConfig(
            project_root=str(project_dir), auto_terminate=True, stall_window=8,
        )
        path = config.save()

        assert path == project_dir.resolve() / DEFAULT_STORAGE_DIR_NAME / CONFIG_FILE_NAME
        loaded = OversightConfig.load(str(project_dir))
        assert loaded.auto_terminate is True
        assert loaded.stall_window == 8

    def test_saved_file_omits_derived_paths(self, project_dir) -> None:
        path = OversightConfig(project_root=str(project_dir)).save()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert "project_root" not in data
        assert "storage_path" not in data

    def test_custom_storage_path_is_saved(self, project_dir, tmp_path) -> None:
        target = tmp_path / "records"
        config = OversightConfig(project_root=str(project_dir), storage_path=str(target))
        data = json.loads(config.save().read_text(encoding="utf-8"))
        assert data["storage_path"] == str(target.resolve())

    def test_no_temp_files_left(self, project_dir) -> None:
        path = OversightConfig(project_root=str(project_dir)).save()
        assert [p.name for p in path.parent.iterdir()] == [CONFIG_FILE_NAME]


class TestConfigureLogging:
    def test_sets_package_level(self, project_dir) -> None:
        config = OversightConfig(project_root=str(project_dir), log_level="DEBUG")
        config.configure_logging()
        pkg_logger = logging.getLogger("agent_oversight")
        try:
            assert pkg_logger.level == logging.DEBUG
            assert len(pkg_logger.handlers) == 1
            config.configure_logging()
            assert len(pkg_logger.handlers) == 1
        finally:
            for handler in list(pkg_logger.handlers):
                pkg_logger.removeHandler(handler)
            pkg_logger.setLevel(logging.NOTSET)
