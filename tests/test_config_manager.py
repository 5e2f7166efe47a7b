"""Tests for TOML-backed analysis settings."""

from pathlib import Path

import pytest
import toml

from diffintel import config
from diffintel.config_manager import (
    AnalysisSettings,
    load_full_config,
    load_settings,
    save_settings,
    update_setting,
)


@pytest.fixture
def config_path(temp_dir: Path) -> Path:
    return temp_dir / "config.toml"


def test_defaults_without_file(config_path: Path):
    settings = load_settings(config_path)

    assert settings == AnalysisSettings()
    assert settings.concurrency == config.DEFAULT_CONCURRENCY
    assert settings.max_reverse_deps == config.MAX_REVERSE_DEPS


def test_save_and_load(config_path: Path):
    assert save_settings(AnalysisSettings(concurrency=4, max_reverse_deps=7), config_path)

    loaded = load_settings(config_path)
    assert loaded.concurrency == 4
    assert loaded.max_reverse_deps == 7
    assert loaded.max_repo_files == config.MAX_REPO_FILES


def test_save_preserves_other_sections(config_path: Path):
    config_path.write_text('[report]\ntitle = "weekly"\n')
    save_settings(AnalysisSettings(history_count=2), config_path)

    data = toml.load(config_path)
    assert data["report"] == {"title": "weekly"}
    assert data["analysis"]["history_count"] == 2


def test_environment_overrides_file(config_path: Path, monkeypatch):
    save_settings(AnalysisSettings(concurrency=4), config_path)
    monkeypatch.setenv("DIFFINTEL_CONCURRENCY", "9")
    monkeypatch.setenv("DIFFINTEL_MAX_REVERSE_DEPS", "not-a-number")

    settings = load_settings(config_path)
    assert settings.concurrency == 9
    assert settings.max_reverse_deps == config.MAX_REVERSE_DEPS


def test_invalid_values_fall_back_to_defaults(config_path: Path):
    config_path.write_text("[analysis]\nconcurrency = 0\nunknown_key = 3\n")
    assert load_settings(config_path) == AnalysisSettings()


def test_unreadable_toml_is_ignored(config_path: Path):
    config_path.write_text("[analysis\nconcurrency = ")
    assert load_full_config(config_path) == {}
    assert load_settings(config_path) == AnalysisSettings()


@pytest.mark.parametrize(
    "kwargs",
    [{"concurrency": 0}, {"max_repo_files": -1}, {"history_count": "5"}, {"second_ring_threshold": True}],
)
def test_settings_validation(kwargs):
    with pytest.raises(ValueError):
        AnalysisSettings(**kwargs)


def test_update_setting_persists(config_path: Path):
    settings = update_setting("max_reverse_deps", "25", config_path)

    assert settings.max_reverse_deps == 25
    assert load_settings(config_path).max_reverse_deps == 25


def test_update_setting_rejects_bad_input(config_path: Path):
    with pytest.raises(ValueError, match="Unknown setting"):
        update_setting("colour", "1", config_path)
    with pytest.raises(ValueError):
        update_setting("concurrency", "many", config_path)
    with pytest.raises(ValueError):
        update_setting("concurrency", "0", config_path)
    assert not config_path.exists()
