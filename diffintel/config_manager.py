"""Configuration manager for diffintel using TOML files."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from . import config

logger = logging.getLogger(__name__)

CONFIG_FILE = config.CONFIG_FILE

# Environment variable -> settings field
ENV_OVERRIDES: Dict[str, str] = {
    "DIFFINTEL_CONCURRENCY": "concurrency",
    "DIFFINTEL_MAX_REVERSE_DEPS": "max_reverse_deps",
    "DIFFINTEL_MAX_REPO_FILES": "max_repo_files",
}


@dataclass
class AnalysisSettings:
    """Tunables for one analysis run."""
    concurrency: int = config.DEFAULT_CONCURRENCY
    max_repo_files: int = config.MAX_REPO_FILES
    max_reverse_deps: int = config.MAX_REVERSE_DEPS
    second_ring_threshold: int = config.SECOND_RING_THRESHOLD
    guard_condition_max: int = config.GUARD_CONDITION_MAX
    history_count: int = config.HISTORY_COUNT

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{f.name} must be an integer, got {value!r}")
            if value < 0 or (f.name == "concurrency" and value < 1):
                raise ValueError(f"{f.name} out of range: {value}")

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def load_full_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = path or CONFIG_FILE
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}


def _save_full_config(data: Dict[str, Any], path: Optional[Path] = None) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    path = path or CONFIG_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config file %s: %s", path, exc)
        return False


def load_settings(path: Optional[Path] = None) -> AnalysisSettings:
    """Load analysis settings from the ``[analysis]`` section.

    Unknown keys and invalid values are logged and ignored, then
    environment overrides are applied on top.

    Returns:
        AnalysisSettings, falling back to defaults for anything missing.
    """
    section = load_full_config(path).get("analysis", {})
    known = {f.name for f in fields(AnalysisSettings)}
    values: Dict[str, Any] = {}

    for key, value in section.items():
        if key not in known:
            logger.warning("Unknown [analysis] setting '%s' ignored", key)
            continue
        values[key] = value

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            values[field_name] = int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", env_name, raw)

    try:
        return AnalysisSettings(**values)
    except ValueError as exc:
        logger.warning("Invalid analysis settings (%s); using defaults", exc)
        return AnalysisSettings()


def save_settings(settings: AnalysisSettings, path: Optional[Path] = None) -> bool:
    """Save analysis settings to the TOML file.

    Preserves other sections in the file.

    Returns:
        True if saved successfully, False otherwise
    """
    data = load_full_config(path)
    data["analysis"] = settings.to_dict()
    return _save_full_config(data, path)


def update_setting(key: str, value: str, path: Optional[Path] = None) -> AnalysisSettings:
    """Set a single ``[analysis]`` key from its string form and persist it.

    Raises:
        ValueError: unknown key or a value the settings reject.
    """
    current = AnalysisSettings().to_dict()
    stored = load_full_config(path).get("analysis", {})
    current.update({k: v for k, v in stored.items() if k in current})
    if key not in current:
        raise ValueError(f"Unknown setting: {key}")
    try:
        current[key] = int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None
    settings = AnalysisSettings(**current)
    if not save_settings(settings, path):
        raise ValueError(f"Could not write config file {path or CONFIG_FILE}")
    return settings
