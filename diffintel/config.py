"""Configuration paths and analysis defaults for diffintel."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("DIFFINTEL_HOME", str(Path.home() / ".diffintel"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Worker pool size for historical content retrieval
DEFAULT_CONCURRENCY = 20

# Dependency graph bounds
MAX_REPO_FILES = 5000
MAX_REVERSE_DEPS = 100
SECOND_RING_THRESHOLD = 50

# Guard conditions longer than this are truncated with "..."
GUARD_CONDITION_MAX = 80

HISTORY_COUNT = 5

DEBUG = bool(os.environ.get("DIFFINTEL_DEBUG"))


def ensure_base_dirs() -> None:
    """Create the base directory for local configuration if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
