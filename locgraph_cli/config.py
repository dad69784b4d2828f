"""Configuration paths and defaults for locgraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("LOCGRAPH_HOME", str(Path.home() / ".locgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_ANALYSIS_ENABLED = True
DEFAULT_QUERY_TIMEOUT_MS = 5000
DEFAULT_MAX_FILE_LINES = 10000
DEFAULT_CACHE_SIZE = 50

# Scope kinds used in result cache keys
SCOPE_FUNCTION = "function"
SCOPE_FILE = "file"
SCOPE_WORKSPACE = "workspace"


def ensure_base_dirs() -> None:
    """Create the base directory for local configuration if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
