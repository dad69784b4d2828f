"""Configuration manager for locgraph using a TOML file.

Layout of ``~/.locgraph/config.toml``::

    [analysis]
    enabled = true
    query_timeout_ms = 5000
    max_file_lines = 10000
    cache_size = 50

    [operators]
    networking = ["send_bincode", ...]
    core_dataflow = ["map", ...]
    sink = ["for_each", ...]
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

import toml

from . import config
from .operators import OperatorConfig

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSettings:
    enabled: bool = config.DEFAULT_ANALYSIS_ENABLED
    query_timeout_ms: int = config.DEFAULT_QUERY_TIMEOUT_MS
    max_file_lines: int = config.DEFAULT_MAX_FILE_LINES
    cache_size: int = config.DEFAULT_CACHE_SIZE


_ANALYSIS_TYPES = {
    "enabled": bool,
    "query_timeout_ms": int,
    "max_file_lines": int,
    "cache_size": int,
}

# TOML key -> OperatorConfig field
_OPERATOR_KEYS = {
    "networking": "networking_operators",
    "core_dataflow": "core_dataflow_operators",
    "sink": "sink_operators",
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections); empty on a missing or broken file."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", config.CONFIG_FILE, exc)
        return {}


def _save_full_config(data: Dict[str, Any]) -> bool:
    """Write the entire config dict, preserving all sections."""
    config.ensure_base_dirs()
    try:
        with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(data, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", config.CONFIG_FILE, exc)
        return False


# ------------------------------------------------------------------
# Analysis settings
# ------------------------------------------------------------------

def load_analysis_settings() -> AnalysisSettings:
    """Read ``[analysis]``; unknown keys are ignored, bad values fall back to defaults."""
    section = load_full_config().get("analysis", {})
    settings = AnalysisSettings()
    for key, expected in _ANALYSIS_TYPES.items():
        if key not in section:
            continue
        value = section[key]
        # bool is an int subclass; keep the two apart
        if isinstance(value, expected) and (expected is bool or not isinstance(value, bool)):
            setattr(settings, key, value)
        else:
            logger.warning("Ignoring invalid analysis.%s = %r", key, value)
    return settings


def save_analysis_setting(key: str, value: Any) -> bool:
    """Persist one ``[analysis]`` value.

    Raises:
        KeyError: if *key* is not a known analysis setting.
    """
    if key not in _ANALYSIS_TYPES:
        raise KeyError(key)
    data = load_full_config()
    data.setdefault("analysis", {})[key] = value
    return _save_full_config(data)


def coerce_analysis_value(key: str, raw: str) -> Any:
    """Convert a command-line string to the type of analysis setting *key*."""
    expected = _ANALYSIS_TYPES[key]
    if expected is bool:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    return expected(raw)


# ------------------------------------------------------------------
# Operator taxonomy
# ------------------------------------------------------------------

def load_operator_config() -> OperatorConfig:
    """Read ``[operators]``, keeping built-in defaults for any list not configured."""
    section = load_full_config().get("operators", {})
    operator_config = OperatorConfig()
    for toml_key, attr in _OPERATOR_KEYS.items():
        values = section.get(toml_key)
        if values is None:
            continue
        if isinstance(values, list) and all(isinstance(v, str) for v in values):
            setattr(operator_config, attr, _dedupe(values))
        else:
            logger.warning("Ignoring invalid operators.%s (expected a list of strings)", toml_key)
    return operator_config


def settings_as_dict(settings: AnalysisSettings, operators: OperatorConfig) -> Dict[str, Any]:
    return {
        "analysis": asdict(settings),
        "operators": {toml_key: getattr(operators, attr) for toml_key, attr in _OPERATOR_KEYS.items()},
    }


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered
