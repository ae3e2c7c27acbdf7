#!/usr/bin/env python3
"""
Centralized configuration for apollo with env var overrides.
- User config file: ~/.config/apollo-music/config.json
- Precedence: environment > user config file > built-in defaults
- Types exposed to the app:
  - MUSIC_DIRECTORY: Path
  - DB_PATH: Path
  - FILE_PATTERN: str or None (placeholders {artist} {albumartist} {album} {title} {ext})
  - AUTO_REPLACE_THRESHOLD: float
  - CANDIDATE_LIMIT: int
  - LOG_LEVEL: str
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from rich.console import Console

logger = logging.getLogger(__name__)

# Paths
CONFIG_DIR = Path.home() / ".config" / "apollo-music"
CONFIG_FILE = CONFIG_DIR / "config.json"

console = Console()

DEFAULTS = {
    "MUSIC_DIRECTORY": str(Path.home() / "Music"),
    "DB_PATH": str(CONFIG_DIR / "apollo.db"),
    "FILE_PATTERN": None,
    # Similarity at or above this rewrites a broken playlist line without asking
    "AUTO_REPLACE_THRESHOLD": 0.90,
    "CANDIDATE_LIMIT": 5,
    "LOG_LEVEL": "INFO",
}

ENV_MAP = {
    "MUSIC_DIRECTORY": "APOLLO_MUSIC_DIRECTORY",
    "DB_PATH": "APOLLO_DB_PATH",
    "FILE_PATTERN": "APOLLO_FILE_PATTERN",
    "AUTO_REPLACE_THRESHOLD": "APOLLO_AUTO_REPLACE_THRESHOLD",
    "CANDIDATE_LIMIT": "APOLLO_CANDIDATE_LIMIT",
    "LOG_LEVEL": "APOLLO_LOG_LEVEL",
}

_NUMERIC = {"AUTO_REPLACE_THRESHOLD": float, "CANDIDATE_LIMIT": int}


def _load_user_file(config_file: Path = CONFIG_FILE) -> Dict[str, Any]:
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {config_file}: expected a JSON object")
        return {}
    return data


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(cfg)
    for key, env_name in ENV_MAP.items():
        val = os.getenv(env_name)
        if val is None:
            continue
        if key in _NUMERIC:
            try:
                out[key] = _NUMERIC[key](val)
            except ValueError:
                pass  # ignore bad env and keep existing
        else:
            out[key] = val or None
    return out


def _coerce_types(eff: Dict[str, Any]) -> Dict[str, Any]:
    eff["MUSIC_DIRECTORY"] = Path(str(eff["MUSIC_DIRECTORY"])).expanduser()
    eff["DB_PATH"] = Path(str(eff["DB_PATH"])).expanduser()
    eff["FILE_PATTERN"] = eff.get("FILE_PATTERN") or None
    for k, kind in _NUMERIC.items():
        try:
            eff[k] = kind(eff[k])
        except (TypeError, ValueError):
            eff[k] = DEFAULTS[k]
    eff["LOG_LEVEL"] = str(eff.get("LOG_LEVEL") or DEFAULTS["LOG_LEVEL"]).upper()
    return eff


def load_config(config_file: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Load effective config: env > file > defaults, coerced to expected types."""
    file_cfg = _load_user_file(config_file)
    merged = DEFAULTS | {k: v for k, v in file_cfg.items() if k in DEFAULTS}
    merged = _apply_env_overrides(merged)
    return _coerce_types(merged)


def save_config(values: Dict[str, Any], config_file: Path = CONFIG_FILE) -> Path:
    """Write the given settings as the user config file."""
    config_file.parent.mkdir(parents=True, exist_ok=True)
    serializable = {k: (str(v) if isinstance(v, Path) else v) for k, v in values.items()}
    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(serializable, f, indent=4)
    return config_file


# Exposed module-level config used by the CLI
config = load_config()
