"""Utility functions for loading and saving engine settings.

The settings are stored as a list of dictionaries to preserve order.
Each dictionary contains ``key``, ``value`` and ``type`` entries.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from workout_engine import (
    DEFAULT_DATA_DIR,
    DEFAULT_GET_READY_DURATION,
    DEFAULT_REST_DURATION,
    DEFAULT_SET_REST_DURATION,
)

# Path to the JSON file where settings are persisted.
SETTINGS_PATH = DEFAULT_DATA_DIR / "settings.json"

# Default settings to initialize the file on first run.
DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "get_ready_duration", "value": DEFAULT_GET_READY_DURATION, "type": "seconds"},
    {"key": "default_rest_duration", "value": DEFAULT_REST_DURATION, "type": "seconds"},
    {"key": "default_set_rest_duration", "value": DEFAULT_SET_REST_DURATION, "type": "seconds"},
]

# Internal cache so settings are only read from disk once.
_settings_cache: List[Dict[str, Any]] | None = None


def load_settings(path: Path | None = None) -> List[Dict[str, Any]]:
    """Load settings from ``path`` (default :data:`SETTINGS_PATH`) or create defaults."""
    path = Path(path or SETTINGS_PATH)
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
                if isinstance(data, list):
                    return data
            logging.warning("Settings file %s is not a list, using defaults", path)
        except (OSError, ValueError):
            logging.exception("Could not read settings from %s, using defaults", path)
    try:
        save_settings(DEFAULT_SETTINGS, path)
    except OSError:
        logging.exception("Could not write default settings to %s", path)
    return [item.copy() for item in DEFAULT_SETTINGS]


def save_settings(settings: List[Dict[str, Any]], path: Path | None = None) -> None:
    """Persist ``settings`` to ``path`` (default :data:`SETTINGS_PATH`)."""
    path = Path(path or SETTINGS_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh)


def get_settings() -> List[Dict[str, Any]]:
    """Return the cached settings list, loading from disk if needed."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def get_value(key: str, default: Any = None) -> Any:
    """Fetch the value associated with ``key``."""
    for item in get_settings():
        if item.get("key") == key:
            return item.get("value")
    return default


def set_value(key: str, value: Any) -> None:
    """Update ``key`` with ``value`` and persist the change."""
    settings = get_settings()
    for item in settings:
        if item.get("key") == key:
            item["value"] = value
            break
    else:
        settings.append({"key": key, "value": value, "type": type(value).__name__})
    save_settings(settings)
