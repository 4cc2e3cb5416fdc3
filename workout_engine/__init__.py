"""Shared constants for the workout execution engine."""

from __future__ import annotations

from pathlib import Path

# Countdown shown before the first exercise, in seconds
DEFAULT_GET_READY_DURATION = 10

# Rest between exercises when neither the user nor the exercise sets one
DEFAULT_REST_DURATION = 30

# Rest between sets when the exercise does not define one
DEFAULT_SET_REST_DURATION = 30

# Bounds for the user adjustable rest timer
MIN_REST_DURATION = 15
REST_ADJUSTMENT_INCREMENT = 15

# Only one session can be in progress, so snapshots live under one key
CURRENT_SESSION_KEY = "current_session"

# Recovery files, settings and the history database live here by default
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

__all__ = [
    "DEFAULT_GET_READY_DURATION",
    "DEFAULT_REST_DURATION",
    "DEFAULT_SET_REST_DURATION",
    "MIN_REST_DURATION",
    "REST_ADJUSTMENT_INCREMENT",
    "CURRENT_SESSION_KEY",
    "DEFAULT_DATA_DIR",
]
