from pathlib import Path
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workout_engine import settings
from workout_engine.controller import WorkoutController
from workout_engine.exercise import (
    Countdown,
    Exercise,
    RepsXSets,
    StopwatchManual,
    TimedSets,
    Workout,
)
from workout_engine.history import MemoryHistory
from workout_engine.listeners import WorkoutListener
from workout_engine.snapshot_store import MemorySnapshotStore


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep settings reads and writes out of the repository's data folder."""
    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr(settings, "_settings_cache", None)


class RecordingListener(WorkoutListener):
    def __init__(self):
        self.events = []

    def on_phase_changed(self, phase, index):
        self.events.append(("phase", phase, index))

    def on_exercise_started(self, index, exercise):
        self.events.append(("started", index, exercise.name))

    def on_exercise_completed(self, index, exercise, skipped):
        self.events.append(("completed", index, exercise.name, skipped))

    def on_workout_completed(self, summary):
        self.events.append(("workout_completed", summary.workout_id))

    def on_workout_abandoned(self):
        self.events.append(("abandoned",))


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def history():
    return MemoryHistory()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def controller(store, history, listener):
    return WorkoutController(
        store,
        history,
        listener,
        get_ready_duration=10,
        default_rest_duration=30,
        set_rest_duration=20,
    )


@pytest.fixture
def single_countdown():
    return Workout("w-countdown", "Quick Hands", [Exercise("ex-1", "Toe Drags", Countdown(30))])


@pytest.fixture
def single_sets():
    return Workout("w-sets", "Strength", [Exercise("ex-1", "Squats", RepsXSets(10, 3))])


@pytest.fixture
def mixed_workout():
    return Workout(
        "w-mixed",
        "Full Session",
        [
            Exercise("ex-1", "Figure Eights", Countdown(60), rest_after=45),
            Exercise("ex-2", "Push-ups", RepsXSets(12, 2), rest_between_sets=25),
            Exercise("ex-3", "Wall Sits", TimedSets(40, 2, rest_between_sets=15)),
            Exercise("ex-4", "Stickhandling", StopwatchManual()),
        ],
    )
