"""Lifecycle hooks the controller calls after each transition.

Audio cues, haptics and similar side effects hang off a listener that is
passed to the controller.  The engine never reaches out to a global manager.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from workout_engine.exercise import Exercise
    from workout_engine.history import WorkoutSummary


class WorkoutListener:
    """No-op base class; override the hooks you care about."""

    def on_phase_changed(self, phase: str, index: int) -> None:
        pass

    def on_exercise_started(self, index: int, exercise: "Exercise") -> None:
        pass

    def on_exercise_completed(self, index: int, exercise: "Exercise", skipped: bool) -> None:
        pass

    def on_workout_completed(self, summary: "WorkoutSummary") -> None:
        pass

    def on_workout_abandoned(self) -> None:
        pass


class LoggingListener(WorkoutListener):
    """Write every lifecycle event to the log."""

    def on_phase_changed(self, phase: str, index: int) -> None:
        logging.info("Phase changed to %s (exercise %d)", phase, index)

    def on_exercise_started(self, index: int, exercise: "Exercise") -> None:
        logging.info("Started exercise %d: %s", index, exercise.name)

    def on_exercise_completed(self, index: int, exercise: "Exercise", skipped: bool) -> None:
        logging.info(
            "%s exercise %d: %s", "Skipped" if skipped else "Completed", index, exercise.name
        )

    def on_workout_completed(self, summary: "WorkoutSummary") -> None:
        logging.info(
            "Workout %s finished in %.0fs", summary.workout_name, summary.duration
        )

    def on_workout_abandoned(self) -> None:
        logging.info("Workout abandoned")
