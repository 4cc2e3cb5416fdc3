"""Workout summaries and the history collaborator.

When a workout is finished the controller builds a :class:`WorkoutSummary`
and hands it to a :class:`HistoryRecorder`.  Streaks and long term stats are
the recorder's business; the engine only reports what happened.
"""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from workout_engine import DEFAULT_DATA_DIR
from workout_engine.exercise import RepsXSets

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from workout_engine.session_state import SessionState

DEFAULT_HISTORY_PATH = DEFAULT_DATA_DIR / "history.db"


@dataclass
class ExerciseCompletion:
    exercise_id: str
    name: str
    completed: bool
    skipped: bool
    actual_reps: int | None = None
    actual_duration: float | None = None
    actual_sets: int | None = None

    def to_dict(self) -> dict:
        return {
            "exerciseId": self.exercise_id,
            "name": self.name,
            "completed": self.completed,
            "skipped": self.skipped,
            "actualReps": self.actual_reps,
            "actualDuration": self.actual_duration,
            "actualSets": self.actual_sets,
        }


@dataclass
class WorkoutSummary:
    workout_id: str
    workout_name: str
    started_at: float
    ended_at: float
    per_exercise: list[ExerciseCompletion] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.ended_at - self.started_at

    @property
    def completion_rate(self) -> float:
        """Fraction of exercises completed; skipped ones do not count."""

        if not self.per_exercise:
            return 0.0
        done = sum(1 for ex in self.per_exercise if ex.completed)
        return done / len(self.per_exercise)

    def to_dict(self) -> dict:
        return {
            "workoutId": self.workout_id,
            "workoutName": self.workout_name,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "perExercise": [ex.to_dict() for ex in self.per_exercise],
        }

    def text(self) -> str:
        """Return a formatted text summary of the workout."""

        lines = [f"Workout: {self.workout_name}"]
        start = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.started_at))
        end = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.ended_at))
        m, s = divmod(int(self.duration), 60)
        lines.append(f"Start: {start}")
        lines.append(f"End:   {end}")
        lines.append(f"Duration: {m}m {s}s")
        lines.append(f"Completed: {int(round(self.completion_rate * 100))}%")
        for ex in self.per_exercise:
            if ex.skipped:
                status = "skipped"
            elif ex.actual_sets is not None:
                status = f"{ex.actual_sets} sets"
            else:
                status = f"{int(ex.actual_duration or 0)}s"
            lines.append(f"  {ex.name}: {status}")
        return "\n".join(lines)


def build_summary(state: "SessionState", now: float) -> WorkoutSummary:
    """Return the summary of ``state`` finished at ``now``."""

    per_exercise = []
    for ex, run in zip(state.exercises, state.runs):
        completed = run.is_finished and not run.skipped
        actual_sets = run.sets_completed if ex.mode.is_set_based else None
        actual_reps = None
        if isinstance(ex.mode, RepsXSets):
            actual_reps = run.reps_done
        per_exercise.append(
            ExerciseCompletion(
                exercise_id=ex.exercise_id,
                name=ex.name,
                completed=completed,
                skipped=run.skipped,
                actual_reps=actual_reps,
                actual_duration=None if run.started_at is None else run.elapsed(now),
                actual_sets=actual_sets,
            )
        )
    return WorkoutSummary(
        workout_id=state.workout_id,
        workout_name=state.workout_name,
        started_at=state.session_started_at,
        ended_at=now,
        per_exercise=per_exercise,
    )


class HistoryRecorder:
    """Receives the summary of every finished workout."""

    def record(self, summary: WorkoutSummary) -> None:
        raise NotImplementedError


class MemoryHistory(HistoryRecorder):
    def __init__(self) -> None:
        self.summaries: list[WorkoutSummary] = []

    def record(self, summary: WorkoutSummary) -> None:
        self.summaries.append(summary)


SCHEMA = """
CREATE TABLE IF NOT EXISTS history_workouts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_id TEXT NOT NULL,
    workout_name TEXT NOT NULL,
    started_at REAL NOT NULL,
    ended_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS history_exercises (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    history_workout_id INTEGER NOT NULL REFERENCES history_workouts(id),
    exercise_id TEXT NOT NULL,
    exercise_name TEXT NOT NULL,
    completed INTEGER NOT NULL,
    skipped INTEGER NOT NULL,
    actual_reps INTEGER,
    actual_duration REAL,
    actual_sets INTEGER,
    position INTEGER NOT NULL
);
"""


class SqliteHistoryStore(HistoryRecorder):
    """Store finished workouts in a SQLite database."""

    def __init__(self, db_path: Path = DEFAULT_HISTORY_PATH) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(str(self.db_path)) as conn:
            conn.executescript(SCHEMA)

    def record(self, summary: WorkoutSummary) -> None:
        with sqlite3.connect(str(self.db_path)) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO history_workouts (workout_id, workout_name, started_at, ended_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    summary.workout_id,
                    summary.workout_name,
                    summary.started_at,
                    summary.ended_at,
                ),
            )
            history_id = cursor.lastrowid
            for pos, ex in enumerate(summary.per_exercise, 1):
                cursor.execute(
                    """
                    INSERT INTO history_exercises
                        (history_workout_id, exercise_id, exercise_name, completed,
                         skipped, actual_reps, actual_duration, actual_sets, position)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        history_id,
                        ex.exercise_id,
                        ex.name,
                        int(ex.completed),
                        int(ex.skipped),
                        ex.actual_reps,
                        ex.actual_duration,
                        ex.actual_sets,
                        pos,
                    ),
                )

    def get_history(self, limit: int | None = None) -> list[dict]:
        """Return past workouts, most recent first.

        Each item contains ``workout_id``, ``workout_name``, ``started_at`` and
        ``ended_at``.  When ``limit`` is provided only that many are returned.
        """

        with sqlite3.connect(str(self.db_path)) as conn:
            cursor = conn.cursor()
            query = (
                "SELECT workout_id, workout_name, started_at, ended_at "
                "FROM history_workouts ORDER BY started_at DESC"
            )
            if limit is not None:
                cursor.execute(query + " LIMIT ?", (limit,))
            else:
                cursor.execute(query)
            rows = cursor.fetchall()
        return [
            {
                "workout_id": workout_id,
                "workout_name": name,
                "started_at": started,
                "ended_at": ended,
            }
            for workout_id, name, started, ended in rows
        ]

    def get_details(self, started_at: float) -> dict:
        """Return the workout that started at ``started_at`` with its exercises.

        An empty dict is returned when no such workout was recorded.
        """

        with sqlite3.connect(str(self.db_path)) as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, workout_id, workout_name, started_at, ended_at
                FROM history_workouts
                WHERE started_at = ?
                """,
                (started_at,),
            )
            row = cur.fetchone()
            if row is None:
                return {}
            history_id, workout_id, name, started, ended = row
            cur.execute(
                """
                SELECT exercise_id, exercise_name, completed, skipped,
                       actual_reps, actual_duration, actual_sets
                FROM history_exercises
                WHERE history_workout_id = ?
                ORDER BY position
                """,
                (history_id,),
            )
            exercises = [
                {
                    "exercise_id": ex_id,
                    "name": ex_name,
                    "completed": bool(completed),
                    "skipped": bool(skipped),
                    "actual_reps": reps,
                    "actual_duration": duration,
                    "actual_sets": sets,
                }
                for ex_id, ex_name, completed, skipped, reps, duration, sets in cur.fetchall()
            ]
        return {
            "workout_id": workout_id,
            "workout_name": name,
            "started_at": started,
            "ended_at": ended,
            "exercises": exercises,
        }
