"""Mutable state of a workout in progress.

All times are absolute ``time.time()`` timestamps.  Nothing here keeps a
running counter: elapsed and remaining values are always derived from the
stored timestamps, which is what lets a session survive process suspension.
"""

from __future__ import annotations

import math

from workout_engine.errors import CorruptSnapshot
from workout_engine.exercise import Exercise, RepsXSets, Workout

SNAPSHOT_VERSION = 1


def _float(value, name: str) -> float:
    """Return ``value`` as a finite float; JSON strings and bools are rejected."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, not {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite")
    return value


def _opt_float(value, name: str) -> float | None:
    return None if value is None else _float(value, name)


def _int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, not {value!r}")
    return value

# --------------------------------------------------------------
# Phases
# --------------------------------------------------------------

GET_READY = "get_ready"
EXERCISE_ACTIVE = "exercise_active"
REST_BETWEEN_SETS = "rest_between_sets"
REST_BETWEEN_EXERCISES = "rest_between_exercises"
COMPLETED = "completed"
ABANDONED = "abandoned"

PHASES = (
    GET_READY,
    EXERCISE_ACTIVE,
    REST_BETWEEN_SETS,
    REST_BETWEEN_EXERCISES,
    COMPLETED,
    ABANDONED,
)
REST_PHASES = (REST_BETWEEN_SETS, REST_BETWEEN_EXERCISES)
TERMINAL_PHASES = (COMPLETED, ABANDONED)
# phases whose target always comes from a countdown
TIMED_PHASES = (GET_READY, REST_BETWEEN_SETS, REST_BETWEEN_EXERCISES)


def elapsed_between(
    started_at: float | None,
    finished_at: float | None,
    paused_accumulated: float,
    pause_started_at: float | None,
    now: float,
) -> float:
    """Return active seconds between ``started_at`` and ``finished_at``/``now``.

    Time spent paused is excluded, including an ongoing pause.  The result
    never goes negative, e.g. when the wall clock was moved backwards.
    """

    if started_at is None:
        return 0.0
    end = finished_at if finished_at is not None else now
    elapsed = end - started_at - paused_accumulated
    if pause_started_at is not None:
        elapsed -= max(0.0, end - pause_started_at)
    return max(0.0, elapsed)


class ExerciseRun:
    """Per-attempt record of one exercise."""

    def __init__(
        self,
        started_at: float | None = None,
        finished_at: float | None = None,
        skipped: bool = False,
        current_set: int = 1,
        paused_accumulated: float = 0.0,
        current_pause_started_at: float | None = None,
        rep_counts: list[int] | None = None,
        current_reps: int | None = None,
    ):
        self.started_at = started_at
        self.finished_at = finished_at
        self.skipped = skipped
        self.current_set = current_set
        self.paused_accumulated = paused_accumulated
        self.current_pause_started_at = current_pause_started_at
        # reps recorded for each finished set (reps x sets only)
        self.rep_counts: list[int] = list(rep_counts or [])
        # rep counter of the set in progress; None until the user touches it
        self.current_reps = current_reps

    @property
    def is_active(self) -> bool:
        return self.started_at is not None and self.finished_at is None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @property
    def is_untouched(self) -> bool:
        return self.started_at is None and self.finished_at is None

    @property
    def sets_completed(self) -> int:
        return max(0, self.current_set - 1)

    def elapsed(self, now: float) -> float:
        return elapsed_between(
            self.started_at,
            self.finished_at,
            self.paused_accumulated,
            self.current_pause_started_at,
            now,
        )

    def close_pause(self, now: float) -> None:
        """Fold an ongoing pause into ``paused_accumulated``."""

        if self.current_pause_started_at is not None:
            self.paused_accumulated += max(0.0, now - self.current_pause_started_at)
            self.current_pause_started_at = None

    def finish_set(self, target_reps: int | None = None) -> None:
        """Count the set in progress as done.

        With ``target_reps`` the rep counter is recorded for the set; a counter
        the user never touched records the full target.
        """

        if target_reps is not None:
            reps = target_reps if self.current_reps is None else self.current_reps
            self.rep_counts.append(reps)
            self.current_reps = None
        self.current_set += 1

    @property
    def reps_done(self) -> int:
        return sum(self.rep_counts)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "skipped": self.skipped,
            "current_set": self.current_set,
            "paused_accumulated": self.paused_accumulated,
            "current_pause_started_at": self.current_pause_started_at,
            "rep_counts": list(self.rep_counts),
            "current_reps": self.current_reps,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExerciseRun":
        current_reps = data.get("current_reps")
        return cls(
            started_at=_opt_float(data["started_at"], "started_at"),
            finished_at=_opt_float(data["finished_at"], "finished_at"),
            skipped=bool(data["skipped"]),
            current_set=_int(data["current_set"], "current_set"),
            paused_accumulated=_float(data["paused_accumulated"], "paused_accumulated"),
            current_pause_started_at=_opt_float(
                data["current_pause_started_at"], "current_pause_started_at"
            ),
            rep_counts=[_int(n, "rep_counts") for n in data.get("rep_counts", [])],
            current_reps=None if current_reps is None else _int(current_reps, "current_reps"),
        )


class SessionState:
    """Everything needed to resume a workout exactly where it was left.

    Besides the per-exercise runs the state carries a *phase clock*
    (``phase_started_at``, ``phase_paused_accumulated`` and ``phase_target``)
    that times whatever is currently on screen: the get-ready countdown, a
    rest period or the current set of an exercise.  Pauses are recorded on the
    session (``paused_at``) and mirrored onto the active run so both clocks
    exclude the same paused time.
    """

    def __init__(self, workout: Workout, now: float, get_ready_duration: float):
        self.workout_id = workout.workout_id
        self.workout_name = workout.name
        self.exercises: list[Exercise] = list(workout.exercises)
        self.runs: list[ExerciseRun] = [ExerciseRun() for _ in self.exercises]
        self.current_index = 0
        self.phase = GET_READY
        self.session_started_at = now
        self.rest_duration_override: float | None = None
        self.phase_started_at = now
        self.phase_paused_accumulated = 0.0
        self.phase_target: float | None = get_ready_duration
        self.paused_at: float | None = None
        self.session_paused_accumulated = 0.0
        self.completed_at: float | None = None
        self.saved_at: float | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def current_run(self) -> ExerciseRun:
        return self.runs[self.current_index]

    @property
    def current_exercise(self) -> Exercise:
        return self.exercises[self.current_index]

    @property
    def has_next(self) -> bool:
        return self.current_index + 1 < len(self.exercises)

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    def phase_elapsed(self, now: float) -> float:
        end = self.completed_at if self.phase in TERMINAL_PHASES else None
        return elapsed_between(
            self.phase_started_at,
            end,
            self.phase_paused_accumulated,
            self.paused_at,
            now,
        )

    def reset_phase_clock(self, phase: str, now: float, target: float | None) -> None:
        self.phase = phase
        self.phase_started_at = now
        self.phase_paused_accumulated = 0.0
        self.phase_target = target

    def close_pause(self, now: float) -> float:
        """End an ongoing pause everywhere and return its length."""

        if self.paused_at is None:
            return 0.0
        paused_for = max(0.0, now - self.paused_at)
        self.phase_paused_accumulated += paused_for
        self.session_paused_accumulated += paused_for
        self.paused_at = None
        for run in self.runs:
            run.close_pause(now)
        return paused_for

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise :class:`CorruptSnapshot` if any invariant does not hold."""

        errors: list[str] = []
        if not self.exercises:
            errors.append("session has no exercises")
        if len(self.runs) != len(self.exercises):
            errors.append("run count does not match exercise count")
        if self.phase not in PHASES:
            errors.append(f"unknown phase '{self.phase}'")
        if self.phase == ABANDONED:
            errors.append("abandoned sessions cannot be resumed")
        if not 0 <= self.current_index < max(1, len(self.runs)):
            errors.append(f"current index {self.current_index} out of range")
        if self.rest_duration_override is not None and self.rest_duration_override < 0:
            errors.append("negative rest duration")
        if self.phase_target is not None and self.phase_target < 0:
            errors.append("negative phase target")
        if errors:
            raise CorruptSnapshot("; ".join(errors))

        active = 0
        for idx, (run, ex) in enumerate(zip(self.runs, self.exercises)):
            if run.finished_at is not None:
                if run.started_at is None:
                    errors.append(f"run {idx} finished without starting")
                elif run.finished_at < run.started_at:
                    errors.append(f"run {idx} finished before it started")
            if run.is_active:
                active += 1
            if run.paused_accumulated < 0:
                errors.append(f"run {idx} has negative paused time")
            total_sets = ex.mode.total_sets or 1
            if not 1 <= run.current_set <= total_sets + 1:
                errors.append(f"run {idx} has invalid set {run.current_set}")
            if isinstance(ex.mode, RepsXSets):
                if len(run.rep_counts) != run.sets_completed:
                    errors.append(f"run {idx} has reps for {len(run.rep_counts)} sets")
                counts = run.rep_counts + [run.current_reps or 0]
                if any(not 0 <= n <= ex.mode.reps for n in counts):
                    errors.append(f"run {idx} has a rep count outside 0..{ex.mode.reps}")
            elif run.rep_counts or run.current_reps is not None:
                errors.append(f"run {idx} counts reps for a mode without reps")
            if idx < self.current_index and not (run.is_finished or run.skipped):
                errors.append(f"run {idx} before current index is unfinished")
            if idx > self.current_index and not run.is_untouched:
                errors.append(f"run {idx} after current index was started")
        if active > 1:
            errors.append("more than one active run")

        run = self.runs[self.current_index]
        if self.phase in (EXERCISE_ACTIVE, REST_BETWEEN_SETS) and not run.is_active:
            errors.append(f"phase '{self.phase}' requires an active run")
        if self.phase in (GET_READY, REST_BETWEEN_EXERCISES) and active:
            errors.append(f"phase '{self.phase}' cannot have an active run")
        if self.phase == COMPLETED and any(r.finished_at is None for r in self.runs):
            errors.append("completed session has unfinished runs")
        if errors:
            raise CorruptSnapshot("; ".join(errors))

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Return a JSON-serialisable representation of the session."""

        return {
            "version": SNAPSHOT_VERSION,
            "workout_id": self.workout_id,
            "workout_name": self.workout_name,
            "exercises": [ex.to_dict() for ex in self.exercises],
            "runs": [run.to_dict() for run in self.runs],
            "current_index": self.current_index,
            "phase": self.phase,
            "session_started_at": self.session_started_at,
            "rest_duration_override": self.rest_duration_override,
            "phase_started_at": self.phase_started_at,
            "phase_paused_accumulated": self.phase_paused_accumulated,
            "phase_target": self.phase_target,
            "paused_at": self.paused_at,
            "session_paused_accumulated": self.session_paused_accumulated,
            "completed_at": self.completed_at,
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        """Reconstruct a :class:`SessionState` from ``data``.

        Missing keys raise ``KeyError`` and malformed exercises raise
        ``ValueError``; invariants are checked separately by :meth:`validate`.
        """

        if data.get("version") != SNAPSHOT_VERSION:
            raise CorruptSnapshot(f"unsupported snapshot version {data.get('version')!r}")
        obj = cls.__new__(cls)
        obj.workout_id = data["workout_id"]
        obj.workout_name = data.get("workout_name", "")
        obj.exercises = [Exercise.from_dict(ex) for ex in data["exercises"]]
        obj.runs = [ExerciseRun.from_dict(run) for run in data["runs"]]
        obj.current_index = _int(data["current_index"], "current_index")
        obj.phase = data["phase"]
        obj.session_started_at = _float(data["session_started_at"], "session_started_at")
        obj.rest_duration_override = _opt_float(
            data["rest_duration_override"], "rest_duration_override"
        )
        obj.phase_started_at = _float(data["phase_started_at"], "phase_started_at")
        obj.phase_paused_accumulated = _float(
            data["phase_paused_accumulated"], "phase_paused_accumulated"
        )
        obj.phase_target = _opt_float(data["phase_target"], "phase_target")
        obj.paused_at = _opt_float(data["paused_at"], "paused_at")
        obj.session_paused_accumulated = _float(
            data.get("session_paused_accumulated", 0.0), "session_paused_accumulated"
        )
        obj.completed_at = _opt_float(data.get("completed_at"), "completed_at")
        obj.saved_at = _opt_float(data.get("saved_at"), "saved_at")
        return obj
