"""State machine that drives a workout from get-ready to completion.

The controller owns exactly one :class:`SessionState`.  Callers (a UI event
loop, tests) invoke the mutators below; each mutator checks the current
phase, applies the transition, writes a full snapshot and notifies the
injected listener.  Nothing here runs a timer: countdowns are derived from
timestamps whenever they are queried, and the caller decides when to act on
``ready_to_advance``.

Phase flow::

    get_ready -> exercise_active -> (rest_between_sets -> exercise_active)*
              -> rest_between_exercises -> exercise_active -> ... -> completed

``abandoned`` can be reached from any phase that is not terminal.
"""

from __future__ import annotations

import json
import logging
import time
import warnings
from dataclasses import dataclass
from typing import Callable

from workout_engine import (
    CURRENT_SESSION_KEY,
    DEFAULT_GET_READY_DURATION,
    DEFAULT_REST_DURATION,
    DEFAULT_SET_REST_DURATION,
    MIN_REST_DURATION,
    REST_ADJUSTMENT_INCREMENT,
    settings,
)
from workout_engine.errors import (
    CorruptSnapshot,
    InvalidTransition,
    InvalidWorkout,
    PersistenceWriteFailure,
)
from workout_engine.exercise import Exercise, RepsXSets, Workout
from workout_engine.history import HistoryRecorder, MemoryHistory, WorkoutSummary, build_summary
from workout_engine.listeners import WorkoutListener
from workout_engine.session_state import (
    ABANDONED,
    COMPLETED,
    EXERCISE_ACTIVE,
    GET_READY,
    REST_BETWEEN_EXERCISES,
    REST_BETWEEN_SETS,
    REST_PHASES,
    SessionState,
)
from workout_engine.snapshot_store import MemorySnapshotStore, SnapshotStore
from workout_engine.view import SessionView

LIVE_PHASES = (GET_READY, EXERCISE_ACTIVE, REST_BETWEEN_SETS, REST_BETWEEN_EXERCISES)


def _target_reps(exercise: Exercise) -> int | None:
    mode = exercise.mode
    return mode.reps if isinstance(mode, RepsXSets) else None


@dataclass
class RecoveryReport:
    """What :meth:`WorkoutController.recover` found in the snapshot store."""

    phase: str
    ready_to_advance: bool
    # seconds between the last snapshot write and the recovery
    away_for: float


class WorkoutController:
    def __init__(
        self,
        store: SnapshotStore | None = None,
        history: HistoryRecorder | None = None,
        listener: WorkoutListener | None = None,
        *,
        get_ready_duration: float | None = None,
        default_rest_duration: float | None = None,
        set_rest_duration: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store if store is not None else MemorySnapshotStore()
        self.history = history if history is not None else MemoryHistory()
        self.listener = listener if listener is not None else WorkoutListener()
        self.clock = clock

        if get_ready_duration is None:
            get_ready_duration = settings.get_value(
                "get_ready_duration", DEFAULT_GET_READY_DURATION
            )
        if default_rest_duration is None:
            default_rest_duration = settings.get_value(
                "default_rest_duration", DEFAULT_REST_DURATION
            )
        if set_rest_duration is None:
            set_rest_duration = settings.get_value(
                "default_set_rest_duration", DEFAULT_SET_REST_DURATION
            )
        self.get_ready_duration = float(get_ready_duration)
        self.default_rest_duration = float(default_rest_duration)
        self.set_rest_duration = float(set_rest_duration)

        self.session: SessionState | None = None
        self.last_persistence_error: Exception | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _now(self, now: float | None) -> float:
        return self.clock() if now is None else now

    @property
    def view(self) -> SessionView | None:
        if self.session is None:
            return None
        return SessionView(self.session)

    @property
    def current_phase(self) -> str | None:
        return self.session.phase if self.session else None

    @property
    def current_exercise_index(self) -> int | None:
        return self.session.current_index if self.session else None

    def remaining_time(self, now: float | None = None) -> float | None:
        if self.session is None:
            return None
        return self.view.remaining_time(self._now(now))

    def elapsed_time(self, now: float | None = None) -> float | None:
        if self.session is None:
            return None
        return self.view.elapsed_time(self._now(now))

    def ready_to_advance(self, now: float | None = None) -> bool:
        if self.session is None:
            return False
        return self.view.ready_to_advance(self._now(now))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, action: str, *phases: str) -> SessionState:
        state = self.session
        phase = state.phase if state is not None else None
        if state is None or phase not in phases:
            raise InvalidTransition(action, phase)
        return state

    def _notify(self, hook: str, *args) -> None:
        try:
            getattr(self.listener, hook)(*args)
        except Exception:
            logging.exception("Workout listener hook %s failed", hook)

    def _persist(self, now: float) -> None:
        """Write the whole session to the snapshot store.

        A failed write is reported but never undoes the transition that
        triggered it; the next mutation writes the full state again.
        """

        state = self.session
        state.saved_at = now
        blob = json.dumps(state.to_dict())
        try:
            self.store.save(CURRENT_SESSION_KEY, blob)
        except Exception as exc:
            logging.exception("Could not save session snapshot")
            self.last_persistence_error = exc
            warnings.warn(
                PersistenceWriteFailure(f"Session snapshot not saved: {exc}"),
                stacklevel=3,
            )
        else:
            self.last_persistence_error = None

    def _clear_snapshot(self) -> None:
        try:
            self.store.clear(CURRENT_SESSION_KEY)
        except Exception as exc:
            logging.exception("Could not clear session snapshot")
            self.last_persistence_error = exc
            warnings.warn(
                PersistenceWriteFailure(f"Session snapshot not cleared: {exc}"),
                stacklevel=3,
            )

    def _enter_phase(self, state: SessionState, phase: str, now: float, target: float | None) -> None:
        state.reset_phase_clock(phase, now, target)
        self._notify("on_phase_changed", phase, state.current_index)

    def _begin_exercise(self, state: SessionState, now: float) -> None:
        run = state.current_run
        run.started_at = now
        run.current_set = 1
        exercise = state.current_exercise
        self._enter_phase(state, EXERCISE_ACTIVE, now, exercise.mode.target_duration)
        self._notify("on_exercise_started", state.current_index, exercise)

    def _finish_current(self, state: SessionState, now: float, skipped: bool) -> None:
        """Close the current run and move to rest or to completion."""

        run = state.current_run
        exercise = state.current_exercise
        run.close_pause(now)
        if run.started_at is None:
            run.started_at = now
        run.finished_at = now
        run.skipped = skipped
        self._notify("on_exercise_completed", state.current_index, exercise, skipped)

        if state.has_next:
            if state.rest_duration_override is not None:
                rest = state.rest_duration_override
            else:
                rest = exercise.effective_rest_after(self.default_rest_duration)
            state.current_index += 1
            self._enter_phase(state, REST_BETWEEN_EXERCISES, now, rest)
        else:
            state.completed_at = now
            self._enter_phase(state, COMPLETED, now, None)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, workout: Workout, now: float | None = None) -> SessionView:
        """Begin ``workout`` with the get-ready countdown.

        Any previous session and its snapshot are replaced.
        """

        if not workout.exercises:
            raise InvalidWorkout(f"Workout '{workout.name}' has no exercises")
        now = self._now(now)
        self.session = SessionState(workout, now, self.get_ready_duration)
        logging.info(
            "Started workout %s with %d exercises", workout.name, len(workout.exercises)
        )
        self._persist(now)
        self._notify("on_phase_changed", GET_READY, 0)
        return self.view

    def advance(self, now: float | None = None) -> None:
        """Leave get-ready or a rest period and start the next exercise or set."""

        state = self._require(
            "advance", GET_READY, REST_BETWEEN_SETS, REST_BETWEEN_EXERCISES
        )
        now = self._now(now)
        state.close_pause(now)
        if state.phase == REST_BETWEEN_SETS:
            target = state.current_exercise.mode.target_duration
            self._enter_phase(state, EXERCISE_ACTIVE, now, target)
        else:
            self._begin_exercise(state, now)
        self._persist(now)

    def skip_rest(self, now: float | None = None) -> None:
        self._require("skip rest", *REST_PHASES)
        self.advance(now)

    def pause(self, now: float | None = None) -> bool:
        """Pause the current phase; returns ``False`` if already paused."""

        state = self._require("pause", *LIVE_PHASES)
        if state.is_paused:
            return False
        now = self._now(now)
        state.paused_at = now
        run = state.current_run
        if run.is_active:
            run.current_pause_started_at = now
        self._persist(now)
        return True

    def resume(self, now: float | None = None) -> bool:
        """Resume after :meth:`pause`; returns ``False`` if not paused."""

        state = self._require("resume", *LIVE_PHASES)
        if not state.is_paused:
            return False
        now = self._now(now)
        state.close_pause(now)
        self._persist(now)
        return True

    def complete_current_set(self, now: float | None = None) -> bool:
        """Mark the current set done.

        After the last set the exercise is finished.  A repeated call once the
        exercise has already been finished is ignored and returns ``False``.
        """

        if self.session is not None and self.session.phase in (
            REST_BETWEEN_EXERCISES,
            COMPLETED,
        ):
            logging.debug("Ignoring set completion after the exercise finished")
            return False
        state = self._require("complete a set", EXERCISE_ACTIVE, REST_BETWEEN_SETS)
        exercise = state.current_exercise
        if not exercise.mode.is_set_based:
            raise InvalidTransition("complete a set of a non set-based exercise", state.phase)

        now = self._now(now)
        state.close_pause(now)
        run = state.current_run
        run.finish_set(_target_reps(exercise))
        if run.current_set > exercise.mode.total_sets:
            self._finish_current(state, now, skipped=False)
        else:
            if state.rest_duration_override is not None:
                rest = state.rest_duration_override
            else:
                rest = exercise.effective_rest_between_sets(self.set_rest_duration)
            self._enter_phase(state, REST_BETWEEN_SETS, now, rest)
        self._persist(now)
        return True

    def complete_current_exercise(self, now: float | None = None) -> None:
        """Finish the active exercise; for set modes this also counts the current set."""

        state = self._require("complete the exercise", EXERCISE_ACTIVE)
        now = self._now(now)
        state.close_pause(now)
        exercise = state.current_exercise
        if exercise.mode.is_set_based:
            state.current_run.finish_set(_target_reps(exercise))
        self._finish_current(state, now, skipped=False)
        self._persist(now)

    def increment_reps(self, amount: int = 1, now: float | None = None) -> int:
        """Add ``amount`` to the rep counter of the current set.

        The counter stays within ``0..reps``; returns the new count.
        """

        return self._change_reps(amount, now)

    def decrement_reps(self, amount: int = 1, now: float | None = None) -> int:
        return self._change_reps(-amount, now)

    def _change_reps(self, delta: int, now: float | None) -> int:
        state = self._require("count reps", EXERCISE_ACTIVE)
        target = _target_reps(state.current_exercise)
        if target is None:
            raise InvalidTransition("count reps of an exercise without reps", state.phase)
        now = self._now(now)
        run = state.current_run
        run.current_reps = min(target, max(0, (run.current_reps or 0) + delta))
        self._persist(now)
        return run.current_reps

    def skip_exercise(self, now: float | None = None) -> None:
        """Skip the current (or, during get-ready and rest, the upcoming) exercise."""

        state = self._require("skip the exercise", *LIVE_PHASES)
        now = self._now(now)
        state.close_pause(now)
        self._finish_current(state, now, skipped=True)
        self._persist(now)

    def adjust_rest_duration(self, delta: float, now: float | None = None) -> float:
        """Lengthen or shorten the rest period by ``delta`` seconds.

        The new length also applies to every later rest in the session.  It
        cannot be pushed below :data:`MIN_REST_DURATION` (or below the current
        length if that is already shorter).  Returns the new length.
        """

        state = self._require("adjust rest", *REST_PHASES)
        now = self._now(now)
        current = state.phase_target or 0.0
        new = max(current + delta, min(MIN_REST_DURATION, current))
        state.rest_duration_override = new
        state.phase_target = new
        self._persist(now)
        return new

    def extend_rest(self, now: float | None = None) -> float:
        """Add one :data:`REST_ADJUSTMENT_INCREMENT` to the rest period."""
        return self.adjust_rest_duration(REST_ADJUSTMENT_INCREMENT, now)

    def shorten_rest(self, now: float | None = None) -> float:
        """Take one :data:`REST_ADJUSTMENT_INCREMENT` off the rest period."""
        return self.adjust_rest_duration(-REST_ADJUSTMENT_INCREMENT, now)

    def abandon_workout(self, now: float | None = None) -> None:
        """Stop the workout without recording it in the history."""

        state = self._require("abandon the workout", *LIVE_PHASES)
        now = self._now(now)
        state.close_pause(now)
        state.completed_at = now
        self._clear_snapshot()
        logging.info("Abandoned workout %s", state.workout_name)
        self._enter_phase(state, ABANDONED, now, None)
        self._notify("on_workout_abandoned")

    def finish_workout(self, now: float | None = None) -> WorkoutSummary:
        """Record the completed workout in the history and end the session."""

        state = self._require("finish the workout", COMPLETED)
        now = self._now(now)
        summary = build_summary(state, now)
        self.history.record(summary)
        self._clear_snapshot()
        logging.info(
            "Finished workout %s (%.0f%% completed)",
            state.workout_name,
            summary.completion_rate * 100,
        )
        self.session = None
        self._notify("on_workout_completed", summary)
        return summary

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def recover(self, now: float | None = None) -> RecoveryReport | None:
        """Resume the session stored in the snapshot store, if any.

        Time that passed while the process was suspended is absorbed because
        every displayed value is derived from timestamps.  A countdown that ran
        out in the meantime is reported via ``ready_to_advance``; the session
        itself is not advanced.  Unreadable or inconsistent snapshots are
        discarded and ``None`` is returned, as when there is no snapshot.
        """

        now = self._now(now)
        self.session = None
        try:
            blob = self.store.load(CURRENT_SESSION_KEY)
        except Exception:
            logging.exception("Could not read session snapshot")
            return None
        if blob is None:
            return None
        try:
            data = json.loads(blob)
            if not isinstance(data, dict):
                raise CorruptSnapshot("snapshot is not an object")
            state = SessionState.from_dict(data)
            state.validate()
            view = SessionView(state)
            away_for = max(0.0, now - state.saved_at) if state.saved_at is not None else 0.0
            report = RecoveryReport(
                phase=state.phase,
                ready_to_advance=view.ready_to_advance(now),
                away_for=away_for,
            )
            # every derived clock must be readable before the session is accepted
            view.display_time(now)
            view.exercise_elapsed_time(now)
            view.workout_elapsed_time(now)
        except (CorruptSnapshot, AttributeError, KeyError, TypeError, ValueError) as exc:
            logging.warning("Discarding corrupt session snapshot: %s", exc)
            self._clear_snapshot()
            return None

        self.session = state
        logging.info(
            "Recovered workout %s in phase %s after %.0fs away",
            state.workout_name,
            state.phase,
            away_for,
        )
        return report
