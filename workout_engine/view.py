"""Read-only queries over a :class:`SessionState`.

Presentation code should only ever look at a session through this class.
Every method that depends on time takes ``now`` explicitly so the same
question asked twice at the same instant returns the same answer.
"""

from __future__ import annotations

from workout_engine.exercise import Exercise, RepsXSets
from workout_engine.session_state import (
    ABANDONED,
    COMPLETED,
    EXERCISE_ACTIVE,
    GET_READY,
    REST_BETWEEN_EXERCISES,
    REST_PHASES,
    TERMINAL_PHASES,
    SessionState,
    elapsed_between,
)


def format_clock(seconds: float | None) -> str:
    """Format ``seconds`` as ``MM:SS``; ``None`` renders as ``--:--``."""

    if seconds is None:
        return "--:--"
    m, s = divmod(int(max(0.0, seconds)), 60)
    return f"{m:02d}:{s:02d}"


class SessionView:
    """Narrow read-only interface over a session in progress."""

    def __init__(self, state: SessionState):
        self._state = state

    @property
    def phase(self) -> str:
        return self._state.phase

    @property
    def workout_id(self) -> str:
        return self._state.workout_id

    @property
    def workout_name(self) -> str:
        return self._state.workout_name

    @property
    def current_exercise_index(self) -> int:
        return self._state.current_index

    @property
    def current_exercise(self) -> Exercise:
        """The exercise being performed, or coming up during get-ready/rest."""
        return self._state.current_exercise

    @property
    def next_exercise(self) -> Exercise | None:
        state = self._state
        if state.phase in (GET_READY, REST_BETWEEN_EXERCISES):
            return state.current_exercise
        if state.has_next:
            return state.exercises[state.current_index + 1]
        return None

    @property
    def current_set(self) -> int | None:
        if not self._state.current_exercise.mode.is_set_based:
            return None
        return self._state.current_run.current_set

    @property
    def current_reps(self) -> int | None:
        """Rep counter of the set in progress, for reps x sets exercises."""
        if not isinstance(self._state.current_exercise.mode, RepsXSets):
            return None
        return self._state.current_run.current_reps or 0

    @property
    def total_sets(self) -> int | None:
        return self._state.current_exercise.mode.total_sets

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def rest_duration_override(self) -> float | None:
        return self._state.rest_duration_override

    @property
    def phase_target(self) -> float | None:
        return self._state.phase_target

    # --------------------------------------------------------------
    # Derived time values
    # --------------------------------------------------------------

    def elapsed_time(self, now: float) -> float:
        """Seconds spent in the current phase (or current set) excluding pauses."""

        if self._state.phase == ABANDONED:
            return 0.0
        return self._state.phase_elapsed(now)

    def remaining_time(self, now: float) -> float | None:
        """Seconds left on the current countdown.

        ``None`` in stopwatch mode and once the workout has ended.
        """

        state = self._state
        if state.phase in TERMINAL_PHASES or state.phase_target is None:
            return None
        return max(0.0, state.phase_target - state.phase_elapsed(now))

    def display_time(self, now: float) -> float:
        """The value a timer display shows: remaining, or elapsed for stopwatches."""

        remaining = self.remaining_time(now)
        if remaining is None:
            return self.elapsed_time(now)
        return remaining

    def ready_to_advance(self, now: float) -> bool:
        """Return ``True`` when the current countdown has run out.

        The engine never advances by itself; this flag tells the caller it may
        call ``advance`` (get-ready/rest) or ``complete_current_exercise`` /
        ``complete_current_set`` (countdown and timed sets).
        """

        state = self._state
        if state.phase in TERMINAL_PHASES or state.phase_target is None:
            return False
        if state.phase == EXERCISE_ACTIVE and not state.current_exercise.mode.auto_completes:
            return False
        return self.remaining_time(now) == 0

    def exercise_elapsed_time(self, now: float) -> float:
        """Total active seconds spent on the current exercise, all sets included."""
        return self._state.current_run.elapsed(now)

    def workout_elapsed_time(self, now: float) -> float:
        state = self._state
        return elapsed_between(
            state.session_started_at,
            state.completed_at,
            state.session_paused_accumulated,
            state.paused_at,
            now,
        )

    # --------------------------------------------------------------
    # Progress
    # --------------------------------------------------------------

    @property
    def total_exercises(self) -> int:
        return len(self._state.exercises)

    @property
    def completed_count(self) -> int:
        """Number of exercises finished, skipped ones included."""
        return sum(1 for run in self._state.runs if run.is_finished)

    @property
    def progress(self) -> float:
        return self.completed_count / self.total_exercises

    def describe(self) -> str:
        """Return a short label for the current phase."""

        phase = self._state.phase
        if phase == GET_READY:
            return "Get Ready"
        if phase == EXERCISE_ACTIVE:
            return f"Exercise {self._state.current_index + 1} of {self.total_exercises}"
        if phase in REST_PHASES:
            return "Rest"
        if phase == COMPLETED:
            return "Workout Complete"
        return "Workout Abandoned"
