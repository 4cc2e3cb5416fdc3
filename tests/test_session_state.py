import pytest

from workout_engine import session_state as ss
from workout_engine.errors import CorruptSnapshot
from workout_engine.exercise import Countdown, Exercise, RepsXSets, Workout
from workout_engine.session_state import ExerciseRun, SessionState, elapsed_between

T0 = 1_700_000_000.0


def test_elapsed_between_running():
    assert elapsed_between(T0, None, 0.0, None, T0 + 12) == 12


def test_elapsed_between_excludes_pauses():
    assert elapsed_between(T0, None, 5.0, None, T0 + 12) == 7
    assert elapsed_between(T0, None, 5.0, T0 + 10, T0 + 30) == 5


def test_elapsed_between_finished_ignores_now():
    assert elapsed_between(T0, T0 + 20, 2.0, None, T0 + 999) == 18


def test_elapsed_between_clamps_clock_changes():
    assert elapsed_between(T0, None, 0.0, None, T0 - 60) == 0
    assert elapsed_between(None, None, 0.0, None, T0) == 0


def test_run_states():
    run = ExerciseRun()
    assert run.is_untouched and not run.is_active
    run.started_at = T0
    assert run.is_active
    run.current_pause_started_at = T0 + 5
    run.close_pause(T0 + 8)
    assert run.paused_accumulated == 3
    assert run.current_pause_started_at is None
    run.finished_at = T0 + 10
    assert run.is_finished and not run.is_active
    assert run.elapsed(T0 + 100) == 7


def _state():
    workout = Workout(
        "w-1",
        "Test",
        [
            Exercise("ex-1", "Sprint", Countdown(30)),
            Exercise("ex-2", "Rows", RepsXSets(10, 2)),
        ],
    )
    return SessionState(workout, T0, 10)


def test_new_state_is_valid():
    state = _state()
    state.validate()
    assert state.phase == ss.GET_READY
    assert state.phase_target == 10
    assert state.phase_elapsed(T0 + 4) == 4


def test_close_pause_updates_every_clock():
    state = _state()
    state.runs[0].started_at = T0
    state.phase = ss.EXERCISE_ACTIVE
    state.paused_at = T0 + 2
    state.runs[0].current_pause_started_at = T0 + 2
    assert state.close_pause(T0 + 7) == 5
    assert state.phase_paused_accumulated == 5
    assert state.session_paused_accumulated == 5
    assert state.runs[0].paused_accumulated == 5
    assert not state.is_paused


def test_validate_reports_every_problem():
    state = _state()
    state.phase = ss.EXERCISE_ACTIVE
    state.runs[1].started_at = T0
    state.runs[1].current_set = 5
    with pytest.raises(CorruptSnapshot) as info:
        state.validate()
    message = str(info.value)
    assert "requires an active run" in message
    assert "after current index was started" in message
    assert "invalid set 5" in message


def test_validate_rejects_abandoned_state():
    state = _state()
    state.phase = ss.ABANDONED
    with pytest.raises(CorruptSnapshot):
        state.validate()


def test_state_dict_round_trip():
    state = _state()
    state.rest_duration_override = 45
    data = state.to_dict()
    restored = SessionState.from_dict(data)
    assert restored.to_dict() == data
    assert restored.exercises == state.exercises


def test_validate_checks_rep_counts():
    state = _state()
    state.runs[0].rep_counts = [3]
    state.runs[1].rep_counts = [10]
    state.runs[1].current_reps = 11
    with pytest.raises(CorruptSnapshot) as info:
        state.validate()
    message = str(info.value)
    assert "run 0 counts reps for a mode without reps" in message
    assert "run 1 has reps for 1 sets" in message
    assert "rep count outside 0..10" in message


def test_run_from_dict_rejects_text_and_bools():
    run = ExerciseRun(started_at=T0).to_dict()
    assert ExerciseRun.from_dict(run).started_at == T0
    for bad in ({"started_at": "garbage"}, {"paused_accumulated": True}, {"current_set": 1.5}):
        with pytest.raises(ValueError):
            ExerciseRun.from_dict({**run, **bad})
