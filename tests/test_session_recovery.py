import json
import sqlite3

import pytest

from workout_engine import session_state as ss
from workout_engine.controller import WorkoutController
from workout_engine.errors import PersistenceWriteFailure
from workout_engine.snapshot_store import JsonFileSnapshotStore, MemorySnapshotStore

T0 = 1_700_000_000.0


def _fresh(store, history=None):
    return WorkoutController(
        store, history, get_ready_duration=10, default_rest_duration=30, set_rest_duration=20
    )


def test_no_snapshot_means_no_session(store):
    controller = _fresh(store)
    assert controller.recover(T0) is None
    assert controller.session is None
    assert controller.current_phase is None


def test_snapshot_round_trip(controller, store, mixed_workout):
    controller.start(mixed_workout, now=T0)
    controller.advance(T0 + 10)
    controller.complete_current_exercise(T0 + 70)
    controller.advance(T0 + 115)
    controller.complete_current_set(T0 + 130)
    controller.pause(T0 + 135)

    query_at = T0 + 150
    expected = (
        controller.current_phase,
        controller.current_exercise_index,
        controller.elapsed_time(query_at),
        controller.remaining_time(query_at),
        controller.view.current_set,
    )

    recovered = _fresh(store)
    report = recovered.recover(query_at)
    assert report.phase == ss.REST_BETWEEN_SETS
    assert report.away_for == 15
    assert (
        recovered.current_phase,
        recovered.current_exercise_index,
        recovered.elapsed_time(query_at),
        recovered.remaining_time(query_at),
        recovered.view.current_set,
    ) == expected
    assert recovered.view.is_paused
    assert recovered.session.to_dict() == controller.session.to_dict()


def test_suspended_countdown_reads_zero(controller, store):
    from workout_engine.exercise import Countdown, Exercise, Workout

    workout = Workout("w-long", "Endurance", [Exercise("ex-1", "Plank", Countdown(120))])
    controller.start(workout, now=T0)
    controller.advance(T0 + 10)
    # a pause/resume pair at elapsed=10s forces a snapshot write
    controller.pause(T0 + 20)
    controller.resume(T0 + 20)

    recovered = _fresh(store)
    report = recovered.recover(T0 + 220)
    assert recovered.remaining_time(T0 + 220) == 0
    assert report.ready_to_advance
    # recovery reports but never advances
    assert recovered.current_phase == ss.EXERCISE_ACTIVE
    assert recovered.session.runs[0].finished_at is None


def test_recovered_session_can_continue(controller, store, history, single_sets):
    controller.start(single_sets, now=T0)
    controller.advance(T0 + 10)
    controller.complete_current_set(T0 + 20)

    recovered = _fresh(store, history)
    recovered.recover(T0 + 500)
    assert recovered.ready_to_advance(T0 + 500)
    recovered.advance(T0 + 500)
    recovered.complete_current_set(T0 + 520)
    recovered.complete_current_set(T0 + 530)
    assert recovered.current_phase == ss.COMPLETED
    summary = recovered.finish_workout(T0 + 531)
    assert summary.per_exercise[0].actual_sets == 3
    assert summary.per_exercise[0].actual_reps == 30
    assert store.load("current_session") is None


def test_abandon_then_load_is_absent(controller, store, mixed_workout):
    controller.start(mixed_workout, now=T0)
    controller.advance(T0 + 10)
    controller.complete_current_exercise(T0 + 70)
    controller.abandon_workout(T0 + 80)
    assert store.load("current_session") is None
    assert _fresh(store).recover(T0 + 90) is None


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        "[]",
        json.dumps({"version": 99}),
        json.dumps({"version": 1, "workout_id": "w"}),
    ],
)
def test_unreadable_snapshot_is_discarded(store, blob):
    store.save("current_session", blob)
    controller = _fresh(store)
    assert controller.recover(T0) is None
    assert controller.session is None
    assert store.load("current_session") is None


def _snapshot(controller, store, workout):
    controller.start(workout, now=T0)
    controller.advance(T0 + 10)
    return json.loads(store.load("current_session"))


@pytest.mark.parametrize(
    "corrupt",
    [
        lambda d: d["runs"][0].update(finished_at=d["runs"][0]["started_at"] - 5),
        lambda d: d["runs"][0].update(started_at=None),
        lambda d: d["runs"][1].update(started_at=T0, finished_at=None),
        lambda d: d.update(current_index=7),
        lambda d: d.update(phase="warming_up"),
        lambda d: d["runs"].pop(),
        lambda d: d["exercises"][0]["mode"].update(kind="juggling"),
        lambda d: d.update(paused_at="garbage"),
        lambda d: d["runs"][0].update(started_at="garbage"),
        lambda d: d["runs"][0].update(current_pause_started_at=[T0]),
        lambda d: d.update(phase_target=True),
        lambda d: d.update(saved_at="yesterday"),
        lambda d: d.update(phase_started_at=float("nan")),
        lambda d: d.update(current_index="0"),
        lambda d: d["runs"][0].update(current_reps=3),
    ],
)
def test_invariant_violations_are_discarded(controller, store, mixed_workout, corrupt):
    data = _snapshot(controller, store, mixed_workout)
    corrupt(data)
    store.save("current_session", json.dumps(data))

    recovered = _fresh(store)
    assert recovered.recover(T0 + 20) is None
    assert store.load("current_session") is None


def test_completed_snapshot_can_be_finished(controller, store, history, single_countdown):
    controller.start(single_countdown, now=T0)
    controller.advance(T0 + 10)
    controller.complete_current_exercise(T0 + 40)

    recovered = _fresh(store, history)
    report = recovered.recover(T0 + 100)
    assert report.phase == ss.COMPLETED
    assert not report.ready_to_advance
    summary = recovered.finish_workout(T0 + 100)
    assert summary.per_exercise[0].actual_duration == 30
    assert len(history.summaries) == 1


class FailingStore(MemorySnapshotStore):
    def __init__(self):
        super().__init__()
        self.fail = False

    def save(self, session_id, blob):
        if self.fail:
            raise OSError("disk full")
        super().save(session_id, blob)


def test_failed_write_keeps_transition(single_countdown):
    store = FailingStore()
    controller = _fresh(store)
    controller.start(single_countdown, now=T0)
    store.fail = True

    with pytest.warns(PersistenceWriteFailure):
        controller.advance(T0 + 10)
    assert controller.current_phase == ss.EXERCISE_ACTIVE
    assert isinstance(controller.last_persistence_error, OSError)

    store.fail = False
    controller.pause(T0 + 12)
    assert controller.last_persistence_error is None
    assert json.loads(store.load("current_session"))["phase"] == ss.EXERCISE_ACTIVE


def test_json_file_store_writes_both_copies(tmp_path, single_countdown):
    store = JsonFileSnapshotStore(tmp_path / "recovery")
    controller = _fresh(store)
    controller.start(single_countdown, now=T0)

    first, second = store.paths("current_session")
    assert first.exists() and second.exists()
    assert json.loads(first.read_text()) == json.loads(second.read_text())
    assert not list((tmp_path / "recovery").glob("*.tmp"))


def test_json_file_store_falls_back_to_backup(tmp_path, single_countdown):
    store = JsonFileSnapshotStore(tmp_path)
    controller = _fresh(store)
    controller.start(single_countdown, now=T0)
    controller.advance(T0 + 10)

    first, second = store.paths("current_session")
    first.write_text('{"version": 1, "runs": [')
    recovered = _fresh(store)
    report = recovered.recover(T0 + 15)
    assert report.phase == ss.EXERCISE_ACTIVE
    assert recovered.elapsed_time(T0 + 15) == 5

    first.unlink()
    assert store.load("current_session") == second.read_text().strip()


def test_json_file_store_clear_tolerates_missing_files(tmp_path):
    store = JsonFileSnapshotStore(tmp_path)
    store.clear("current_session")
    store.save("current_session", "{}")
    store.clear("current_session")
    assert store.load("current_session") is None


def test_mistyped_snapshot_never_reaches_the_view(controller, store, single_countdown):
    controller.start(single_countdown, now=T0)
    controller.advance(T0 + 10)
    data = json.loads(store.load("current_session"))
    data["runs"][0]["started_at"] = "garbage"
    store.save("current_session", json.dumps(data))

    recovered = _fresh(store)
    assert recovered.recover(T0 + 20) is None
    assert recovered.view is None


class BrokenDatabaseStore(MemorySnapshotStore):
    def save(self, session_id, blob):
        raise sqlite3.OperationalError("database is locked")

    def load(self, session_id):
        raise sqlite3.OperationalError("database is locked")


def test_store_errors_other_than_oserror_are_reported(single_countdown):
    controller = _fresh(BrokenDatabaseStore())
    with pytest.warns(PersistenceWriteFailure):
        controller.start(single_countdown, now=T0)
    assert controller.current_phase == ss.GET_READY
    assert isinstance(controller.last_persistence_error, sqlite3.Error)

    with pytest.warns(PersistenceWriteFailure):
        controller.advance(T0 + 10)
    assert controller.current_phase == ss.EXERCISE_ACTIVE

    assert _fresh(BrokenDatabaseStore()).recover(T0 + 20) is None
