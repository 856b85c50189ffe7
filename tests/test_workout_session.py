import sqlite3

import pytest

from workout_engine import settings
from workout_engine.history import get_history, get_history_entry
from workout_engine.models import ExerciseKind, PRType
from workout_engine.personal_records import (
    add_personal_record,
    get_records,
    insert_personal_record,
    load_best_records,
)
from workout_engine.templates import create_template, load_template
from workout_engine.workout_session import ActiveWorkoutSession, WorkoutPersistenceError


@pytest.fixture
def make_session(sample_db, scheduler, fake_clock, fake_time):
    def factory(workout_id="leg-day", **kwargs):
        kwargs.setdefault("unit", "kg")
        return ActiveWorkoutSession(
            workout_id,
            db_path=sample_db,
            scheduler=scheduler,
            clock=fake_clock,
            time_source=fake_time,
            **kwargs,
        )

    return factory


def test_load_template(make_session):
    session = make_session()
    assert session.name == "Leg Day"
    assert [ex.kind for ex in session.exercises] == [
        ExerciseKind.REPS,
        ExerciseKind.TIME,
        ExerciseKind.DISTANCE,
    ]
    assert session.exercises[0].rest_seconds == 90
    assert session.exercises[0].sets[1].weight == 110.0


def test_unknown_template(make_session):
    with pytest.raises(ValueError):
        make_session("nope")


def test_missing_definition_and_defaults(make_session, sample_db):
    create_template(
        "Mystery",
        [{"exercise_id": "deleted-move", "reps": "12"}],
        sample_db,
        workout_id="mystery",
    )
    session = make_session("mystery")
    exercise = session.exercises[0]
    assert exercise.name == "Unknown Exercise"
    assert exercise.kind is ExerciseKind.REPS
    assert exercise.rest_seconds == 60
    assert exercise.next_exercise_rest_seconds == 120
    assert [s.reps for s in exercise.sets] == [12, 12, 12]


def test_settings_supply_unit_and_rest(sample_db, scheduler, fake_clock, fake_time):
    settings.set_value("weight_unit", "lbs")
    settings.set_value("default_rest", 45)
    session = ActiveWorkoutSession(
        "leg-day", sample_db, scheduler=scheduler, clock=fake_clock, time_source=fake_time
    )
    assert session.unit == "lbs"
    assert session.exercises[0].sets[0].weight == 220.46
    assert session.add_exercise("bench-press") == 3
    assert session.exercises[3].rest_seconds == 45


def test_dirty_state_scenario(make_session):
    session = make_session()
    assert not session.has_unsaved_changes()
    session.update_set_field(0, 0, "reps", 12)
    assert session.has_unsaved_changes()


def test_save_clears_dirty_state(make_session, fake_time, sample_db):
    session = make_session()
    session.update_set_field(0, 0, "weight", "102.5")
    session.save()
    fake_time.advance(1)
    assert not session.has_unsaved_changes()
    assert load_template("leg-day", sample_db)["exercises"][0]["sets"][0]["weight"] == 102.5


def test_scenario_a_first_set_records(make_session, sample_db):
    session = make_session()
    session.add_exercise("bench-press")
    session.update_set_field(3, 0, "reps", "5")
    session.update_set_field(3, 0, "weight", "50")
    result = session.toggle_set(3, 0)
    assert result.completed
    assert session.view()["session_achieved_prs"] == {
        "bench-press": {"weight": 50, "reps": 5, "volume": 250}
    }


def test_scenario_b_inter_exercise_timer(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    assert session.timer.state.kind == "set"
    session.toggle_set(0, 1)
    state = session.timer.state
    assert state.kind == "exercise"
    assert state.next_exercise_index == 1
    assert state.next_exercise_name == "Plank"


def test_timer_expiry_advances_current_exercise(make_session, fake_clock):
    advanced = []
    session = make_session(on_advance=advanced.append)
    session.toggle_set(0, 0)
    session.toggle_set(0, 1)
    fake_clock.advance(120)
    assert advanced == [1]
    assert session.current_exercise == 1


def test_historical_records_respected(make_session, sample_db):
    add_personal_record("squat", PRType.WEIGHT, 150, 1.0, db_path=sample_db)
    session = make_session()
    result = session.toggle_set(0, 0)
    assert PRType.WEIGHT not in [pr.pr_type for pr in result.new_prs]
    assert "weight" not in session.ledger.summary()["squat"]


def test_update_set_field_rules(make_session):
    session = make_session()
    assert not session.update_set_field(0, 0, "weight", "")
    assert session.exercises[0].sets[0].weight == 100.0
    assert session.update_set_field(1, 0, "time", "")
    assert session.exercises[1].sets[0].time is None
    with pytest.raises(ValueError):
        session.update_set_field(0, 0, "tempo", "3-1-1")


def test_editing_completed_set_lowers_records(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    session.toggle_set(0, 1)
    session.update_set_field(0, 1, "weight", 90)
    assert session.ledger.summary()["squat"]["weight"] == 100


def test_add_and_remove_sets(make_session):
    session = make_session()
    index = session.add_set(0)
    assert index == 2
    assert session.exercises[0].sets[2].weight == 110.0
    assert not session.exercises[0].sets[2].completed
    assert session.remove_set(0, 2)
    assert not session.remove_set(2, 0)


def test_add_completed_set_counts_for_records(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    index = session.add_set(0, completed=True)
    assert session.exercises[0].sets[index].completed
    assert session.ledger.summary()["squat"]["weight"] == 110

    plank = session.add_exercise("plank")
    index = session.add_set(plank, completed=True)
    assert not session.exercises[plank].sets[index].completed


def test_replace_exercise(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    entry_id = session.exercises[0].entry_id
    entry = session.replace_exercise(0, "plank")
    assert entry.entry_id == entry_id
    assert entry.kind is ExerciseKind.TIME
    assert len(entry.sets) == 1
    assert entry.sets[0].time is None
    assert entry.sets[0].reps == 0
    assert "squat" not in session.ledger.summary()
    assert not session.timer.state.active


def test_remove_exercise_clears_records_and_timer(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    session.remove_exercise(0)
    assert session.ledger.summary() == {}
    assert not session.timer.state.active
    assert [ex.exercise_id for ex in session.exercises] == ["plank", "running"]


def test_move_exercise_retargets_timer(make_session):
    session = make_session()
    session.toggle_set(0, 0)
    session.toggle_set(0, 1)
    session.move_exercise(1, 2)
    assert [ex.exercise_id for ex in session.exercises] == ["squat", "running", "plank"]
    assert session.timer.state.next_exercise_index == 2
    assert session.has_unsaved_changes()


def test_exercise_settings_updates(make_session):
    session = make_session()
    session.update_rest(0, 75)
    session.update_next_exercise_rest(0, -5)
    session.update_notes(0, "pause at bottom")
    session.rename("Leg Day B")
    assert session.exercises[0].rest_seconds == 75
    assert session.exercises[0].next_exercise_rest_seconds == 0
    assert session.view()["name"] == "Leg Day B"


def test_finish_workout(make_session, sample_db, fake_time, scheduler):
    session = make_session()
    session.toggle_set(0, 0)
    session.toggle_set(1, 0)
    fake_time.advance(1800)
    result = session.finish_workout()
    assert result["pr_count"] == 4
    assert result["message"] == "Workout completed with 4 new PRs!"

    entry = get_history_entry(result["id"], sample_db)
    assert entry["duration"] == 1800
    assert [ex["exercise_id"] for ex in entry["exercises"]] == ["squat", "plank"]
    assert len(entry["exercises"][0]["sets"]) == 1
    records = get_records("squat", sample_db)
    assert {r["type"] for r in records} == {"weight", "reps", "volume"}
    assert all(r["workout_history_id"] == result["id"] for r in records)
    assert session.ledger.summary() == {}
    assert not session.timer.state.active


def test_finish_converts_weights_to_kilograms(make_session, sample_db):
    session = make_session(unit="lbs")
    session.update_set_field(0, 0, "weight", "225")
    session.toggle_set(0, 0)
    result = session.finish_workout(duration=60, custom_name="Evening")
    entry = get_history_entry(result["id"], sample_db)
    assert entry["custom_name"] == "Evening"
    assert entry["exercises"][0]["sets"][0]["weight"] == pytest.approx(102.06, abs=0.01)


def test_finish_without_records(make_session, sample_db):
    add_personal_record("plank", PRType.TIME, 600, 1.0, db_path=sample_db)
    session = make_session()
    session.toggle_set(1, 0)
    assert session.finish_workout()["message"] == "Workout completed!"


def test_finish_empty_template_returns_none(make_session, sample_db):
    create_template("Empty", [], sample_db, workout_id="empty")
    assert make_session("empty").finish_workout() is None


def test_history_failure_preserves_session(make_session, monkeypatch):
    session = make_session()
    session.toggle_set(0, 0)

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr("workout_engine.workout_session.add_finished_workout", broken)
    with pytest.raises(WorkoutPersistenceError):
        session.finish_workout()
    assert session.exercises[0].sets[0].completed
    assert "squat" in session.ledger.summary()


def test_record_failure_rolls_back_and_retries(
    make_session, sample_db, monkeypatch, tmp_path, fake_time
):
    session = make_session(recovery_base=tmp_path / "session_recovery")
    session.toggle_set(0, 0)

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr("workout_engine.history.insert_personal_record", broken)
    with pytest.raises(WorkoutPersistenceError):
        session.finish_workout()
    assert get_history(db_path=sample_db) == []
    assert load_best_records(sample_db) == {}
    assert not session.finished
    assert session.ledger.summary()["squat"]["weight"] == 100
    state = ActiveWorkoutSession.load_recovery_state(
        tmp_path / "session_recovery", now=fake_time()
    )
    assert state is not None

    monkeypatch.setattr("workout_engine.history.insert_personal_record", insert_personal_record)
    result = session.finish_workout()
    assert result["pr_count"] == 3
    assert len(get_history(db_path=sample_db)) == 1
    assert load_best_records(sample_db)["squat"][PRType.WEIGHT] == 100


def test_quick_workout_saves_as_template(make_session, sample_db):
    session = make_session("quick")
    assert session.name == "Quick Workout"
    assert not session.has_unsaved_changes()
    session.add_exercise("running")
    assert session.has_unsaved_changes()
    workout_id = session.save()
    assert load_template(workout_id, sample_db)["title"] == "Quick Workout"


def test_view_shape(make_session):
    session = make_session()
    view = session.view()
    assert set(view) >= {
        "name",
        "exercises",
        "timer",
        "session_achieved_prs",
        "has_unsaved_changes",
        "elapsed",
    }
    assert view["exercises"][0]["index"] == 0
    assert view["timer"]["active"] is False


def test_pause_toggles_clock(make_session, fake_time):
    session = make_session()
    fake_time.advance(10)
    assert session.toggle_pause()
    fake_time.advance(50)
    assert session.elapsed() == 10
