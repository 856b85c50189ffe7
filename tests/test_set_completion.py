import pytest

from workout_engine.models import ExerciseEntry, ExerciseKind, PRType, SetEntry
from workout_engine.notifications import NotificationTracker
from workout_engine.pr_ledger import SessionPRLedger
from workout_engine.rest_timer import EXERCISE_TIMER, SET_TIMER, TimerCoordinator
from workout_engine.set_completion import SetCompletionController, validate_set


def _exercise(exercise_id, sets, kind=ExerciseKind.REPS, rest=60, next_rest=120):
    return ExerciseEntry(
        entry_id=f"entry-{exercise_id}",
        exercise_id=exercise_id,
        name=exercise_id.title(),
        kind=kind,
        sets=sets,
        rest_seconds=rest,
        next_exercise_rest_seconds=next_rest,
    )


@pytest.fixture
def make_controller(scheduler, fake_clock, fake_time):
    def factory(exercises, historical=None, unit="kg", **timer_kwargs):
        timer = TimerCoordinator(
            NotificationTracker(scheduler), clock=fake_clock, time_source=fake_time, **timer_kwargs
        )
        return SetCompletionController(exercises, SessionPRLedger(), timer, historical, unit)

    return factory


def test_validation_messages_per_kind():
    assert validate_set(SetEntry(weight=100), ExerciseKind.REPS) == [
        "Please add reps to mark this set as done."
    ]
    assert validate_set(SetEntry(reps=5), ExerciseKind.REPS) == []
    assert validate_set(SetEntry(), ExerciseKind.TIME) == [
        "Please add time to mark this set as done."
    ]
    assert validate_set(SetEntry(distance=1000), "distance") == [
        "Please add time to mark this set as done."
    ]


def test_invalid_set_blocks_toggle(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(weight=100), SetEntry()])])
    result = controller.toggle_set(0, 0)
    assert not result.ok
    assert not controller.exercises[0].sets[0].completed
    assert not controller.timer.state.active


def test_first_set_records_all_reps_candidates(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5, weight=50), SetEntry()])])
    result = controller.toggle_set(0, 0)
    assert result.completed
    assert controller.ledger.summary() == {"squat": {"weight": 50, "reps": 5, "volume": 250}}
    assert result.message == "Weight: 50 kg | Reps: 5 | Volume: 250 kg"
    assert controller.timer.state.kind == SET_TIMER
    assert controller.timer.state.triggering_set_index == 0


def test_history_limits_candidates(make_controller):
    historical = {"squat": {PRType.WEIGHT: 120, PRType.REPS: 3, PRType.VOLUME: 400}}
    controller = make_controller(
        [_exercise("squat", [SetEntry(reps=5, weight=50), SetEntry()])], historical
    )
    result = controller.toggle_set(0, 0)
    assert [pr.pr_type for pr in result.new_prs] == [PRType.REPS]
    assert controller.ledger.summary() == {"squat": {"reps": 5}}


def test_recheck_does_not_notify_twice(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5, weight=50), SetEntry()])])
    first = controller.toggle_set(0, 0)
    controller.toggle_set(0, 0)
    again = controller.toggle_set(0, 0)
    assert len(first.new_prs) == 3
    # unchecking the only set removed the records, so they are announced again
    assert len(again.new_prs) == 3

    controller.exercises[0].sets[1] = SetEntry(reps=3, weight=40)
    more = controller.toggle_set(0, 1)
    assert more.new_prs == []
    assert controller.ledger.summary() == {"squat": {"weight": 50, "reps": 5, "volume": 250}}


def test_downgrade_on_uncheck(make_controller):
    sets = [SetEntry(reps=10, weight=100), SetEntry(reps=8, weight=110), SetEntry()]
    controller = make_controller([_exercise("squat", sets)])
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 1)
    assert controller.ledger.summary()["squat"]["weight"] == 110

    controller.toggle_set(0, 1)
    summary = controller.ledger.summary()["squat"]
    assert summary["weight"] == 100
    assert summary["reps"] == 10
    assert summary["volume"] == 1000


def test_unchecking_only_set_removes_records(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5, weight=50), SetEntry()])])
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 0)
    assert controller.ledger.summary() == {}
    assert controller.ledger.notified == {}


def test_uncheck_cancels_timer_of_that_set_only(make_controller):
    sets = [SetEntry(reps=5), SetEntry(reps=5), SetEntry()]
    controller = make_controller([_exercise("squat", sets)])
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 1)
    controller.toggle_set(0, 0)
    assert controller.timer.state.active
    controller.toggle_set(0, 1)
    assert not controller.timer.state.active


def test_finishing_exercise_starts_inter_exercise_rest(make_controller):
    exercises = [
        _exercise("squat", [SetEntry(reps=5), SetEntry(reps=5)], next_rest=90),
        _exercise("plank", [SetEntry(time=60)], kind=ExerciseKind.TIME),
    ]
    controller = make_controller(exercises)
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 1)
    state = controller.timer.state
    assert state.kind == EXERCISE_TIMER
    assert state.next_exercise_index == 1
    assert state.next_exercise_name == "Plank"
    assert state.total_seconds == 90

    # unchecking a set of the finished exercise cancels the inter-exercise rest
    controller.toggle_set(0, 0)
    assert not controller.timer.state.active


def test_next_exercise_search_wraps(make_controller):
    exercises = [
        _exercise("squat", [SetEntry(reps=5)]),
        _exercise("bench", [SetEntry(reps=5)]),
        _exercise("row", [SetEntry(reps=5)]),
    ]
    controller = make_controller(exercises)
    controller.toggle_set(2, 0)
    assert controller.timer.state.next_exercise_index == 0
    controller.toggle_set(0, 0)
    assert controller.find_next_exercise(0) == 1


def test_zero_inter_exercise_rest_advances_without_timer(make_controller):
    advanced = []
    exercises = [
        _exercise("squat", [SetEntry(reps=5)], next_rest=0),
        _exercise("bench", [SetEntry(reps=5)]),
    ]
    controller = make_controller(exercises, on_advance=advanced.append)
    controller.toggle_set(0, 0)
    assert advanced == [1]
    assert not controller.timer.state.active


def test_last_set_of_workout_starts_completion_timer(make_controller, scheduler):
    exercises = [_exercise("squat", [SetEntry(reps=5)], rest=0)]
    controller = make_controller(exercises)
    controller.toggle_set(0, 0)
    state = controller.timer.state
    assert state.kind == EXERCISE_TIMER
    assert state.next_exercise_index is None
    assert state.total_seconds == 60
    assert "success" in scheduler.haptics


def test_zero_rest_skips_set_timer(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5), SetEntry()], rest=0)])
    controller.toggle_set(0, 0)
    assert not controller.timer.state.active


def test_remove_completed_set_reconciles_after_delay(make_controller, fake_clock):
    sets = [SetEntry(reps=10, weight=100), SetEntry(reps=8, weight=110), SetEntry()]
    controller = make_controller([_exercise("squat", sets, rest=0)])
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 1)
    assert controller.remove_set(0, 1)
    assert controller.ledger.summary()["squat"]["weight"] == 110
    fake_clock.advance(0.1)
    assert controller.ledger.summary()["squat"]["weight"] == 100


def test_remove_set_refuses_last_set(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5)])])
    assert not controller.remove_set(0, 0)
    assert len(controller.exercises[0].sets) == 1


def test_remove_set_cancels_its_timer(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5), SetEntry(), SetEntry()])])
    controller.toggle_set(0, 0)
    assert controller.remove_set(0, 0)
    assert not controller.timer.state.active
    controller.flush_pending()
    assert controller.ledger.summary() == {}


def test_remove_earlier_set_keeps_timer_pointing_at_its_set(make_controller):
    sets = [SetEntry(reps=5), SetEntry(reps=5), SetEntry(), SetEntry()]
    controller = make_controller([_exercise("squat", sets)])
    controller.toggle_set(0, 1)
    controller.remove_set(0, 0)
    assert controller.timer.should_cancel_for_set(0, 0)


def test_lbs_weights_compared_in_kilograms(make_controller):
    historical = {"squat": {PRType.WEIGHT: 100}}
    controller = make_controller(
        [_exercise("squat", [SetEntry(reps=1, weight=225), SetEntry()])], historical, unit="lbs"
    )
    result = controller.toggle_set(0, 0)
    assert PRType.WEIGHT in [pr.pr_type for pr in result.new_prs]
    assert "225 lbs" in result.message


def test_bad_indexes_raise(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5)])])
    with pytest.raises(IndexError):
        controller.toggle_set(1, 0)
    with pytest.raises(IndexError):
        controller.toggle_set(0, 3)


def test_removing_last_open_set_moves_to_next_exercise(make_controller):
    exercises = [
        _exercise("squat", [SetEntry(reps=5), SetEntry(reps=5)], next_rest=90),
        _exercise("plank", [SetEntry(time=60)], kind=ExerciseKind.TIME),
    ]
    controller = make_controller(exercises)
    controller.toggle_set(0, 0)
    assert controller.timer.state.kind == SET_TIMER
    assert controller.remove_set(0, 1)
    state = controller.timer.state
    assert controller.exercises[0].all_sets_completed()
    assert state.kind == EXERCISE_TIMER
    assert state.next_exercise_index == 1
    assert state.triggering_set_index == 0


def test_removing_last_open_set_of_workout_starts_completion_timer(make_controller):
    controller = make_controller([_exercise("squat", [SetEntry(reps=5), SetEntry(reps=5)])])
    controller.toggle_set(0, 0)
    controller.remove_set(0, 1)
    state = controller.timer.state
    assert state.kind == EXERCISE_TIMER
    assert state.next_exercise_index is None


def test_recheck_of_non_max_set_is_idempotent(make_controller):
    sets = [SetEntry(reps=10, weight=100), SetEntry(reps=8, weight=90), SetEntry()]
    controller = make_controller([_exercise("squat", sets)])
    controller.toggle_set(0, 0)
    controller.toggle_set(0, 1)
    before = controller.max_values_for(controller.exercises[0])
    summary = controller.ledger.summary()

    controller.toggle_set(0, 1)
    result = controller.toggle_set(0, 1)
    assert result.completed
    assert result.new_prs == []
    assert controller.max_values_for(controller.exercises[0]) == before
    assert controller.ledger.summary() == summary
