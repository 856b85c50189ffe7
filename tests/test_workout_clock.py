from workout_engine.formatting import format_clock, format_duration, format_pr_value, pr_label
from workout_engine.models import PRType
from workout_engine.workout_clock import WorkoutClock


def test_elapsed_excludes_paused_time(fake_time):
    clock = WorkoutClock(fake_time)
    fake_time.advance(65.7)
    assert clock.elapsed() == 65
    assert clock.toggle_pause()
    fake_time.advance(100)
    assert clock.elapsed() == 65
    assert not clock.toggle_pause()
    fake_time.advance(10)
    assert clock.elapsed() == 75


def test_round_trip_keeps_pause(fake_time):
    clock = WorkoutClock(fake_time)
    fake_time.advance(30)
    clock.pause()
    restored = WorkoutClock.from_dict(clock.to_dict(), fake_time)
    fake_time.advance(30)
    assert restored.is_paused
    assert restored.elapsed() == 30


def test_duration_formats():
    assert format_duration(75) == "1:15"
    assert format_duration(3725) == "1:02:05"
    assert format_clock(75) == "01:15"
    assert format_clock(3725) == "01:02:05"


def test_pr_value_formats():
    assert pr_label("volume") == "Volume"
    assert format_pr_value(PRType.WEIGHT, 100, "kg") == "100 kg"
    assert format_pr_value(PRType.TIME, 90) == "1:30"
    assert format_pr_value(PRType.DISTANCE, 5250) == "5.25 km"
    assert format_pr_value(PRType.REPS, 12) == "12"
