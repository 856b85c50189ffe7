import os
from pathlib import Path
import sys
import pytest

# Keep Kivy from parsing pytest's command line if it gets imported.
os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_UNITTEST", "1")

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workout_engine import settings
from workout_engine.db import init_database
from workout_engine.exercises import add_exercise_definition
from workout_engine.models import ExerciseKind
from workout_engine.notifications import NotificationScheduler
from workout_engine.templates import create_template


class FakeTime:
    """Callable time source advanced by hand."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEvent:
    def __init__(self, clock, callback, timeout, repeat):
        self.clock = clock
        self.callback = callback
        self.timeout = timeout
        self.repeat = repeat
        self.due = clock.time.now + timeout
        self.cancelled = False

    def cancel(self):
        self.cancelled = True
        if self in self.clock.events:
            self.clock.events.remove(self)


class FakeClock:
    """Stand-in for ``kivy.clock.Clock`` that only runs when advanced."""

    def __init__(self, fake_time: FakeTime):
        self.time = fake_time
        self.events: list[FakeEvent] = []

    def schedule_interval(self, callback, timeout):
        event = FakeEvent(self, callback, timeout, True)
        self.events.append(event)
        return event

    def schedule_once(self, callback, timeout=0):
        event = FakeEvent(self, callback, timeout, False)
        self.events.append(event)
        return event

    def advance(self, seconds: float) -> None:
        """Move time forward firing due callbacks in order."""

        target = self.time.now + seconds
        while True:
            due = [e for e in self.events if e.due <= target]
            if not due:
                break
            event = min(due, key=lambda e: e.due)
            self.time.now = max(self.time.now, event.due)
            if event.repeat:
                event.due += event.timeout
            else:
                self.events.remove(event)
            event.callback(event.timeout)
        self.time.now = target


class RecordingScheduler(NotificationScheduler):
    def __init__(self):
        self.scheduled: dict[str, tuple[str, str, float]] = {}
        self.cancelled: list[str] = []
        self.presented: list[tuple[str, str]] = []
        self.haptics: list[str] = []
        self._counter = 0

    def schedule(self, title, body, delay_seconds):
        self._counter += 1
        notification_id = f"n{self._counter}"
        self.scheduled[notification_id] = (title, body, delay_seconds)
        return notification_id

    def cancel(self, notification_id):
        self.cancelled.append(notification_id)
        self.scheduled.pop(notification_id, None)

    def present(self, title, body):
        self.presented.append((title, body))

    def haptic(self, style="light"):
        self.haptics.append(style)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings file at a temporary location."""
    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr(settings, "_settings_cache", None)


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def fake_clock(fake_time) -> FakeClock:
    return FakeClock(fake_time)


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    """Create a temporary database with a 'Leg Day' template.

    Leg Day holds Squat (reps, two sets), Plank (time, two sets) and
    Running (distance, one set).
    """
    db_path = init_database(tmp_path / "workout.db")

    add_exercise_definition("Squat", ExerciseKind.REPS, db_path, exercise_id="squat", is_custom=False)
    add_exercise_definition("Bench Press", ExerciseKind.REPS, db_path, exercise_id="bench-press", is_custom=False)
    add_exercise_definition("Plank", ExerciseKind.TIME, db_path, exercise_id="plank", is_custom=False)
    add_exercise_definition("Running", ExerciseKind.DISTANCE, db_path, exercise_id="running", is_custom=False)

    create_template(
        "Leg Day",
        [
            {
                "exercise_id": "squat",
                "reps": "8",
                "rest": 90,
                "next_exercise_rest": 120,
                "sets": [
                    {"reps": 10, "weight": 100.0},
                    {"reps": 8, "weight": 110.0},
                ],
            },
            {
                "exercise_id": "plank",
                "rest": 30,
                "next_exercise_rest": 60,
                "sets": [{"time": 60}, {"time": 60}],
            },
            {
                "exercise_id": "running",
                "rest": 0,
                "next_exercise_rest": 0,
                "sets": [{"distance": 1000, "time": 300}],
            },
        ],
        db_path,
        workout_id="leg-day",
    )
    return db_path
