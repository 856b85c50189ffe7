"""Detect whether the active workout differs from its saved template."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from . import SAVE_GRACE_PERIOD
from .models import ExerciseEntry

EXERCISE_FIELDS = ("reps", "rest_seconds", "next_exercise_rest_seconds", "notes")
SET_FIELDS = ("reps", "weight", "time", "distance")


@dataclass(frozen=True)
class SessionSnapshot:
    """Deep copy of the session's name and exercises at load or save time."""

    name: str
    exercises: tuple

    @classmethod
    def capture(cls, name: str, exercises: Iterable[ExerciseEntry]) -> "SessionSnapshot":
        return cls(name, tuple(copy.deepcopy(ex.to_dict()) for ex in exercises))


def _normalise(value):
    """Make ``"10"``, ``10`` and ``10.0`` compare equal, as do ``None`` and ``""``."""

    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def exercises_changed(original: Iterable[dict], current: Iterable[dict]) -> bool:
    """Return ``True`` if the exercise lists differ in anything a template keeps.

    Both arguments hold :meth:`ExerciseEntry.to_dict` style dictionaries.
    The completion flag of a set is not part of the template and is ignored.
    """

    original = list(original)
    current = list(current)
    if len(original) != len(current):
        return True
    for before, after in zip(original, current):
        if before.get("entry_id") != after.get("entry_id"):
            return True
        if before.get("exercise_id") != after.get("exercise_id"):
            return True
        for name in EXERCISE_FIELDS:
            if _normalise(before.get(name)) != _normalise(after.get(name)):
                return True
        sets_before = before.get("sets") or []
        sets_after = after.get("sets") or []
        if len(sets_before) != len(sets_after):
            return True
        for set_before, set_after in zip(sets_before, sets_after):
            for name in SET_FIELDS:
                if _normalise(set_before.get(name)) != _normalise(set_after.get(name)):
                    return True
    return False


class DirtyStateTracker:
    """Compares the live session with the last captured snapshot.

    Right after a save the snapshot is fresh but the caller may still be
    reloading from the store, so :meth:`is_dirty` reports clean for
    ``grace_period`` seconds.
    """

    def __init__(
        self,
        grace_period: float = SAVE_GRACE_PERIOD,
        time_source: Callable[[], float] | None = None,
    ):
        self.grace_period = grace_period
        self._time_source = time_source
        self.snapshot: SessionSnapshot | None = None
        self._saved_at: float | None = None

    def _now(self) -> float:
        return self._time_source() if self._time_source else time.time()

    def capture(self, name: str, exercises: Iterable[ExerciseEntry]) -> SessionSnapshot:
        self.snapshot = SessionSnapshot.capture(name, exercises)
        return self.snapshot

    def mark_saved(self, name: str, exercises: Iterable[ExerciseEntry]) -> SessionSnapshot:
        """Replace the snapshot after a successful save."""

        snapshot = self.capture(name, exercises)
        self._saved_at = self._now()
        return snapshot

    def in_grace_period(self) -> bool:
        if self._saved_at is None:
            return False
        return self._now() - self._saved_at < self.grace_period

    def is_dirty(self, name: str, exercises: Iterable[ExerciseEntry]) -> bool:
        if self.snapshot is None or self.in_grace_period():
            return False
        if name != self.snapshot.name:
            return True
        return exercises_changed(
            self.snapshot.exercises, [ex.to_dict() for ex in exercises]
        )
