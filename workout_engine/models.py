"""Value types shared by the session engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from . import DEFAULT_NEXT_EXERCISE_REST, DEFAULT_REST_DURATION


class ExerciseKind(str, Enum):
    """How an exercise is measured."""

    REPS = "reps"
    TIME = "time"
    DISTANCE = "distance"

    @classmethod
    def parse(cls, value) -> "ExerciseKind":
        """Return the kind for ``value``, falling back to ``REPS``."""

        try:
            return cls(value)
        except ValueError:
            return cls.REPS


class PRType(str, Enum):
    """Metric a personal record is tracked for."""

    WEIGHT = "weight"
    REPS = "reps"
    VOLUME = "volume"
    TIME = "time"
    DISTANCE = "distance"


@dataclass
class SetEntry:
    """One set of an exercise in the active workout.

    Weight is stored in the user's display unit; the PR pipeline converts it
    to kilograms before comparing.
    """

    reps: int | None = None
    weight: float | None = None
    time: int | None = None
    distance: int | None = None
    completed: bool = False

    def values(self) -> dict:
        """Return the measured fields without the completion flag."""

        return {
            "reps": self.reps,
            "weight": self.weight,
            "time": self.time,
            "distance": self.distance,
        }

    def copy(self, **changes) -> "SetEntry":
        data = {**self.values(), "completed": self.completed, **changes}
        return SetEntry(**data)

    def to_dict(self) -> dict:
        return {**self.values(), "completed": self.completed}

    @classmethod
    def from_dict(cls, data: dict) -> "SetEntry":
        return cls(
            reps=data.get("reps"),
            weight=data.get("weight"),
            time=data.get("time"),
            distance=data.get("distance"),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class ExerciseDefinition:
    """Catalog entry describing an exercise."""

    id: str
    name: str
    kind: ExerciseKind = ExerciseKind.REPS
    is_custom: bool = False

    @classmethod
    def placeholder(cls, exercise_id: str) -> "ExerciseDefinition":
        """Definition used when the referenced exercise no longer exists."""

        return cls(id=exercise_id, name="Unknown Exercise", kind=ExerciseKind.REPS)


@dataclass
class ExerciseEntry:
    """An exercise as performed in the active workout.

    ``entry_id`` identifies the slot in the workout and survives reordering
    and replacement, while ``exercise_id`` points at the catalog definition
    that personal records are tracked against.
    """

    entry_id: str
    exercise_id: str
    name: str
    kind: ExerciseKind = ExerciseKind.REPS
    sets: list[SetEntry] = field(default_factory=list)
    reps: str = ""
    rest_seconds: int = DEFAULT_REST_DURATION
    next_exercise_rest_seconds: int = DEFAULT_NEXT_EXERCISE_REST
    notes: str = ""

    def all_sets_completed(self) -> bool:
        """Return ``True`` if the exercise has sets and every one is done."""

        return bool(self.sets) and all(s.completed for s in self.sets)

    def has_incomplete_set(self) -> bool:
        return any(not s.completed for s in self.sets)

    def completed_sets(self) -> list[SetEntry]:
        return [s for s in self.sets if s.completed]

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "exercise_id": self.exercise_id,
            "name": self.name,
            "kind": self.kind.value,
            "sets": [s.to_dict() for s in self.sets],
            "reps": self.reps,
            "rest_seconds": self.rest_seconds,
            "next_exercise_rest_seconds": self.next_exercise_rest_seconds,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExerciseEntry":
        return cls(
            entry_id=data["entry_id"],
            exercise_id=data["exercise_id"],
            name=data.get("name", ""),
            kind=ExerciseKind.parse(data.get("kind")),
            sets=[SetEntry.from_dict(s) for s in data.get("sets", [])],
            reps=data.get("reps", "") or "",
            rest_seconds=data.get("rest_seconds", DEFAULT_REST_DURATION),
            next_exercise_rest_seconds=data.get(
                "next_exercise_rest_seconds", DEFAULT_NEXT_EXERCISE_REST
            ),
            notes=data.get("notes", "") or "",
        )
