"""Best per-metric values across the completed sets of one exercise."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from .measurement import CANONICAL_UNIT, parse_and_convert_weight, parse_int_value
from .models import ExerciseKind, PRType, SetEntry


@dataclass(frozen=True)
class MaxValues:
    """Per-metric maxima derived from completed sets.

    Weight and volume are in kilograms.  Volume is the best single set's
    ``weight * reps``, never a total across sets.
    """

    weight: float = 0.0
    reps: int = 0
    volume: float = 0.0
    time: int = 0
    distance: int = 0
    has_no_valid_values: bool = False

    def value_for(self, pr_type: PRType | str) -> float:
        return getattr(self, PRType(pr_type).value)


def has_no_valid_values(max_values: MaxValues, kind: ExerciseKind) -> bool:
    """Return ``True`` if every metric relevant to ``kind`` is zero."""

    if kind is ExerciseKind.TIME:
        return max_values.time == 0
    if kind is ExerciseKind.DISTANCE:
        return max_values.distance == 0 and max_values.time == 0
    return max_values.weight == 0 and max_values.reps == 0 and max_values.volume == 0


def _set_metrics(entry: SetEntry, kind: ExerciseKind, unit: str) -> dict:
    """Return the usable metrics of a single set, skipping invalid ones."""

    if kind is ExerciseKind.TIME:
        time = parse_int_value(entry.time)
        return {"time": time} if time > 0 else {}
    if kind is ExerciseKind.DISTANCE:
        values = {}
        distance = parse_int_value(entry.distance)
        time = parse_int_value(entry.time)
        if distance > 0:
            values["distance"] = distance
        if time > 0:
            values["time"] = time
        return values
    weight = parse_and_convert_weight(entry.weight, unit)
    reps = parse_int_value(entry.reps)
    if weight >= 0 and reps > 0:
        return {"weight": weight, "reps": reps, "volume": weight * reps}
    return {}


def calculate_max_values(
    sets: Iterable[SetEntry],
    kind: ExerciseKind,
    unit: str = CANONICAL_UNIT,
) -> MaxValues:
    """Return the best value per metric over the completed ``sets``.

    Sets entered in ``unit`` are normalised to kilograms first.  A reps set
    with reps but no weight still counts its reps, so a first bodyweight set
    is never lost to a zero weight.
    """

    kind = ExerciseKind.parse(kind)
    completed = [s for s in sets if s.completed]
    best = {"weight": 0.0, "reps": 0, "volume": 0.0, "time": 0, "distance": 0}
    for entry in completed:
        for name, value in _set_metrics(entry, kind, unit).items():
            if value > best[name]:
                best[name] = value

    result = MaxValues(**best)
    return replace(result, has_no_valid_values=has_no_valid_values(result, kind))
