"""Turn aggregated maxima into personal record candidates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .max_values import MaxValues
from .models import ExerciseKind, PRType

# Metrics tracked for each exercise kind, in display order
PR_TYPES_BY_KIND: dict[ExerciseKind, tuple[PRType, ...]] = {
    ExerciseKind.REPS: (PRType.WEIGHT, PRType.REPS, PRType.VOLUME),
    ExerciseKind.TIME: (PRType.TIME,),
    ExerciseKind.DISTANCE: (PRType.DISTANCE, PRType.TIME),
}


@dataclass(frozen=True)
class PRCandidate:
    """A metric value that may beat the historical record.

    ``fields`` holds the set values that produced ``value`` so the record
    written at the end of the workout can show how it was achieved.
    """

    pr_type: PRType
    value: float
    fields: dict = field(default_factory=dict)


def pr_types_for_kind(kind: ExerciseKind | str) -> tuple[PRType, ...]:
    return PR_TYPES_BY_KIND[ExerciseKind.parse(kind)]


def generate_pr_candidates(max_values: MaxValues, kind: ExerciseKind | str) -> list[PRCandidate]:
    """Return one candidate per metric relevant to ``kind``."""

    kind = ExerciseKind.parse(kind)
    if kind is ExerciseKind.TIME:
        return [PRCandidate(PRType.TIME, max_values.time, {"time": max_values.time})]
    if kind is ExerciseKind.DISTANCE:
        return [
            PRCandidate(
                PRType.DISTANCE, max_values.distance, {"distance": max_values.distance}
            ),
            PRCandidate(PRType.TIME, max_values.time, {"time": max_values.time}),
        ]
    lifted = {"weight": max_values.weight, "reps": max_values.reps}
    return [
        PRCandidate(PRType.WEIGHT, max_values.weight, dict(lifted)),
        PRCandidate(PRType.REPS, max_values.reps, dict(lifted)),
        PRCandidate(PRType.VOLUME, max_values.volume, dict(lifted)),
    ]


def best_historical_values(records: Iterable[Mapping]) -> dict[PRType, float]:
    """Reduce stored records of one exercise to the best value per type."""

    best: dict[PRType, float] = {}
    for record in records:
        pr_type = PRType(record["type"])
        value = record["value"]
        if pr_type not in best or value > best[pr_type]:
            best[pr_type] = value
    return best


def is_record_beaten(
    value: float, historical: Mapping[PRType, float], pr_type: PRType
) -> bool:
    """Return ``True`` if ``value`` is a new record for ``pr_type``.

    A metric with no historical record is always beaten.
    """

    if pr_type not in historical:
        return True
    return value > historical[pr_type]


def beaten_candidates(
    candidates: Iterable[PRCandidate], historical: Mapping[PRType, float]
) -> list[PRCandidate]:
    """Return the candidates that set a new record, skipping empty values."""

    return [
        c
        for c in candidates
        if c.value > 0 and is_record_beaten(c.value, historical, c.pr_type)
    ]
