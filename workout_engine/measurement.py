"""Weight unit conversion and input parsing.

All personal record comparisons happen in kilograms so values recorded under
different unit preferences stay comparable.  Set fields entered by the user
may arrive as numbers or raw strings; the ``parse_*`` helpers normalise them
to numbers and treat anything unusable as ``0``.
"""

from __future__ import annotations

import math

CANONICAL_UNIT = "kg"
WEIGHT_UNITS = ("kg", "lbs")

KG_TO_LBS = 2.20462
LBS_TO_KG = 1 / KG_TO_LBS


def _check_unit(unit: str) -> None:
    if unit not in WEIGHT_UNITS:
        raise ValueError(f"Unknown weight unit '{unit}'")


def convert_weight(value: float, from_unit: str, to_unit: str) -> float:
    """Return ``value`` converted from ``from_unit`` to ``to_unit``.

    Negative or non-finite weights yield ``0`` instead of raising.
    """

    _check_unit(from_unit)
    _check_unit(to_unit)
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    if from_unit == to_unit:
        return float(value)
    if from_unit == "kg":
        return value * KG_TO_LBS
    return value * LBS_TO_KG


def to_canonical(value: float, unit: str) -> float:
    """Convert ``value`` in ``unit`` to kilograms."""

    return convert_weight(value, unit, CANONICAL_UNIT)


def from_canonical(value: float, unit: str) -> float:
    """Convert a kilogram ``value`` to ``unit`` rounded for display."""

    return round(convert_weight(value, CANONICAL_UNIT, unit), 2)


def parse_weight(raw) -> float:
    """Return ``raw`` as a float, ``0.0`` when it cannot be parsed."""

    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_int_value(raw) -> int:
    """Return ``raw`` as an int for reps, seconds and metres."""

    if raw is None or raw == "":
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        pass
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0
    return int(value) if math.isfinite(value) else 0


def parse_and_convert_weight(raw, unit: str) -> float:
    """Parse a user-entered weight and convert it to kilograms."""

    return to_canonical(parse_weight(raw), unit)


def format_weight(value: float, unit: str, decimal_places: int = 1) -> str:
    """Return ``value`` formatted with ``unit`` and without trailing zeros."""

    if value is None or not math.isfinite(value):
        return f"0 {unit}"
    if float(value).is_integer():
        text = str(int(value))
    else:
        text = f"{value:.{decimal_places}f}".rstrip("0").rstrip(".")
    return f"{text} {unit}"
