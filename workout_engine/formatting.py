"""Display helpers for durations and personal records."""

from __future__ import annotations

from typing import Iterable

from .measurement import format_weight, from_canonical
from .models import PRType

PR_LABELS = {
    PRType.WEIGHT: "Weight",
    PRType.REPS: "Reps",
    PRType.VOLUME: "Volume",
    PRType.TIME: "Time",
    PRType.DISTANCE: "Distance",
}


def format_duration(seconds) -> str:
    """Return ``seconds`` as ``M:SS`` or ``H:MM:SS`` for long periods."""

    seconds = max(0, int(seconds or 0))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_clock(seconds) -> str:
    """Return the workout clock text, always zero padded."""

    seconds = max(0, int(seconds or 0))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def pr_label(pr_type: PRType | str) -> str:
    return PR_LABELS[PRType(pr_type)]


def format_pr_value(pr_type: PRType | str, value: float, unit: str = "kg") -> str:
    """Format a record ``value`` (weights in kilograms) for ``unit``."""

    pr_type = PRType(pr_type)
    if pr_type in (PRType.WEIGHT, PRType.VOLUME):
        return format_weight(from_canonical(value, unit), unit)
    if pr_type is PRType.TIME:
        return format_duration(value)
    if pr_type is PRType.DISTANCE:
        return f"{value / 1000:.2f} km"
    return str(int(value))


def pr_toast_message(prs: Iterable, unit: str = "kg") -> str:
    """Return one message announcing every record in ``prs``.

    ``prs`` holds objects with ``pr_type`` and ``value`` attributes.
    """

    return " | ".join(
        f"{pr_label(pr.pr_type)}: {format_pr_value(pr.pr_type, pr.value, unit)}"
        for pr in prs
    )
