"""Shared constants and defaults for the workout session engine."""

from __future__ import annotations

from pathlib import Path

# Default values used throughout the engine
DEFAULT_SETS_PER_EXERCISE = 3
DEFAULT_REST_DURATION = 60
DEFAULT_NEXT_EXERCISE_REST = 120

# Rest shown after the final set of the whole workout when the exercise has
# no rest configured
COMPLETION_REST_FALLBACK = 60

# Seconds between rest timer ticks
TIMER_TICK_INTERVAL = 1.0

# Seconds after a template save during which dirty checks report clean
SAVE_GRACE_PERIOD = 0.1

# Delay used to coalesce PR reconciliation after a completed set is removed
SET_REMOVAL_RECONCILE_DELAY = 0.1

# Recovery files older than this many seconds are ignored
RECOVERY_MAX_AGE = 24 * 60 * 60

# Identifier used for ad-hoc workouts that have no stored template
QUICK_WORKOUT_ID = "quick"
QUICK_WORKOUT_NAME = "Quick Workout"

# Path to the SQLite database used by the stores
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "data" / "workout.db"

__all__ = [
    "DEFAULT_SETS_PER_EXERCISE",
    "DEFAULT_REST_DURATION",
    "DEFAULT_NEXT_EXERCISE_REST",
    "COMPLETION_REST_FALLBACK",
    "TIMER_TICK_INTERVAL",
    "SAVE_GRACE_PERIOD",
    "SET_REMOVAL_RECONCILE_DELAY",
    "RECOVERY_MAX_AGE",
    "QUICK_WORKOUT_ID",
    "QUICK_WORKOUT_NAME",
    "DEFAULT_DB_PATH",
]
