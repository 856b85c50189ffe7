"""Long-term personal record store.

Each row is one record achievement.  The current record for an exercise and
type is the highest stored value.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from . import DEFAULT_DB_PATH
from .models import PRType
from .pr_comparison import best_historical_values


def get_records(exercise_id: str, db_path: Path = DEFAULT_DB_PATH) -> list[dict]:
    """Return every stored record of ``exercise_id``, best first."""

    with sqlite3.connect(str(db_path)) as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT id, exercise_id, type, value, date, workout_history_id,
                   weight, reps, time, distance
              FROM personal_records
             WHERE exercise_id = ? AND deleted = 0
             ORDER BY type, value DESC
            """,
            (exercise_id,),
        )
        return [dict(row) for row in cursor.fetchall()]


def load_best_records(db_path: Path = DEFAULT_DB_PATH) -> dict[str, dict[PRType, float]]:
    """Return ``{exercise_id: {PRType: best value}}`` for all exercises."""

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT exercise_id, type, MAX(value)
              FROM personal_records
             WHERE deleted = 0
             GROUP BY exercise_id, type
            """
        )
        rows = cursor.fetchall()

    grouped: dict[str, list[dict]] = {}
    for exercise_id, pr_type, value in rows:
        grouped.setdefault(exercise_id, []).append({"type": pr_type, "value": value})
    return {ex_id: best_historical_values(records) for ex_id, records in grouped.items()}


def insert_personal_record(
    cursor: sqlite3.Cursor,
    exercise_id: str,
    pr_type: PRType | str,
    value: float,
    date: float,
    history_id: int | None = None,
    weight: float | None = None,
    reps: int | None = None,
    time: int | None = None,
    distance: int | None = None,
) -> int:
    """Insert a record row through ``cursor`` without committing."""

    cursor.execute(
        """
        INSERT INTO personal_records
            (exercise_id, type, value, date, workout_history_id, weight, reps, time, distance)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            exercise_id,
            PRType(pr_type).value,
            value,
            date,
            history_id,
            weight,
            reps,
            time,
            distance,
        ),
    )
    return cursor.lastrowid


def add_personal_record(
    exercise_id: str,
    pr_type: PRType | str,
    value: float,
    date: float,
    history_id: int | None = None,
    weight: float | None = None,
    reps: int | None = None,
    time: int | None = None,
    distance: int | None = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> int:
    """Store a record achievement and return its id."""

    with sqlite3.connect(str(db_path)) as conn:
        return insert_personal_record(
            conn.cursor(),
            exercise_id,
            pr_type,
            value,
            date,
            history_id,
            weight,
            reps,
            time,
            distance,
        )
