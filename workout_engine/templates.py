"""Workout templates: the ordered exercises a session starts from.

Weights are stored in kilograms.
"""

from __future__ import annotations

import sqlite3
import time
import uuid
from pathlib import Path
from typing import Iterable

from . import DEFAULT_DB_PATH


def list_templates(db_path: Path = DEFAULT_DB_PATH) -> list[dict]:
    """Return ``{"id", "title"}`` for every saved template, newest first."""

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT id, title FROM workouts WHERE deleted = 0 ORDER BY created DESC, title"
        )
        return [{"id": wid, "title": title} for wid, title in cursor.fetchall()]


def load_template(workout_id: str, db_path: Path = DEFAULT_DB_PATH) -> dict:
    """Return the template ``workout_id`` with its exercises and sets.

    Raises ``ValueError`` if it does not exist.
    """

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT id, title FROM workouts WHERE id = ? AND deleted = 0",
            (workout_id,),
        )
        row = cursor.fetchone()
        if not row:
            raise ValueError(f"Workout '{workout_id}' not found")
        template = {"id": row[0], "title": row[1], "exercises": []}

        cursor.execute(
            """
            SELECT id, exercise_id, reps, rest, next_exercise_rest, notes
              FROM workout_exercises
             WHERE workout_id = ? AND deleted = 0
             ORDER BY position
            """,
            (workout_id,),
        )
        for entry_id, exercise_id, reps, rest, next_rest, notes in cursor.fetchall():
            cursor.execute(
                """
                SELECT reps, weight, time, distance
                  FROM workout_sets
                 WHERE workout_exercise_id = ?
                 ORDER BY position
                """,
                (entry_id,),
            )
            sets = [
                {"reps": r, "weight": w, "time": t, "distance": d}
                for r, w, t, d in cursor.fetchall()
            ]
            template["exercises"].append(
                {
                    "entry_id": entry_id,
                    "exercise_id": exercise_id,
                    "reps": reps or "",
                    "rest": rest,
                    "next_exercise_rest": next_rest,
                    "notes": notes or "",
                    "sets": sets,
                }
            )
    return template


def _write_exercises(cursor, workout_id: str, exercises: Iterable[dict]) -> None:
    cursor.execute(
        "SELECT id FROM workout_exercises WHERE workout_id = ?", (workout_id,)
    )
    old_ids = [r[0] for r in cursor.fetchall()]
    for entry_id in old_ids:
        cursor.execute(
            "DELETE FROM workout_sets WHERE workout_exercise_id = ?", (entry_id,)
        )
    cursor.execute("DELETE FROM workout_exercises WHERE workout_id = ?", (workout_id,))

    for position, ex in enumerate(exercises):
        entry_id = ex.get("entry_id") or uuid.uuid4().hex
        cursor.execute(
            """
            INSERT INTO workout_exercises
                (id, workout_id, exercise_id, position, reps, rest, next_exercise_rest, notes)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry_id,
                workout_id,
                ex["exercise_id"],
                position,
                ex.get("reps", ""),
                ex.get("rest"),
                ex.get("next_exercise_rest"),
                ex.get("notes", ""),
            ),
        )
        for set_pos, s in enumerate(ex.get("sets", [])):
            cursor.execute(
                """
                INSERT INTO workout_sets
                    (workout_exercise_id, position, reps, weight, time, distance)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry_id,
                    set_pos,
                    s.get("reps"),
                    s.get("weight"),
                    s.get("time"),
                    s.get("distance"),
                ),
            )


def create_template(
    title: str,
    exercises: Iterable[dict] = (),
    db_path: Path = DEFAULT_DB_PATH,
    workout_id: str | None = None,
) -> str:
    """Insert a new template and return its id."""

    workout_id = workout_id or uuid.uuid4().hex
    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO workouts (id, title, created) VALUES (?, ?, ?)",
            (workout_id, title, time.time()),
        )
        _write_exercises(cursor, workout_id, exercises)
    return workout_id


def save_template(
    workout_id: str,
    title: str,
    exercises: Iterable[dict],
    db_path: Path = DEFAULT_DB_PATH,
) -> None:
    """Replace the title, exercises and sets of ``workout_id``.

    The template is created if it does not exist yet.
    """

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT 1 FROM workouts WHERE id = ?", (workout_id,))
        if cursor.fetchone():
            cursor.execute(
                "UPDATE workouts SET title = ?, deleted = 0 WHERE id = ?",
                (title, workout_id),
            )
        else:
            cursor.execute(
                "INSERT INTO workouts (id, title, created) VALUES (?, ?, ?)",
                (workout_id, title, time.time()),
            )
        _write_exercises(cursor, workout_id, exercises)


def delete_template(workout_id: str, db_path: Path = DEFAULT_DB_PATH) -> None:
    with sqlite3.connect(str(db_path)) as conn:
        conn.execute("UPDATE workouts SET deleted = 1 WHERE id = ?", (workout_id,))
