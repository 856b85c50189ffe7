"""Exercise catalog stored in the workout database."""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path

from . import DEFAULT_DB_PATH
from .models import ExerciseDefinition, ExerciseKind


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def get_exercise_definitions(db_path: Path = DEFAULT_DB_PATH) -> dict[str, ExerciseDefinition]:
    """Return every non-deleted exercise keyed by id."""

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT id, name, kind, is_custom FROM exercises WHERE deleted = 0 ORDER BY name"
        )
        rows = cursor.fetchall()
    return {
        ex_id: ExerciseDefinition(ex_id, name, ExerciseKind.parse(kind), bool(custom))
        for ex_id, name, kind, custom in rows
    }


def get_exercise_definition(
    exercise_id: str, db_path: Path = DEFAULT_DB_PATH
) -> ExerciseDefinition | None:
    return get_exercise_definitions(db_path).get(exercise_id)


def add_exercise_definition(
    name: str,
    kind: ExerciseKind | str = ExerciseKind.REPS,
    db_path: Path = DEFAULT_DB_PATH,
    *,
    exercise_id: str | None = None,
    is_custom: bool = True,
) -> ExerciseDefinition:
    """Insert a catalog exercise and return its definition.

    ``exercise_id`` defaults to a slug of ``name``.  Raises ``ValueError`` if
    the id is already taken.
    """

    exercise_id = exercise_id or _slug(name)
    kind = ExerciseKind.parse(kind)
    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT 1 FROM exercises WHERE id = ? AND deleted = 0", (exercise_id,))
        if cursor.fetchone():
            raise ValueError(f"Exercise '{exercise_id}' already exists")
        cursor.execute(
            "INSERT OR REPLACE INTO exercises (id, name, kind, is_custom, deleted) VALUES (?, ?, ?, ?, 0)",
            (exercise_id, name, kind.value, int(is_custom)),
        )
    return ExerciseDefinition(exercise_id, name, kind, is_custom)


def delete_exercise_definition(exercise_id: str, db_path: Path = DEFAULT_DB_PATH) -> None:
    """Soft delete ``exercise_id``.  Workouts referencing it keep working."""

    with sqlite3.connect(str(db_path)) as conn:
        conn.execute("UPDATE exercises SET deleted = 1 WHERE id = ?", (exercise_id,))
