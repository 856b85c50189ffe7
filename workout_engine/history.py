"""Append-only history of finished workouts."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable

from . import DEFAULT_DB_PATH
from .personal_records import insert_personal_record


def _insert_history(cursor: sqlite3.Cursor, record: dict) -> int:
    cursor.execute(
        """
        INSERT INTO workout_history (workout_id, workout_name, custom_name, date, duration)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            record.get("workout_id"),
            record.get("workout_name"),
            record.get("custom_name"),
            record["date"],
            record.get("duration"),
        ),
    )
    history_id = cursor.lastrowid

    for position, ex in enumerate(record.get("exercises", [])):
        cursor.execute(
            """
            INSERT INTO history_exercises (history_id, exercise_id, exercise_name, position)
            VALUES (?, ?, ?, ?)
            """,
            (history_id, ex["exercise_id"], ex.get("exercise_name"), position),
        )
        history_ex_id = cursor.lastrowid
        for number, s in enumerate(ex.get("sets", []), 1):
            cursor.execute(
                """
                INSERT INTO history_sets
                    (history_exercise_id, set_number, reps, weight, time, distance, rest)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    history_ex_id,
                    number,
                    s.get("reps"),
                    s.get("weight"),
                    s.get("time"),
                    s.get("distance"),
                    s.get("rest"),
                ),
            )
    return history_id


def add_history_entry(record: dict, db_path: Path = DEFAULT_DB_PATH) -> int:
    """Store a finished workout and return the new history id.

    ``record`` contains ``workout_id``, ``workout_name``, ``date``,
    ``duration``, an optional ``custom_name`` and ``exercises``.  Each
    exercise lists its completed ``sets`` with weights in kilograms.
    """

    with sqlite3.connect(str(db_path)) as conn:
        return _insert_history(conn.cursor(), record)


def add_finished_workout(
    record: dict, records: Iterable, db_path: Path = DEFAULT_DB_PATH
) -> int:
    """Store a workout and the personal records it set in one transaction.

    ``records`` holds session PRs (``exercise_id``, ``pr_type``, ``value``
    and ``fields``).  If any row fails nothing is written, so the caller
    can retry without leaving a duplicate history entry behind.
    """

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        history_id = _insert_history(cursor, record)
        for pr in records:
            insert_personal_record(
                cursor,
                pr.exercise_id,
                pr.pr_type,
                pr.value,
                record["date"],
                history_id,
                weight=pr.fields.get("weight"),
                reps=pr.fields.get("reps"),
                time=pr.fields.get("time"),
                distance=pr.fields.get("distance"),
            )
    return history_id


def get_history(limit: int | None = None, db_path: Path = DEFAULT_DB_PATH) -> list[dict]:
    """Return past workouts, most recent first."""

    with sqlite3.connect(str(db_path)) as conn:
        cursor = conn.cursor()
        query = (
            "SELECT id, workout_id, workout_name, custom_name, date, duration "
            "FROM workout_history WHERE deleted = 0 ORDER BY date DESC, id DESC"
        )
        if limit is not None:
            cursor.execute(query + " LIMIT ?", (limit,))
        else:
            cursor.execute(query)
        rows = cursor.fetchall()
    return [
        {
            "id": hid,
            "workout_id": wid,
            "workout_name": name,
            "custom_name": custom,
            "date": date,
            "duration": duration,
        }
        for hid, wid, name, custom, date, duration in rows
    ]


def get_history_entry(history_id: int, db_path: Path = DEFAULT_DB_PATH) -> dict:
    """Return one workout with its exercises and sets, or ``{}``."""

    with sqlite3.connect(str(db_path)) as conn:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, workout_id, workout_name, custom_name, date, duration
              FROM workout_history
             WHERE id = ? AND deleted = 0
            """,
            (history_id,),
        )
        row = cur.fetchone()
        if row is None:
            return {}
        hid, workout_id, name, custom, date, duration = row

        cur.execute(
            """
            SELECT id, exercise_id, exercise_name
              FROM history_exercises
             WHERE history_id = ?
             ORDER BY position
            """,
            (hid,),
        )
        exercises = []
        for ex_row_id, exercise_id, exercise_name in cur.fetchall():
            cur.execute(
                """
                SELECT reps, weight, time, distance, rest
                  FROM history_sets
                 WHERE history_exercise_id = ?
                 ORDER BY set_number
                """,
                (ex_row_id,),
            )
            sets = [
                {"reps": r, "weight": w, "time": t, "distance": d, "rest": rest}
                for r, w, t, d, rest in cur.fetchall()
            ]
            exercises.append(
                {"exercise_id": exercise_id, "exercise_name": exercise_name, "sets": sets}
            )

    return {
        "id": hid,
        "workout_id": workout_id,
        "workout_name": name,
        "custom_name": custom,
        "date": date,
        "duration": duration,
        "exercises": exercises,
    }
