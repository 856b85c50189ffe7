"""SQLite schema for templates, history and personal records."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List, Tuple

from . import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS exercises (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'reps',
    is_custom INTEGER NOT NULL DEFAULT 0,
    deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS workouts (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    created REAL,
    deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS workout_exercises (
    id TEXT PRIMARY KEY,
    workout_id TEXT NOT NULL REFERENCES workouts(id),
    exercise_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    reps TEXT,
    rest INTEGER,
    next_exercise_rest INTEGER,
    notes TEXT,
    deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS workout_sets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_exercise_id TEXT NOT NULL REFERENCES workout_exercises(id),
    position INTEGER NOT NULL,
    reps INTEGER,
    weight REAL,
    time INTEGER,
    distance INTEGER
);

CREATE TABLE IF NOT EXISTS workout_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    workout_id TEXT,
    workout_name TEXT,
    custom_name TEXT,
    date REAL NOT NULL,
    duration INTEGER,
    deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS history_exercises (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    history_id INTEGER NOT NULL REFERENCES workout_history(id),
    exercise_id TEXT NOT NULL,
    exercise_name TEXT,
    position INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS history_sets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    history_exercise_id INTEGER NOT NULL REFERENCES history_exercises(id),
    set_number INTEGER NOT NULL,
    reps INTEGER,
    weight REAL,
    time INTEGER,
    distance INTEGER,
    rest INTEGER
);

CREATE TABLE IF NOT EXISTS personal_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exercise_id TEXT NOT NULL,
    type TEXT NOT NULL,
    value REAL NOT NULL,
    date REAL NOT NULL,
    workout_history_id INTEGER,
    weight REAL,
    reps INTEGER,
    time INTEGER,
    distance INTEGER,
    deleted INTEGER NOT NULL DEFAULT 0
);
"""

# Tables every valid workout database must contain.
REQUIRED_TABLES = [
    "exercises",
    "workouts",
    "workout_exercises",
    "workout_sets",
    "workout_history",
    "personal_records",
]


def init_database(db_path: Path = DEFAULT_DB_PATH) -> Path:
    """Create ``db_path`` and any missing tables."""

    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(str(db_path)) as conn:
        conn.executescript(SCHEMA)
    return db_path


def validate_database(db_path: Path) -> Tuple[bool, List[str]]:
    """Check that ``db_path`` holds every table in :data:`REQUIRED_TABLES`.

    Returns a success flag and the list of problems found.
    """

    errors: List[str] = []
    try:
        with sqlite3.connect(str(db_path)) as conn:
            cur = conn.cursor()
            for table in REQUIRED_TABLES:
                cur.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
                    (table,),
                )
                if not cur.fetchone():
                    errors.append(f"missing table: {table}")
    except sqlite3.Error as exc:
        errors.append(str(exc))
    return (len(errors) == 0, errors)
