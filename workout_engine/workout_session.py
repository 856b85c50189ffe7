"""The workout being performed right now.

Ties the engine together for one session.  The session is written to two
recovery files after every change and to history when it finishes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path

from . import (
    DEFAULT_DB_PATH,
    DEFAULT_NEXT_EXERCISE_REST,
    DEFAULT_REST_DURATION,
    DEFAULT_SETS_PER_EXERCISE,
    QUICK_WORKOUT_ID,
    QUICK_WORKOUT_NAME,
    RECOVERY_MAX_AGE,
    settings,
)
from .dirty_state import DirtyStateTracker, SessionSnapshot
from .exercises import get_exercise_definitions
from .history import add_finished_workout
from .measurement import from_canonical, parse_int_value, parse_weight, to_canonical
from .models import ExerciseDefinition, ExerciseEntry, ExerciseKind, PRType, SetEntry
from .notifications import NotificationTracker
from .personal_records import load_best_records
from .pr_ledger import SessionPRLedger
from .rest_timer import SET_TIMER, TimerCoordinator, TimerState
from .set_completion import SetCompletionController, ToggleResult
from .templates import create_template, load_template, save_template
from .workout_clock import WorkoutClock

SET_FIELDS = ("reps", "weight", "time", "distance")


class WorkoutPersistenceError(RuntimeError):
    """A store write failed.  The session is untouched and can retry."""


def recovery_paths(base: Path) -> tuple[Path, Path]:
    """Return the two redundant recovery files for ``base``."""

    base = Path(base)
    return (
        base.with_name(base.name + "_1.json"),
        base.with_name(base.name + "_2.json"),
    )


class ActiveWorkoutSession:
    """The workout the user is performing right now.

    Loads a template (or starts an empty quick workout), then applies user
    intents: checking sets, editing values and reshaping the exercise list.
    Weights are held in the user's unit while the session runs and stored
    in kilograms.  When ``recovery_base`` is given the whole state is
    written to two JSON files after every change so a crashed app can
    resume the workout.
    """

    def __init__(
        self,
        workout_id: str = QUICK_WORKOUT_ID,
        db_path: Path = DEFAULT_DB_PATH,
        *,
        unit: str | None = None,
        default_rest: int | None = None,
        default_next_exercise_rest: int | None = None,
        scheduler=None,
        clock=None,
        time_source=None,
        recovery_base: Path | None = None,
        on_tick=None,
        on_complete=None,
        on_advance=None,
    ):
        """Load ``workout_id`` from ``db_path`` and prepare the session."""

        self.db_path = Path(db_path)
        self.unit = unit or settings.get_value("weight_unit")
        self.default_rest = (
            default_rest
            if default_rest is not None
            else settings.get_value("default_rest", DEFAULT_REST_DURATION)
        )
        self.default_next_exercise_rest = (
            default_next_exercise_rest
            if default_next_exercise_rest is not None
            else settings.get_value(
                "default_next_exercise_rest", DEFAULT_NEXT_EXERCISE_REST
            )
        )
        self.recovery_base = Path(recovery_base) if recovery_base else None
        self._time_source = time_source
        self.definitions = get_exercise_definitions(self.db_path)

        if workout_id == QUICK_WORKOUT_ID:
            self.workout_id = QUICK_WORKOUT_ID
            self.name = QUICK_WORKOUT_NAME
            self.exercises: list[ExerciseEntry] = []
        else:
            template = load_template(workout_id, self.db_path)
            self.workout_id = template["id"]
            self.name = template["title"]
            self.exercises = [
                self._entry_from_template(item) for item in template["exercises"]
            ]

        self.historical = load_best_records(self.db_path)
        self.current_exercise = 0
        self.finished = False
        self.workout_clock = WorkoutClock(time_source)
        self._build_engine(scheduler, clock, on_tick, on_complete, on_advance)
        self.dirty.capture(self.name, self.exercises)
        self.save_recovery_state()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_engine(self, scheduler, clock, on_tick, on_complete, on_advance) -> None:
        self._listener_complete = on_complete
        self._listener_advance = on_advance
        self.tracker = NotificationTracker(scheduler)
        self.timer = TimerCoordinator(
            self.tracker,
            clock=clock,
            time_source=self._time_source,
            on_tick=on_tick,
            on_complete=self._timer_completed,
            on_advance=self._advance_to,
        )
        self.ledger = SessionPRLedger()
        self.controller = SetCompletionController(
            self.exercises, self.ledger, self.timer, self.historical, self.unit
        )
        self.dirty = DirtyStateTracker(time_source=self._time_source)

    def _now(self) -> float:
        return self._time_source() if self._time_source else time.time()

    def _definition(self, exercise_id: str) -> ExerciseDefinition:
        definition = self.definitions.get(exercise_id)
        if definition is None:
            logging.warning("Exercise '%s' not found, using placeholder", exercise_id)
            definition = ExerciseDefinition.placeholder(exercise_id)
        return definition

    def _weight_from_store(self, value):
        return None if value is None else from_canonical(value, self.unit)

    def _weight_to_store(self, value):
        if value is None or value == "":
            return None
        return to_canonical(parse_weight(value), self.unit)

    def _entry_from_template(self, item: dict) -> ExerciseEntry:
        definition = self._definition(item["exercise_id"])
        reps = str(item.get("reps") or "")
        sets = [
            SetEntry(
                reps=s.get("reps"),
                weight=self._weight_from_store(s.get("weight")),
                time=s.get("time"),
                distance=s.get("distance"),
            )
            for s in item.get("sets") or []
        ]
        if not sets:
            default_reps = parse_int_value(reps) or None
            sets = [SetEntry(reps=default_reps) for _ in range(DEFAULT_SETS_PER_EXERCISE)]
        rest = item.get("rest")
        next_rest = item.get("next_exercise_rest")
        return ExerciseEntry(
            entry_id=item.get("entry_id") or uuid.uuid4().hex,
            exercise_id=definition.id,
            name=definition.name,
            kind=definition.kind,
            sets=sets,
            reps=reps,
            rest_seconds=self.default_rest if rest is None else rest,
            next_exercise_rest_seconds=(
                self.default_next_exercise_rest if next_rest is None else next_rest
            ),
            notes=item.get("notes") or "",
        )

    def _template_exercise(self, exercise: ExerciseEntry) -> dict:
        return {
            "entry_id": exercise.entry_id,
            "exercise_id": exercise.exercise_id,
            "reps": exercise.reps,
            "rest": exercise.rest_seconds,
            "next_exercise_rest": exercise.next_exercise_rest_seconds,
            "notes": exercise.notes,
            "sets": [
                {
                    "reps": s.reps,
                    "weight": self._weight_to_store(s.weight),
                    "time": s.time,
                    "distance": s.distance,
                }
                for s in exercise.sets
            ],
        }

    def _blank_set(self, kind: ExerciseKind) -> SetEntry:
        """A set with only the fields ``kind`` measures left empty."""

        return SetEntry(
            reps=None if kind is ExerciseKind.REPS else 0,
            weight=None,
            time=None if kind is ExerciseKind.TIME else 0,
            distance=None if kind is ExerciseKind.DISTANCE else 0,
        )

    def _timer_completed(self, state: TimerState) -> None:
        self.save_recovery_state()
        if self._listener_complete:
            self._listener_complete(state)

    def _advance_to(self, exercise_index: int) -> None:
        self.current_exercise = exercise_index
        if self._listener_advance:
            self._listener_advance(exercise_index)

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def toggle_set(self, exercise_index: int, set_index: int) -> ToggleResult:
        """Check or uncheck a set.  See :class:`SetCompletionController`."""

        result = self.controller.toggle_set(exercise_index, set_index)
        if result.ok:
            self.save_recovery_state()
        return result

    def update_set_field(self, exercise_index: int, set_index: int, field: str, value) -> bool:
        """Store a user edit of one set value.

        Clearing a non-zero weight or reps is ignored, matching inputs that
        momentarily read empty while being retyped.  Returns ``True`` if the
        value changed.
        """

        if field not in SET_FIELDS:
            raise ValueError(f"Unknown set field '{field}'")
        entry = self.controller.set_entry(exercise_index, set_index)
        old = getattr(entry, field)
        if value is None or value == "":
            if field in ("weight", "reps") and old not in (None, "", 0, "0"):
                return False
            new = None
        elif field == "weight":
            new = parse_weight(value)
        else:
            new = parse_int_value(value)
        if new == old:
            return False
        setattr(entry, field, new)
        if entry.completed:
            self.controller.reconcile_exercise(exercise_index)
        self.save_recovery_state()
        return True

    def add_set(self, exercise_index: int, completed: bool = False) -> int:
        """Append a set copying the last one and return its index.

        With ``completed`` the new set is checked through :meth:`toggle_set`,
        so it is validated and counted for records like any other set.
        """

        exercise = self.controller.exercise(exercise_index)
        if exercise.sets:
            new_set = exercise.sets[-1].copy(completed=False)
        else:
            new_set = self._blank_set(exercise.kind)
        exercise.sets.append(new_set)
        index = len(exercise.sets) - 1
        if completed:
            self.toggle_set(exercise_index, index)
        self.save_recovery_state()
        return index

    def remove_set(self, exercise_index: int, set_index: int) -> bool:
        removed = self.controller.remove_set(exercise_index, set_index)
        if removed:
            self.save_recovery_state()
        return removed

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    def add_exercise(self, exercise_id: str, sets: int = DEFAULT_SETS_PER_EXERCISE) -> int:
        """Append ``exercise_id`` with ``sets`` empty sets and return its index."""

        definition = self._definition(exercise_id)
        entry = ExerciseEntry(
            entry_id=uuid.uuid4().hex,
            exercise_id=definition.id,
            name=definition.name,
            kind=definition.kind,
            sets=[self._blank_set(definition.kind) for _ in range(max(1, sets))],
            rest_seconds=self.default_rest,
            next_exercise_rest_seconds=self.default_next_exercise_rest,
        )
        self.exercises.append(entry)
        self.save_recovery_state()
        return len(self.exercises) - 1

    def _drop_ledger_for(self, exercise_id: str) -> None:
        self.controller.cancel_pending(exercise_id)
        for index, other in enumerate(self.exercises):
            if other.exercise_id == exercise_id:
                self.controller.reconcile_exercise(index)
                return
        self.ledger.clear_exercise(exercise_id)

    def remove_exercise(self, exercise_index: int) -> None:
        exercise = self.controller.exercise(exercise_index)

        def mapping(index):
            if index == exercise_index:
                return None
            return index - 1 if index > exercise_index else index

        self.timer.remap_indexes(mapping)
        del self.exercises[exercise_index]
        self._drop_ledger_for(exercise.exercise_id)
        if self.current_exercise > exercise_index:
            self.current_exercise -= 1
        if self.current_exercise >= len(self.exercises):
            self.current_exercise = max(0, len(self.exercises) - 1)
        self.save_recovery_state()

    def replace_exercise(self, exercise_index: int, exercise_id: str) -> ExerciseEntry:
        """Swap the exercise at ``exercise_index`` for ``exercise_id``.

        The slot keeps its id and rest settings but starts over with a single
        set shaped for the new exercise's kind.
        """

        old = self.controller.exercise(exercise_index)
        if self.timer.state.active and self.timer.state.triggering_exercise_index == exercise_index:
            self.timer.cancel_active_timer()
        definition = self._definition(exercise_id)
        entry = ExerciseEntry(
            entry_id=old.entry_id,
            exercise_id=definition.id,
            name=definition.name,
            kind=definition.kind,
            sets=[self._blank_set(definition.kind)],
            reps="",
            rest_seconds=old.rest_seconds,
            next_exercise_rest_seconds=old.next_exercise_rest_seconds,
            notes="",
        )
        self.exercises[exercise_index] = entry
        self._drop_ledger_for(old.exercise_id)
        self.save_recovery_state()
        return entry

    def move_exercise(self, from_index: int, to_index: int) -> None:
        self.controller.exercise(from_index)
        self.controller.exercise(to_index)
        order = list(range(len(self.exercises)))
        order.insert(to_index, order.pop(from_index))
        new_positions = {old: new for new, old in enumerate(order)}

        self.exercises.insert(to_index, self.exercises.pop(from_index))
        self.timer.remap_indexes(new_positions.get)
        self.current_exercise = new_positions.get(self.current_exercise, 0)
        self.save_recovery_state()

    def update_rest(self, exercise_index: int, seconds: int) -> None:
        self.controller.exercise(exercise_index).rest_seconds = max(0, int(seconds))
        self.save_recovery_state()

    def update_next_exercise_rest(self, exercise_index: int, seconds: int) -> None:
        self.controller.exercise(exercise_index).next_exercise_rest_seconds = max(
            0, int(seconds)
        )
        self.save_recovery_state()

    def update_notes(self, exercise_index: int, text: str) -> None:
        self.controller.exercise(exercise_index).notes = text or ""
        self.save_recovery_state()

    def rename(self, name: str) -> None:
        self.name = name
        self.save_recovery_state()

    # ------------------------------------------------------------------
    # Timer and clock
    # ------------------------------------------------------------------

    def start_rest_timer(self, seconds: int) -> TimerState:
        """Start a manual rest countdown not tied to any set."""

        name = ""
        if 0 <= self.current_exercise < len(self.exercises):
            name = self.exercises[self.current_exercise].name
        state = self.timer.start_timer(SET_TIMER, seconds, exercise_name=name)
        self.save_recovery_state()
        return state

    def cancel_rest_timer(self) -> None:
        self.timer.cancel_active_timer()
        self.save_recovery_state()

    def adjust_rest_timer(self, seconds: int) -> TimerState:
        state = self.timer.adjust(seconds)
        self.save_recovery_state()
        return state

    def on_app_pause(self, *args) -> bool:
        self.save_recovery_state()
        return self.timer.on_app_pause()

    def on_app_resume(self, *args) -> TimerState:
        return self.timer.on_app_resume()

    def bind_app(self, app) -> None:
        """Follow the pause/resume events of a Kivy ``App``."""

        app.bind(on_pause=self.on_app_pause, on_resume=self.on_app_resume)

    def toggle_pause(self) -> bool:
        paused = self.workout_clock.toggle_pause()
        self.save_recovery_state()
        return paused

    def elapsed(self) -> int:
        return self.workout_clock.elapsed()

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def has_unsaved_changes(self) -> bool:
        return self.dirty.is_dirty(self.name, self.exercises)

    def save(self) -> str:
        """Write the session back to its template and return the template id.

        A quick workout is saved as a new template.
        """

        exercises = [self._template_exercise(ex) for ex in self.exercises]
        try:
            if self.workout_id == QUICK_WORKOUT_ID:
                workout_id = create_template(self.name, exercises, self.db_path)
            else:
                save_template(self.workout_id, self.name, exercises, self.db_path)
                workout_id = self.workout_id
        except sqlite3.Error as exc:
            logging.exception("Failed to save workout '%s'", self.name)
            raise WorkoutPersistenceError(
                "Could not save the workout. Please try again."
            ) from exc
        self.workout_id = workout_id
        self.dirty.mark_saved(self.name, self.exercises)
        self.save_recovery_state()
        return workout_id

    def history_record(self, date: float, duration: int, custom_name: str | None = None) -> dict:
        """Return the history entry for the completed sets of the session."""

        exercises = []
        for exercise in self.exercises:
            completed = exercise.completed_sets()
            if not completed:
                continue
            exercises.append(
                {
                    "exercise_id": exercise.exercise_id,
                    "exercise_name": exercise.name,
                    "sets": [
                        {
                            "reps": s.reps,
                            "weight": self._weight_to_store(s.weight),
                            "time": s.time,
                            "distance": s.distance,
                            "rest": exercise.rest_seconds,
                        }
                        for s in completed
                    ],
                }
            )
        return {
            "workout_id": self.workout_id,
            "workout_name": self.name,
            "custom_name": custom_name,
            "date": date,
            "duration": duration,
            "exercises": exercises,
        }

    def finish_workout(self, duration: int | None = None, custom_name: str | None = None) -> dict | None:
        """Store the workout in history along with its new personal records.

        Returns ``None`` for an empty template workout.  Raises
        :class:`WorkoutPersistenceError` when the history entry or any of its
        records cannot be written.  Nothing is stored in that case, leaving the session intact so the user can retry.
        """

        self.controller.flush_pending()
        if not self.exercises and self.workout_id != QUICK_WORKOUT_ID:
            return None

        date = self._now()
        if duration is None:
            duration = self.workout_clock.elapsed()
        record = self.history_record(date, int(duration), custom_name)
        records = self.ledger.achieved_records()
        try:
            history_id = add_finished_workout(record, records, self.db_path)
        except sqlite3.Error as exc:
            logging.exception("Failed to save workout history for '%s'", self.name)
            raise WorkoutPersistenceError(
                "Could not save your workout. Please try again."
            ) from exc

        pr_count = len(records)
        if pr_count:
            suffix = "" if pr_count == 1 else "s"
            message = f"Workout completed with {pr_count} new PR{suffix}!"
        else:
            message = "Workout completed!"

        self.ledger.clear()
        self.timer.cancel_active_timer()
        self.tracker.dismiss_all()
        self.clear_recovery_state(self.recovery_base)
        self.finished = True
        logging.info("Workout '%s' saved as history %s", self.name, history_id)
        return {
            "id": history_id,
            "workout_id": self.workout_id,
            "pr_count": pr_count,
            "message": message,
        }

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def view(self) -> dict:
        """Everything the active workout screen renders."""

        exercises = []
        for index, exercise in enumerate(self.exercises):
            data = exercise.to_dict()
            data["index"] = index
            data["all_sets_completed"] = exercise.all_sets_completed()
            exercises.append(data)
        return {
            "name": self.name,
            "exercises": exercises,
            "timer": self.timer.state.to_dict(),
            "session_achieved_prs": self.ledger.summary(),
            "has_unsaved_changes": self.has_unsaved_changes(),
            "elapsed": self.workout_clock.elapsed(),
            "is_paused": self.workout_clock.is_paused,
            "unit": self.unit,
        }

    # --------------------------------------------------------------
    # Persistence helpers
    # --------------------------------------------------------------

    def to_dict(self) -> dict:
        """Return a JSON-serialisable representation of the session."""

        snapshot = self.dirty.snapshot
        return {
            "saved_at": self._now(),
            "workout_id": self.workout_id,
            "name": self.name,
            "db_path": str(self.db_path),
            "unit": self.unit,
            "default_rest": self.default_rest,
            "default_next_exercise_rest": self.default_next_exercise_rest,
            "current_exercise": self.current_exercise,
            "exercises": [ex.to_dict() for ex in self.exercises],
            "snapshot": {
                "name": snapshot.name,
                "exercises": list(snapshot.exercises),
            }
            if snapshot
            else None,
            "historical": {
                ex_id: {t.value: v for t, v in values.items()}
                for ex_id, values in self.historical.items()
            },
            "ledger": self.ledger.to_dict(),
            "timer": self.timer.state.to_dict(),
            "clock": self.workout_clock.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: dict,
        *,
        scheduler=None,
        clock=None,
        time_source=None,
        recovery_base: Path | None = None,
        on_tick=None,
        on_complete=None,
        on_advance=None,
    ) -> "ActiveWorkoutSession":
        """Reconstruct a session from :meth:`to_dict` output."""

        obj = cls.__new__(cls)
        obj.db_path = Path(data["db_path"])
        obj.workout_id = data["workout_id"]
        obj.name = data["name"]
        obj.unit = data.get("unit", "kg")
        obj.default_rest = data.get("default_rest", DEFAULT_REST_DURATION)
        obj.default_next_exercise_rest = data.get(
            "default_next_exercise_rest", DEFAULT_NEXT_EXERCISE_REST
        )
        obj.recovery_base = Path(recovery_base) if recovery_base else None
        obj._time_source = time_source
        try:
            obj.definitions = get_exercise_definitions(obj.db_path)
        except sqlite3.Error:
            logging.warning("Exercise catalog unavailable at %s", obj.db_path)
            obj.definitions = {}
        obj.current_exercise = data.get("current_exercise", 0)
        obj.finished = False
        obj.exercises = [ExerciseEntry.from_dict(ex) for ex in data.get("exercises", [])]
        obj.historical = {
            ex_id: {PRType(t): v for t, v in values.items()}
            for ex_id, values in data.get("historical", {}).items()
        }
        obj.workout_clock = WorkoutClock.from_dict(data["clock"], time_source)
        obj._build_engine(scheduler, clock, on_tick, on_complete, on_advance)
        obj.ledger = SessionPRLedger.from_dict(data.get("ledger", {}))
        obj.controller.ledger = obj.ledger

        snapshot = data.get("snapshot")
        if snapshot:
            obj.dirty.snapshot = SessionSnapshot(
                snapshot["name"], tuple(snapshot["exercises"])
            )
        else:
            obj.dirty.capture(obj.name, obj.exercises)
        obj.timer.restore(TimerState.from_dict(data.get("timer")))
        return obj

    def save_recovery_state(self) -> None:
        """Persist the current session state to both recovery files."""

        if self.recovery_base is None or self.finished:
            return
        payload = json.dumps(self.to_dict())
        try:
            self.recovery_base.parent.mkdir(parents=True, exist_ok=True)
            for path in recovery_paths(self.recovery_base):
                path.write_text(payload)
        except OSError:
            logging.warning("Failed to write recovery files for %s", self.recovery_base)

    @staticmethod
    def clear_recovery_state(base: Path | None) -> None:
        """Remove any existing recovery files for ``base``."""

        if base is None:
            return
        for path in recovery_paths(base):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    @staticmethod
    def load_recovery_state(
        base: Path, max_age: float = RECOVERY_MAX_AGE, now: float | None = None
    ) -> dict | None:
        """Return the saved state from the first readable recovery file.

        States older than ``max_age`` seconds are ignored.
        """

        now = time.time() if now is None else now
        for path in recovery_paths(base):
            if not path.exists():
                continue
            try:
                text = path.read_text().strip()
                if not text:
                    continue
                data = json.loads(text)
            except (OSError, ValueError):
                logging.warning("Unreadable recovery file %s", path)
                continue
            if now - data.get("saved_at", 0) > max_age:
                logging.info("Ignoring recovery state older than %s seconds", max_age)
                return None
            return data
        return None

    @classmethod
    def load_from_recovery(cls, base: Path, **kwargs) -> "ActiveWorkoutSession | None":
        """Return the recovered session for ``base`` if one is available."""

        time_source = kwargs.get("time_source")
        data = cls.load_recovery_state(base, now=time_source() if time_source else None)
        if data is None:
            return None
        try:
            return cls.from_dict(data, recovery_base=base, **kwargs)
        except (KeyError, TypeError, ValueError):
            logging.warning("Recovery state for %s is incomplete", base)
            return None
