"""Checking and unchecking sets of the active workout.

A completed set feeds the personal record pipeline and decides which rest
timer runs next.  Unchecking or removing a set walks the same path
backwards: timers started by that set are cancelled and the session records
are brought back down to what the remaining completed sets support.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from . import COMPLETION_REST_FALLBACK, SET_REMOVAL_RECONCILE_DELAY
from .formatting import pr_toast_message
from .max_values import MaxValues, calculate_max_values
from .measurement import CANONICAL_UNIT, parse_int_value
from .models import ExerciseEntry, ExerciseKind, PRType, SetEntry
from .pr_comparison import beaten_candidates, generate_pr_candidates
from .pr_ledger import SessionAchievedPR, SessionPRLedger
from .rest_timer import EXERCISE_TIMER, SET_TIMER, TimerCoordinator, TimerState

VALIDATION_MESSAGES = {
    "reps": "Please add reps to mark this set as done.",
    "time": "Please add time to mark this set as done.",
    "distance": "Please add distance to mark this set as done.",
}


def validate_set(entry: SetEntry, kind: ExerciseKind | str) -> list[str]:
    """Return the messages preventing ``entry`` from being completed."""

    kind = ExerciseKind.parse(kind)
    errors = []
    if kind is ExerciseKind.REPS:
        if parse_int_value(entry.reps) <= 0:
            errors.append(VALIDATION_MESSAGES["reps"])
    elif kind is ExerciseKind.TIME:
        if parse_int_value(entry.time) <= 0:
            errors.append(VALIDATION_MESSAGES["time"])
    else:
        if parse_int_value(entry.distance) <= 0:
            errors.append(VALIDATION_MESSAGES["distance"])
        if parse_int_value(entry.time) <= 0:
            errors.append(VALIDATION_MESSAGES["time"])
    return errors


@dataclass
class ToggleResult:
    completed: bool
    errors: list[str] = field(default_factory=list)
    new_prs: list[SessionAchievedPR] = field(default_factory=list)
    message: str = ""
    timer: TimerState | None = None

    @property
    def ok(self) -> bool:
        return not self.errors


class SetCompletionController:
    """Applies set toggles to ``exercises`` and keeps the ledger in sync.

    ``exercises`` is the session's own list and is mutated in place.
    ``historical`` maps exercise ids to their best stored value per record
    type, with weights in kilograms.
    """

    def __init__(
        self,
        exercises: list[ExerciseEntry],
        ledger: SessionPRLedger,
        timer: TimerCoordinator,
        historical: Mapping[str, Mapping[PRType, float]] | None = None,
        unit: str = CANONICAL_UNIT,
        reconcile_delay: float = SET_REMOVAL_RECONCILE_DELAY,
    ):
        self.exercises = exercises
        self.ledger = ledger
        self.timer = timer
        self.historical = historical if historical is not None else {}
        self.unit = unit
        self.reconcile_delay = reconcile_delay
        self._pending_reconcile: dict[str, object] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def exercise(self, exercise_index: int) -> ExerciseEntry:
        if exercise_index < 0 or exercise_index >= len(self.exercises):
            raise IndexError("Invalid exercise index")
        return self.exercises[exercise_index]

    def set_entry(self, exercise_index: int, set_index: int) -> SetEntry:
        exercise = self.exercise(exercise_index)
        if set_index < 0 or set_index >= len(exercise.sets):
            raise IndexError("Invalid set index")
        return exercise.sets[set_index]

    def _sets_for(self, exercise_id: str) -> list[SetEntry]:
        """Sets of every entry of ``exercise_id`` in the workout."""

        return [s for ex in self.exercises if ex.exercise_id == exercise_id for s in ex.sets]

    def max_values_for(self, exercise: ExerciseEntry) -> MaxValues:
        return calculate_max_values(
            self._sets_for(exercise.exercise_id), exercise.kind, self.unit
        )

    def are_all_sets_complete(self, exercise_index: int) -> bool:
        return self.exercise(exercise_index).all_sets_completed()

    def find_next_exercise(self, current_index: int) -> int | None:
        """Return the next exercise with an incomplete set.

        Searches forward from ``current_index`` and then wraps around to the
        exercises before it.
        """

        count = len(self.exercises)
        order = list(range(current_index + 1, count)) + list(range(0, current_index))
        for index in order:
            if self.exercises[index].has_incomplete_set():
                return index
        return None

    # ------------------------------------------------------------------
    # Toggling
    # ------------------------------------------------------------------

    def toggle_set(self, exercise_index: int, set_index: int) -> ToggleResult:
        exercise = self.exercise(exercise_index)
        entry = self.set_entry(exercise_index, set_index)

        if entry.completed:
            was_complete = exercise.all_sets_completed()
            entry.completed = False
            self._cancel_timers_for(exercise_index, set_index, was_complete)
            self.reconcile_exercise(exercise_index)
            return ToggleResult(False, timer=self.timer.state)

        errors = validate_set(entry, exercise.kind)
        if errors:
            return ToggleResult(False, errors, timer=self.timer.state)

        entry.completed = True
        new_prs = self._detect_prs(exercise)
        self._start_rest_after(exercise_index, set_index)
        message = pr_toast_message(new_prs, self.unit) if new_prs else ""
        return ToggleResult(True, [], new_prs, message, self.timer.state)

    def _detect_prs(self, exercise: ExerciseEntry) -> list[SessionAchievedPR]:
        """Record beaten candidates and return those worth announcing."""

        max_values = self.max_values_for(exercise)
        if max_values.has_no_valid_values:
            return []
        candidates = generate_pr_candidates(max_values, exercise.kind)
        historical = self.historical.get(exercise.exercise_id, {})
        announced = []
        for candidate in beaten_candidates(candidates, historical):
            record = self.ledger.record_achieved(
                exercise.exercise_id, candidate.pr_type, candidate.value, candidate.fields
            )
            if self.ledger.should_notify(
                exercise.exercise_id, candidate.pr_type, candidate.value
            ):
                self.ledger.record_notified(
                    exercise.exercise_id, candidate.pr_type, candidate.value
                )
                announced.append(record)
        return announced

    def _start_rest_after(self, exercise_index: int, set_index: int) -> None:
        exercise = self.exercises[exercise_index]
        if not exercise.all_sets_completed():
            if exercise.rest_seconds > 0:
                self.timer.start_timer(
                    SET_TIMER,
                    exercise.rest_seconds,
                    exercise_name=exercise.name,
                    triggering_exercise_index=exercise_index,
                    triggering_set_index=set_index,
                )
            return

        next_index = self.find_next_exercise(exercise_index)
        if next_index is not None:
            rest = exercise.next_exercise_rest_seconds
            if rest > 0:
                self.timer.start_timer(
                    EXERCISE_TIMER,
                    rest,
                    exercise_name=exercise.name,
                    next_exercise_name=self.exercises[next_index].name,
                    triggering_exercise_index=exercise_index,
                    triggering_set_index=set_index,
                    next_exercise_index=next_index,
                )
            else:
                self.timer.cancel_active_timer()
                if self.timer.on_advance:
                    self.timer.on_advance(next_index)
            return

        logging.info("All exercises complete")
        self.timer.start_timer(
            EXERCISE_TIMER,
            exercise.rest_seconds or COMPLETION_REST_FALLBACK,
            exercise_name=exercise.name,
            triggering_exercise_index=exercise_index,
            triggering_set_index=set_index,
        )
        self.timer.tracker.haptic("success")

    def _cancel_timers_for(
        self, exercise_index: int, set_index: int, was_complete: bool
    ) -> None:
        if self.timer.should_cancel_for_set(exercise_index, set_index):
            self.timer.cancel_active_timer()
        elif was_complete and self.timer.should_cancel_for_exercise(exercise_index):
            self.timer.cancel_active_timer()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_exercise(self, exercise_index: int) -> dict:
        """Lower or drop session records the completed sets no longer support."""

        exercise = self.exercise(exercise_index)
        return self.ledger.reconcile_exercise(
            exercise.exercise_id, exercise.kind, self.max_values_for(exercise)
        )

    def remove_set(self, exercise_index: int, set_index: int) -> bool:
        """Delete a set.  The last remaining set of an exercise is kept."""

        exercise = self.exercise(exercise_index)
        entry = self.set_entry(exercise_index, set_index)
        if len(exercise.sets) <= 1:
            return False

        was_complete = exercise.all_sets_completed()
        self._cancel_timers_for(exercise_index, set_index, was_complete)
        del exercise.sets[set_index]
        self.timer.forget_set(exercise_index, set_index)
        if entry.completed:
            self._schedule_reconcile(exercise.exercise_id)
        elif not was_complete and exercise.all_sets_completed():
            # the removed set was the last one left to do
            if self.timer.state.triggering_exercise_index == exercise_index:
                self.timer.cancel_active_timer()
            self._start_rest_after(exercise_index, len(exercise.sets) - 1)
        return True

    def _schedule_reconcile(self, exercise_id: str) -> None:
        event = self._pending_reconcile.pop(exercise_id, None)
        if event is not None:
            event.cancel()
        self._pending_reconcile[exercise_id] = self.timer.clock.schedule_once(
            lambda _dt: self._run_reconcile(exercise_id), self.reconcile_delay
        )

    def _run_reconcile(self, exercise_id: str) -> None:
        self._pending_reconcile.pop(exercise_id, None)
        for index, exercise in enumerate(self.exercises):
            if exercise.exercise_id == exercise_id:
                self.reconcile_exercise(index)
                return

    def flush_pending(self) -> None:
        """Run deferred reconciliations now."""

        for exercise_id, event in list(self._pending_reconcile.items()):
            event.cancel()
            self._run_reconcile(exercise_id)

    def cancel_pending(self, exercise_id: str | None = None) -> None:
        for key in list(self._pending_reconcile):
            if exercise_id is None or key == exercise_id:
                self._pending_reconcile.pop(key).cancel()
