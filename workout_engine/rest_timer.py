"""Single rest countdown shared by the whole workout.

The countdown never trusts the tick interval: every tick recomputes the
remaining time from the wall clock, so a timer that was suspended while the
app sat in the background is correct the moment it ticks again.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, replace
from typing import Callable

from . import TIMER_TICK_INTERVAL
from .notifications import NotificationTracker, kivy_clock, rest_notification_text

SET_TIMER = "set"
EXERCISE_TIMER = "exercise"
LAST_SECONDS_HAPTIC = 5


@dataclass(frozen=True)
class TimerState:
    active: bool = False
    kind: str | None = None
    remaining_seconds: int = 0
    total_seconds: int = 0
    start_timestamp: float | None = None
    exercise_name: str = ""
    next_exercise_name: str | None = None
    notification_id: str | None = None
    triggering_exercise_index: int | None = None
    triggering_set_index: int | None = None
    next_exercise_index: int | None = None

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "kind": self.kind,
            "remaining_seconds": self.remaining_seconds,
            "total_seconds": self.total_seconds,
            "start_timestamp": self.start_timestamp,
            "exercise_name": self.exercise_name,
            "next_exercise_name": self.next_exercise_name,
            "triggering_exercise_index": self.triggering_exercise_index,
            "triggering_set_index": self.triggering_set_index,
            "next_exercise_index": self.next_exercise_index,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "TimerState":
        if not data:
            return cls()
        fields = {k: data.get(k) for k in cls().to_dict()}
        fields["active"] = bool(fields["active"])
        fields["remaining_seconds"] = fields["remaining_seconds"] or 0
        fields["total_seconds"] = fields["total_seconds"] or 0
        fields["exercise_name"] = fields["exercise_name"] or ""
        return cls(**fields)


def compute_remaining(total_seconds: int, start_timestamp: float, now: float) -> int:
    """Return whole seconds left, clamped at zero."""

    elapsed = math.floor(now - start_timestamp)
    return max(0, int(total_seconds - elapsed))


class TimerCoordinator:
    """Owns the one active rest timer of a workout session.

    ``clock`` must offer Kivy's ``schedule_interval`` API and defaults to the
    global ``Clock``.  Listeners receive the :class:`TimerState` on every
    tick and on completion; ``on_advance`` receives the index of the
    exercise an inter-exercise rest was leading to.
    """

    def __init__(
        self,
        tracker: NotificationTracker | None = None,
        clock=None,
        time_source: Callable[[], float] | None = None,
        on_tick: Callable[[TimerState], None] | None = None,
        on_complete: Callable[[TimerState], None] | None = None,
        on_advance: Callable[[int], None] | None = None,
        tick_interval: float = TIMER_TICK_INTERVAL,
    ):
        self.tracker = tracker or NotificationTracker()
        self._clock = clock
        self._time_source = time_source
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.on_advance = on_advance
        self.tick_interval = tick_interval
        self.state = TimerState()
        self.in_background = False
        self._event = None
        self._haptic_marks: set[int] = set()

    @property
    def clock(self):
        if self._clock is None:
            self._clock = kivy_clock()
        return self._clock

    def _now(self) -> float:
        return self._time_source() if self._time_source else time.time()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_timer(
        self,
        kind: str,
        seconds: int,
        *,
        exercise_name: str = "",
        next_exercise_name: str | None = None,
        triggering_exercise_index: int | None = None,
        triggering_set_index: int | None = None,
        next_exercise_index: int | None = None,
    ) -> TimerState:
        """Replace any running countdown with a new one of ``seconds``."""

        self.cancel_active_timer()
        seconds = int(seconds)
        if seconds <= 0:
            return self.state

        self.state = TimerState(
            active=True,
            kind=kind,
            remaining_seconds=seconds,
            total_seconds=seconds,
            start_timestamp=self._now(),
            exercise_name=exercise_name,
            next_exercise_name=next_exercise_name,
            triggering_exercise_index=triggering_exercise_index,
            triggering_set_index=triggering_set_index,
            next_exercise_index=next_exercise_index,
        )
        if self.in_background:
            self._schedule_notification(seconds)
        self._start_ticking()
        if self.on_tick:
            self.on_tick(self.state)
        return self.state

    def cancel_active_timer(self) -> None:
        """Stop the countdown and withdraw its scheduled alert."""

        self._stop_ticking()
        self.tracker.cancel(self.state.notification_id)
        self.state = TimerState()
        self._haptic_marks.clear()

    def restore(self, state: TimerState) -> TimerState:
        """Resume a countdown recovered from disk."""

        self.cancel_active_timer()
        if not state.active or state.start_timestamp is None:
            return self.state
        self.state = replace(state, notification_id=None)
        self._start_ticking()
        return self.tick()

    def _start_ticking(self) -> None:
        self._event = self.clock.schedule_interval(self._on_interval, self.tick_interval)

    def _stop_ticking(self) -> None:
        if self._event:
            self._event.cancel()
            self._event = None

    def _on_interval(self, _dt) -> None:
        self.tick()

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self) -> TimerState:
        """Recompute the remaining time and finish the timer at zero."""

        state = self.state
        if not state.active:
            return state
        remaining = compute_remaining(
            state.total_seconds, state.start_timestamp, self._now()
        )
        self.state = replace(state, remaining_seconds=remaining)
        if remaining <= 0:
            return self._complete()
        self._maybe_haptic(remaining)
        if self.on_tick:
            self.on_tick(self.state)
        return self.state

    def _maybe_haptic(self, remaining: int) -> None:
        halfway = self.state.total_seconds // 2
        due = (remaining == halfway and halfway > 0) or remaining <= LAST_SECONDS_HAPTIC
        if due and remaining not in self._haptic_marks:
            self._haptic_marks.add(remaining)
            self.tracker.haptic("light")

    def _complete(self) -> TimerState:
        finished = self.state
        self._stop_ticking()
        if self.in_background:
            # The scheduled alert fires on its own; only present when none
            # could be scheduled.
            if finished.notification_id is None:
                self.tracker.present(*self._notification_text(finished))
            else:
                self.tracker.forget(finished.notification_id)
        else:
            self.tracker.cancel(finished.notification_id)
        self.tracker.haptic("success")
        self.state = TimerState()
        self._haptic_marks.clear()

        if finished.kind == EXERCISE_TIMER and finished.next_exercise_index is not None:
            if self.on_advance:
                self.on_advance(finished.next_exercise_index)
        if self.on_complete:
            self.on_complete(finished)
        return self.state

    # ------------------------------------------------------------------
    # Background / foreground
    # ------------------------------------------------------------------

    def _notification_text(self, state: TimerState) -> tuple[str, str]:
        return rest_notification_text(
            state.kind, state.exercise_name, state.next_exercise_name
        )

    def _schedule_notification(self, delay: int) -> None:
        title, body = self._notification_text(self.state)
        notification_id = self.tracker.schedule(title, body, delay)
        self.state = replace(self.state, notification_id=notification_id)

    def on_app_pause(self, *args) -> bool:
        """Hand the countdown over to a scheduled alert."""

        self.in_background = True
        if self.state.active:
            remaining = compute_remaining(
                self.state.total_seconds, self.state.start_timestamp, self._now()
            )
            self.state = replace(self.state, remaining_seconds=remaining)
            if remaining > 0:
                self.tracker.cancel(self.state.notification_id)
                self._schedule_notification(remaining)
        return True

    def on_app_resume(self, *args) -> TimerState:
        """Withdraw the scheduled alert and resync with the wall clock."""

        self.in_background = False
        if self.state.active:
            self.tracker.cancel(self.state.notification_id)
            self.state = replace(self.state, notification_id=None)
            return self.tick()
        return self.state

    def bind_app(self, app) -> None:
        """Follow the pause/resume events of a Kivy ``App``."""

        app.bind(on_pause=self.on_app_pause, on_resume=self.on_app_resume)

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def adjust(self, seconds: int) -> TimerState:
        """Lengthen or shorten the running countdown by ``seconds``."""

        if not self.state.active:
            return self.state
        elapsed = math.floor(self._now() - self.state.start_timestamp)
        total = max(elapsed, self.state.total_seconds + int(seconds))
        self.state = replace(self.state, total_seconds=total)
        self._haptic_marks.clear()
        if self.in_background:
            self.tracker.cancel(self.state.notification_id)
            remaining = compute_remaining(total, self.state.start_timestamp, self._now())
            if remaining > 0:
                self._schedule_notification(remaining)
        return self.tick()

    def remap_indexes(self, mapping: Callable[[int], int | None]) -> None:
        """Follow exercises that moved after the timer started.

        ``mapping`` returns the new index of an exercise or ``None`` when it
        was removed, in which case the timer is cancelled.
        """

        state = self.state
        if not state.active:
            return
        trigger = state.triggering_exercise_index
        new_trigger = mapping(trigger) if trigger is not None else None
        if trigger is not None and new_trigger is None:
            self.cancel_active_timer()
            return
        target = state.next_exercise_index
        new_target = mapping(target) if target is not None else None
        self.state = replace(
            state,
            triggering_exercise_index=new_trigger,
            next_exercise_index=new_target,
        )

    def forget_set(self, exercise_index: int, set_index: int) -> None:
        """Keep a set timer pointing at its set after an earlier set is removed."""

        state = self.state
        if (
            state.active
            and state.kind == SET_TIMER
            and state.triggering_exercise_index == exercise_index
            and state.triggering_set_index is not None
            and state.triggering_set_index > set_index
        ):
            self.state = replace(
                state, triggering_set_index=state.triggering_set_index - 1
            )

    def should_cancel_for_set(self, exercise_index: int, set_index: int) -> bool:
        """``True`` if the running timer was started by this exact set."""

        state = self.state
        return (
            state.active
            and state.kind == SET_TIMER
            and state.triggering_exercise_index == exercise_index
            and state.triggering_set_index == set_index
        )

    def should_cancel_for_exercise(self, exercise_index: int) -> bool:
        """``True`` if the running timer followed finishing this exercise."""

        state = self.state
        return (
            state.active
            and state.kind == EXERCISE_TIMER
            and state.triggering_exercise_index == exercise_index
        )
