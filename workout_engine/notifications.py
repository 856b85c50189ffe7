"""Rest-timer notification delivery.

Schedulers are fire-and-forget: a failure to schedule or cancel an alert is
logged and otherwise ignored so it can never interrupt the workout.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable


def kivy_clock():
    """Return Kivy's global ``Clock``.

    Imported lazily so the engine can be driven by an injected clock without
    starting Kivy.
    """

    from kivy.clock import Clock

    return Clock


def rest_notification_text(
    kind: str, exercise_name: str = "", next_exercise_name: str | None = None
) -> tuple[str, str]:
    """Return ``(title, body)`` announcing the end of a rest period."""

    if kind == "set":
        return (
            "Rest Timer Completed",
            f"Time to start your next set of {exercise_name}!",
        )
    if next_exercise_name:
        return (
            "Rest Time Complete",
            f"Time to start your next exercise: {next_exercise_name}!",
        )
    return "Rest Time Complete", "Workout complete!"


class NotificationScheduler:
    """Interface for delivering alerts outside the app's own screens."""

    def schedule(self, title: str, body: str, delay_seconds: float) -> str:
        """Schedule an alert ``delay_seconds`` from now and return its id."""
        raise NotImplementedError

    def cancel(self, notification_id: str) -> None:
        """Cancel a scheduled alert.  Unknown ids are ignored."""
        raise NotImplementedError

    def present(self, title: str, body: str) -> None:
        """Show an alert immediately."""
        raise NotImplementedError

    def haptic(self, style: str = "light") -> None:
        """Trigger haptic feedback where the device supports it."""


class ClockNotificationScheduler(NotificationScheduler):
    """In-app scheduler built on Kivy's ``Clock``.

    ``deliver`` is called with ``(title, body)`` whenever an alert fires or
    is presented.
    """

    def __init__(self, clock=None, deliver: Callable[[str, str], None] | None = None):
        self.clock = clock or kivy_clock()
        self.deliver = deliver
        self._events: dict[str, object] = {}

    def schedule(self, title: str, body: str, delay_seconds: float) -> str:
        notification_id = uuid.uuid4().hex

        def _fire(_dt):
            self._events.pop(notification_id, None)
            self.present(title, body)

        self._events[notification_id] = self.clock.schedule_once(
            _fire, max(0, delay_seconds)
        )
        return notification_id

    def cancel(self, notification_id: str) -> None:
        event = self._events.pop(notification_id, None)
        if event is not None:
            event.cancel()

    def present(self, title: str, body: str) -> None:
        logging.info("Notification: %s - %s", title, body)
        if self.deliver:
            self.deliver(title, body)

    def pending(self) -> list[str]:
        return list(self._events)


class NotificationTracker:
    """Session-owned wrapper remembering which alerts are outstanding."""

    def __init__(self, scheduler: NotificationScheduler | None = None):
        self.scheduler = scheduler
        self.scheduled_ids: set[str] = set()

    def schedule(self, title: str, body: str, delay_seconds: float) -> str | None:
        if self.scheduler is None:
            return None
        try:
            notification_id = self.scheduler.schedule(title, body, delay_seconds)
        except Exception:
            logging.warning("Failed to schedule notification '%s'", title, exc_info=True)
            return None
        if notification_id is not None:
            self.scheduled_ids.add(notification_id)
        return notification_id

    def cancel(self, notification_id: str | None) -> None:
        if notification_id is None:
            return
        self.scheduled_ids.discard(notification_id)
        if self.scheduler is None:
            return
        try:
            self.scheduler.cancel(notification_id)
        except Exception:
            logging.warning(
                "Failed to cancel notification %s", notification_id, exc_info=True
            )

    def forget(self, notification_id: str | None) -> None:
        """Stop tracking an alert that has already been delivered."""

        self.scheduled_ids.discard(notification_id)

    def present(self, title: str, body: str) -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler.present(title, body)
        except Exception:
            logging.warning("Failed to present notification '%s'", title, exc_info=True)

    def haptic(self, style: str = "light") -> None:
        if self.scheduler is None:
            return
        try:
            self.scheduler.haptic(style)
        except Exception:
            logging.warning("Haptic feedback failed", exc_info=True)

    def dismiss_all(self) -> None:
        """Cancel every alert scheduled through this tracker."""

        for notification_id in list(self.scheduled_ids):
            self.cancel(notification_id)
        self.scheduled_ids.clear()
