"""Elapsed time of the active workout, excluding paused periods."""

from __future__ import annotations

import math
import time
from typing import Callable


class WorkoutClock:
    def __init__(self, time_source: Callable[[], float] | None = None, start_time: float | None = None):
        self._time_source = time_source
        self.start_time = start_time if start_time is not None else self._now()
        self.paused_total = 0.0
        self.paused_at: float | None = None

    def _now(self) -> float:
        return self._time_source() if self._time_source else time.time()

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    def elapsed(self) -> int:
        """Whole seconds spent working out."""

        now = self.paused_at if self.paused_at is not None else self._now()
        return max(0, math.floor(now - self.start_time - self.paused_total))

    def pause(self) -> None:
        if self.paused_at is None:
            self.paused_at = self._now()

    def resume(self) -> None:
        if self.paused_at is not None:
            self.paused_total += self._now() - self.paused_at
            self.paused_at = None

    def toggle_pause(self) -> bool:
        """Pause or resume and return ``True`` if now paused."""

        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "paused_total": self.paused_total,
            "paused_at": self.paused_at,
        }

    @classmethod
    def from_dict(cls, data: dict, time_source: Callable[[], float] | None = None) -> "WorkoutClock":
        obj = cls(time_source, start_time=data["start_time"])
        obj.paused_total = data.get("paused_total", 0.0)
        obj.paused_at = data.get("paused_at")
        return obj
