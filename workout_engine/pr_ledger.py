"""Session-scoped record of personal records achieved and announced.

Two separate maps are kept per exercise and metric:

* achieved - the best value reached during this workout, always equal to
  the maximum of the currently completed sets.  It is what gets written to
  the long-term record store when the workout is finished.
* notified - the highest value the user has already been told about, used
  to avoid repeating a toast for a record that did not change.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace

from .max_values import MaxValues
from .models import ExerciseKind, PRType
from .pr_comparison import pr_types_for_kind


@dataclass(frozen=True)
class SessionAchievedPR:
    exercise_id: str
    pr_type: PRType
    value: float
    timestamp: float
    fields: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "type": self.pr_type.value,
            "value": self.value,
            "timestamp": self.timestamp,
            "fields": dict(self.fields),
        }


@dataclass(frozen=True)
class SessionNotifiedPR:
    exercise_id: str
    pr_type: PRType
    value: float
    notified_this_session: bool = True

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "type": self.pr_type.value,
            "value": self.value,
            "notified_this_session": self.notified_this_session,
        }


class SessionPRLedger:
    """Tracks records reached in the active workout."""

    def __init__(self) -> None:
        self.achieved: dict[str, dict[PRType, SessionAchievedPR]] = {}
        self.notified: dict[str, dict[PRType, SessionNotifiedPR]] = {}

    # ------------------------------------------------------------------
    # Achieved records
    # ------------------------------------------------------------------

    def record_achieved(
        self,
        exercise_id: str,
        pr_type: PRType,
        value: float,
        fields: dict | None = None,
    ) -> SessionAchievedPR:
        """Insert or replace the achieved record for the metric."""

        pr_type = PRType(pr_type)
        record = SessionAchievedPR(
            exercise_id, pr_type, value, time.time(), dict(fields or {})
        )
        self.achieved.setdefault(exercise_id, {})[pr_type] = record
        return record

    def get_achieved(self, exercise_id: str, pr_type: PRType) -> SessionAchievedPR | None:
        return self.achieved.get(exercise_id, {}).get(PRType(pr_type))

    def achieved_records(self) -> list[SessionAchievedPR]:
        """Return every achieved record in insertion order."""

        return [
            record
            for per_type in self.achieved.values()
            for record in per_type.values()
        ]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def should_notify(self, exercise_id: str, pr_type: PRType, value: float) -> bool:
        """Return ``True`` if reaching ``value`` warrants a toast.

        Unchanged records stay quiet; improvements, and records re-reached
        after a downgrade, are announced again.
        """

        status = self.notified.get(exercise_id, {}).get(PRType(pr_type))
        if status is None:
            return True
        if status.value < value:
            return True
        return status.value == value and not status.notified_this_session

    def record_notified(self, exercise_id: str, pr_type: PRType, value: float) -> None:
        pr_type = PRType(pr_type)
        self.notified.setdefault(exercise_id, {})[pr_type] = SessionNotifiedPR(
            exercise_id, pr_type, value, True
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _remove(self, store: dict, exercise_id: str, pr_type: PRType) -> None:
        per_type = store.get(exercise_id)
        if not per_type:
            return
        per_type.pop(pr_type, None)
        if not per_type:
            del store[exercise_id]

    def reconcile_on_uncheck(
        self, exercise_id: str, pr_type: PRType, max_values: MaxValues
    ) -> str | None:
        """Bring the metric back in line with the remaining completed sets.

        Returns ``"removed"`` when no completed set supports the metric any
        more, ``"downgraded"`` when the record dropped to a lower value and
        ``None`` when nothing changed.
        """

        pr_type = PRType(pr_type)
        record = self.get_achieved(exercise_id, pr_type)
        if record is None:
            return None

        new_max = max_values.value_for(pr_type)
        if new_max == 0:
            self._remove(self.achieved, exercise_id, pr_type)
            self._remove(self.notified, exercise_id, pr_type)
            return "removed"

        if record.value > new_max:
            self.achieved[exercise_id][pr_type] = replace(
                record, value=new_max, timestamp=time.time()
            )
            notified = self.notified.get(exercise_id, {}).get(pr_type)
            if notified is not None and notified.value > new_max:
                self.notified[exercise_id][pr_type] = SessionNotifiedPR(
                    exercise_id, pr_type, new_max, False
                )
            return "downgraded"
        return None

    def reconcile_exercise(
        self, exercise_id: str, kind: ExerciseKind, max_values: MaxValues
    ) -> dict[PRType, str]:
        """Run :meth:`reconcile_on_uncheck` for every metric of ``kind``."""

        changes = {}
        for pr_type in pr_types_for_kind(kind):
            outcome = self.reconcile_on_uncheck(exercise_id, pr_type, max_values)
            if outcome:
                changes[pr_type] = outcome
        return changes

    def clear_exercise(self, exercise_id: str) -> None:
        """Forget everything recorded for ``exercise_id``."""

        self.achieved.pop(exercise_id, None)
        self.notified.pop(exercise_id, None)

    def clear(self) -> None:
        self.achieved.clear()
        self.notified.clear()

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def summary(self) -> dict[str, dict[str, float]]:
        """Return ``{exercise_id: {type: value}}`` for display."""

        return {
            exercise_id: {t.value: r.value for t, r in per_type.items()}
            for exercise_id, per_type in self.achieved.items()
        }

    def to_dict(self) -> dict:
        return {
            "achieved": [r.to_dict() for r in self.achieved_records()],
            "notified": [
                n.to_dict()
                for per_type in self.notified.values()
                for n in per_type.values()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionPRLedger":
        ledger = cls()
        for item in data.get("achieved", []):
            pr_type = PRType(item["type"])
            ledger.achieved.setdefault(item["exercise_id"], {})[pr_type] = (
                SessionAchievedPR(
                    item["exercise_id"],
                    pr_type,
                    item["value"],
                    item.get("timestamp", 0.0),
                    dict(item.get("fields") or {}),
                )
            )
        for item in data.get("notified", []):
            pr_type = PRType(item["type"])
            ledger.notified.setdefault(item["exercise_id"], {})[pr_type] = (
                SessionNotifiedPR(
                    item["exercise_id"],
                    pr_type,
                    item["value"],
                    bool(item.get("notified_this_session", True)),
                )
            )
        return ledger
