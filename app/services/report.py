"""
Per-endpoint delivery outcomes and the summary returned to the caller.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    INVALID = "invalid"  # Endpoint is dead; registration gets pruned
    FAILED = "failed"  # Transient; registration kept


@dataclass(frozen=True)
class DeliveryOutcome:
    registration_id: str
    owner_id: str
    status: DeliveryStatus
    removed: bool = False
    error_code: str | None = None


@dataclass(frozen=True)
class DispatchReport:
    success_count: int
    failure_count: int
    removed_count: int
    message: str
    skipped_count: int = 0

    @property
    def attempted(self) -> int:
        return self.success_count + self.failure_count

    @classmethod
    def empty(cls, message: str) -> "DispatchReport":
        return cls(success_count=0, failure_count=0, removed_count=0, message=message)


def summarize(success: int, failure: int, removed: int, skipped: int = 0) -> str:
    message = f"Notifications: {success} sent, {failure} failed, {removed} tokens removed"
    if skipped:
        message += f", {skipped} not attempted"
    return message


class ResultAggregator:
    """Counts outcomes; totals do not depend on arrival order."""

    def __init__(self, outcomes: Iterable[DeliveryOutcome] = ()):
        self._statuses: Counter = Counter()
        self._removed = 0
        self._skipped = 0
        for outcome in outcomes:
            self.add(outcome)

    def add(self, outcome: DeliveryOutcome) -> None:
        self._statuses[outcome.status] += 1
        if outcome.removed:
            self._removed += 1

    def add_skipped(self, count: int = 1) -> None:
        self._skipped += count

    def merge(self, other: "ResultAggregator") -> "ResultAggregator":
        merged = ResultAggregator()
        merged._statuses = self._statuses + other._statuses
        merged._removed = self._removed + other._removed
        merged._skipped = self._skipped + other._skipped
        return merged

    def report(self) -> DispatchReport:
        success = self._statuses[DeliveryStatus.DELIVERED]
        failure = self._statuses[DeliveryStatus.INVALID] + self._statuses[DeliveryStatus.FAILED]
        return DispatchReport(
            success_count=success,
            failure_count=failure,
            removed_count=self._removed,
            skipped_count=self._skipped,
            message=summarize(success, failure, self._removed, self._skipped),
        )
