"""Shipment booking task models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from parcelhub.core.constants import BookingStatus


@dataclass(slots=True)
class BookingTask:
    order_id: str
    partner: str
    status: BookingStatus
    attempts: int
    next_attempt_at: datetime
    claimed_at: Optional[datetime]
    booked_at: Optional[datetime]
    last_error: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]


class BookingOutcome(str, Enum):
    BOOKED = "booked"
    ALREADY_BOOKED = "already_booked"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass(slots=True)
class BookingRunSummary:
    expired: list[str] = field(default_factory=list)
    outcomes: dict[str, BookingOutcome] = field(default_factory=dict)

    def count(self, outcome: BookingOutcome) -> int:
        return sum(1 for value in self.outcomes.values() if value is outcome)
