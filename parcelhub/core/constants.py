"""Closed vocabularies shared across the service."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RTO = "rto"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: str | None) -> "OrderStatus | None":
        """Return the member for ``value`` (case-insensitive, trimmed) or None."""
        if not value:
            return None
        normalized = value.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return None


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RTO})


class DeliveryPartner(str, Enum):
    DELHIVERY = "delhivery"
    NIMBUSPOST = "nimbuspost"
    OVERSEAS_LOGISTIC = "overseas_logistic"


class OrderType(str, Enum):
    DOMESTIC = "domestic"
    INTERNATIONAL = "international"


class TransactionKind(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    BOOKED = "booked"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TopupStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


DEFAULT_CURRENCY = "INR"
