"""Booking queue errors."""

from __future__ import annotations


class BookingError(Exception):
    code = "booking_error"


class BookingNotFound(BookingError):
    code = "booking_not_found"

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"No booking task for order {order_id}")


class BookingNotRequeueable(BookingError):
    code = "booking_not_requeueable"

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Booking for order {order_id} cannot be requeued: {reason}")
