"""Booking task exports"""

from .exceptions import BookingError, BookingNotFound, BookingNotRequeueable
from .models import BookingOutcome, BookingRunSummary, BookingTask
from .service import BookingQueue

__all__ = [
    "BookingError",
    "BookingNotFound",
    "BookingNotRequeueable",
    "BookingOutcome",
    "BookingQueue",
    "BookingRunSummary",
    "BookingTask",
]
