"""Errors raised at the delivery-partner boundary.

Every error leaving an adapter carries the partner name and the operation
that failed, so callers can log it without knowing the partner's payload
shape.
"""

from __future__ import annotations

from typing import Iterable, Optional


class ProviderError(Exception):
    """Base class for partner-originated failures."""

    code = "provider_error"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        partner: Optional[str] = None,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.partner = partner
        self.operation = operation
        self.status_code = status_code

    def __str__(self) -> str:
        if self.partner and self.operation:
            return f"{self.partner} {self.operation} failed: {self.message}"
        return self.message


class ProviderUnavailable(ProviderError):
    """Transport, authentication or partner-side outage. Safe to retry."""

    code = "provider_unavailable"
    retryable = True


class ShipmentRejected(ProviderError):
    """Partner refused the booking (validation, quota). Do not retry."""

    code = "shipment_rejected"


class ShipmentOutcomeUnknown(ProviderError):
    """Booking request may have reached the partner but no usable answer came back.

    The partner might hold a shipment for the order, so the request must not
    be re-sent automatically.
    """

    code = "booking_outcome_unknown"


class NoServiceableRoute(ProviderError):
    """Partner has no service option for the corridor."""

    code = "no_serviceable_route"


class TrackingUnavailable(ProviderError):
    """Partner has no tracking record yet. Treated as still pending."""

    code = "tracking_unavailable"


class UnknownProvider(Exception):
    """Raised when a partner name does not resolve to a registered adapter."""

    code = "invalid_partner"

    def __init__(self, name: object, available: Iterable[str]) -> None:
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"Delivery partner '{name}' is not supported. Available partners: {', '.join(self.available)}"
        )
