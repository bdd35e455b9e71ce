"""Translation of domain errors into HTTP error payloads."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status

from parcelhub.domain.bookings import BookingError, BookingNotFound, BookingNotRequeueable
from parcelhub.domain.orders import (
    InvalidStatus,
    OrderError,
    OrderNotFound,
    OrderOwnershipError,
)
from parcelhub.domain.topups import TopupError, TopupNotFound, TopupNotPending
from parcelhub.domain.wallets import InsufficientFunds, WalletError
from parcelhub.providers import ProviderError, UnknownProvider

DomainError = (OrderError, WalletError, TopupError, BookingError, ProviderError, UnknownProvider)

_STATUS_BY_TYPE: list[tuple[type[Exception], int]] = [
    (OrderOwnershipError, status.HTTP_403_FORBIDDEN),
    (OrderNotFound, status.HTTP_404_NOT_FOUND),
    (TopupNotFound, status.HTTP_404_NOT_FOUND),
    (BookingNotFound, status.HTTP_404_NOT_FOUND),
    (TopupNotPending, status.HTTP_409_CONFLICT),
    (BookingNotRequeueable, status.HTTP_409_CONFLICT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
]


def _extra(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, InsufficientFunds):
        return {
            "required_paise": exc.required_paise,
            "available_paise": exc.available_paise,
            "shortfall_paise": exc.shortfall_paise,
        }
    if isinstance(exc, UnknownProvider):
        return {"available": exc.available}
    if isinstance(exc, InvalidStatus) and exc.allowed:
        return {"allowed": exc.allowed}
    if isinstance(exc, ProviderError):
        return {"partner": exc.partner, "operation": exc.operation}
    return {}


def http_error(exc: Exception, status_code: Optional[int] = None) -> HTTPException:
    """Build the ``{"detail": {"code", "message", ...}}`` response for ``exc``.

    Anything not listed maps to 400, which covers the caller errors
    (insufficient funds, unknown partner, invalid amount or status).
    """
    if status_code is None:
        status_code = status.HTTP_400_BAD_REQUEST
        for error_type, mapped in _STATUS_BY_TYPE:
            if isinstance(exc, error_type):
                status_code = mapped
                break
    detail = {"code": getattr(exc, "code", "error"), "message": str(exc), **_extra(exc)}
    return HTTPException(status_code=status_code, detail=detail)
