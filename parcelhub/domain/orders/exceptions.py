"""Order domain errors."""

from __future__ import annotations

from typing import Iterable, Optional


class OrderError(Exception):
    """Base class for order domain errors."""

    code = "order_error"


class OrderNotFound(OrderError):
    code = "order_not_found"

    def __init__(self, order_id: Optional[str] = None, awb: Optional[str] = None) -> None:
        self.order_id = order_id
        self.awb = awb
        reference = order_id or awb or "<none>"
        super().__init__(f"Order not found: {reference}")


class OrderOwnershipError(OrderError):
    """Raised when a user touches an order placed by someone else."""

    code = "unauthorized"

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__("Not authorized to access this order")


class InvalidStatus(OrderError):
    code = "invalid_status"

    def __init__(self, status: object, message: Optional[str] = None, allowed: Iterable[str] = ()) -> None:
        self.status = status
        self.allowed = list(allowed)
        super().__init__(message or f"Invalid status: {status!r}")


class OrderNotCancellable(OrderError):
    code = "order_not_cancellable"

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id} cannot be cancelled: {reason}")


class MissingOrderReference(OrderError):
    code = "missing_reference"

    def __init__(self) -> None:
        super().__init__("Either orderId or awb is required")
