"""Order domain exports"""

from .exceptions import (
    InvalidStatus,
    MissingOrderReference,
    OrderError,
    OrderNotCancellable,
    OrderNotFound,
    OrderOwnershipError,
)
from .models import CancellationResult, OrderDraft, OrderPage, OrderRecord, PlacementResult
from .service import OrderOrchestrator, TrackingOutcome

__all__ = [
    "CancellationResult",
    "InvalidStatus",
    "MissingOrderReference",
    "OrderDraft",
    "OrderError",
    "OrderNotCancellable",
    "OrderNotFound",
    "OrderOrchestrator",
    "OrderOwnershipError",
    "OrderPage",
    "OrderRecord",
    "PlacementResult",
    "TrackingOutcome",
]
