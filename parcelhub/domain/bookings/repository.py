"""Repository interface for shipment booking tasks."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from parcelhub.db.models import ShipmentBooking as ShipmentBookingModel


class BookingRepository(Protocol):
    async def get(self, order_id: str) -> ShipmentBookingModel | None:
        ...

    async def insert(self, *, order_id: str, partner: str, next_attempt_at: datetime) -> ShipmentBookingModel:
        ...

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        **values: object,
    ) -> bool:
        """Compare-and-swap the task status; True when this caller won."""
        ...

    async def claim(self, order_id: str, now: datetime) -> bool:
        ...

    async def list_due(self, now: datetime, limit: int) -> Sequence[str]:
        ...

    async def list_stale(self, cutoff: datetime) -> Sequence[str]:
        ...

    async def list_by_status(self, status: Optional[str], limit: int, offset: int) -> Sequence[ShipmentBookingModel]:
        ...
