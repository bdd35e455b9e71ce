"""SQLAlchemy implementation for shipment booking tasks"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import BookingStatus
from parcelhub.db.models import ShipmentBooking


class SqlBookingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, order_id: str) -> ShipmentBooking | None:
        stmt = (
            select(ShipmentBooking)
            .where(ShipmentBooking.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def insert(self, *, order_id: str, partner: str, next_attempt_at: datetime) -> ShipmentBooking:
        booking = ShipmentBooking(
            order_id=order_id,
            partner=partner,
            status=BookingStatus.QUEUED.value,
            attempts=0,
            next_attempt_at=next_attempt_at,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def transition(
        self,
        order_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        **values: object,
    ) -> bool:
        stmt = (
            update(ShipmentBooking)
            .where(ShipmentBooking.order_id == order_id, ShipmentBooking.status.in_(list(from_statuses)))
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim(self, order_id: str, now: datetime) -> bool:
        stmt = (
            update(ShipmentBooking)
            .where(
                ShipmentBooking.order_id == order_id,
                ShipmentBooking.status == BookingStatus.QUEUED.value,
                ShipmentBooking.next_attempt_at <= now,
            )
            .values(
                status=BookingStatus.IN_PROGRESS.value,
                attempts=ShipmentBooking.attempts + 1,
                claimed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_due(self, now: datetime, limit: int) -> Sequence[str]:
        stmt = (
            select(ShipmentBooking.order_id)
            .where(
                ShipmentBooking.status == BookingStatus.QUEUED.value,
                ShipmentBooking.next_attempt_at <= now,
            )
            .order_by(ShipmentBooking.next_attempt_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_stale(self, cutoff: datetime) -> Sequence[str]:
        stmt = select(ShipmentBooking.order_id).where(
            ShipmentBooking.status == BookingStatus.IN_PROGRESS.value,
            ShipmentBooking.claimed_at < cutoff,
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_status(
        self, status: Optional[str], limit: int, offset: int
    ) -> Sequence[ShipmentBooking]:
        stmt = select(ShipmentBooking)
        if status:
            stmt = stmt.where(ShipmentBooking.status == status)
        stmt = stmt.order_by(desc(ShipmentBooking.updated_at), desc(ShipmentBooking.created_at))
        stmt = stmt.offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()
