"""Persistent hand-off between paid orders and partner shipment creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import BookingStatus
from parcelhub.db.models import ShipmentBooking as ShipmentBookingModel
from parcelhub.infrastructure.database.repositories.booking_repository import SqlBookingRepository

from .exceptions import BookingNotFound, BookingNotRequeueable
from .models import BookingTask
from .repository import BookingRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class BookingQueue:
    """Booking task table keyed by order id.

    Status changes are compare-and-swap updates, so two workers racing on
    the same task cannot both move it forward. The caller owns the commit.
    """

    repository: BookingRepository

    @classmethod
    def with_session(cls, session: AsyncSession) -> "BookingQueue":
        return cls(SqlBookingRepository(session))

    async def enqueue(self, order_id: str, partner: str, *, now: Optional[datetime] = None) -> BookingTask:
        existing = await self.repository.get(order_id)
        if existing is not None:
            return self._to_task(existing)
        model = await self.repository.insert(order_id=order_id, partner=partner, next_attempt_at=now or utcnow())
        logger.info("Booking queued for order %s via %s", order_id, partner)
        return self._to_task(model)

    async def get(self, order_id: str) -> Optional[BookingTask]:
        model = await self.repository.get(order_id)
        return self._to_task(model) if model else None

    async def claim(self, order_id: str, *, now: Optional[datetime] = None) -> bool:
        return await self.repository.claim(order_id, now or utcnow())

    async def due(self, limit: int, *, now: Optional[datetime] = None) -> list[str]:
        return list(await self.repository.list_due(now or utcnow(), limit))

    async def mark_booked(self, order_id: str, *, now: Optional[datetime] = None) -> bool:
        return await self.repository.transition(
            order_id,
            from_statuses=[BookingStatus.IN_PROGRESS.value],
            to_status=BookingStatus.BOOKED.value,
            booked_at=now or utcnow(),
            last_error=None,
        )

    async def mark_failed(self, order_id: str, error: str) -> bool:
        logger.warning("Booking for order %s failed: %s", order_id, error)
        return await self.repository.transition(
            order_id,
            from_statuses=[BookingStatus.IN_PROGRESS.value],
            to_status=BookingStatus.FAILED.value,
            last_error=error,
        )

    async def schedule_retry(self, order_id: str, delay_seconds: float, error: str, *, now: Optional[datetime] = None) -> bool:
        next_at = (now or utcnow()) + timedelta(seconds=delay_seconds)
        logger.info("Booking for order %s retrying in %.0fs: %s", order_id, delay_seconds, error)
        return await self.repository.transition(
            order_id,
            from_statuses=[BookingStatus.IN_PROGRESS.value],
            to_status=BookingStatus.QUEUED.value,
            next_attempt_at=next_at,
            claimed_at=None,
            last_error=error,
        )

    async def cancel(self, order_id: str) -> bool:
        return await self.repository.transition(
            order_id,
            from_statuses=[BookingStatus.QUEUED.value, BookingStatus.FAILED.value],
            to_status=BookingStatus.CANCELLED.value,
        )

    async def expire_stale(self, lease_seconds: float, *, now: Optional[datetime] = None) -> list[str]:
        """Fail tasks whose worker vanished mid-call. Never retried automatically."""
        cutoff = (now or utcnow()) - timedelta(seconds=lease_seconds)
        expired = []
        for order_id in await self.repository.list_stale(cutoff):
            moved = await self.repository.transition(
                order_id,
                from_statuses=[BookingStatus.IN_PROGRESS.value],
                to_status=BookingStatus.FAILED.value,
                last_error="outcome unknown: claim lease expired during shipment creation",
            )
            if moved:
                logger.error("Booking for order %s abandoned mid-call; needs manual review", order_id)
                expired.append(order_id)
        return expired

    async def requeue(self, order_id: str, *, now: Optional[datetime] = None) -> BookingTask:
        model = await self.repository.get(order_id)
        if model is None:
            raise BookingNotFound(order_id)
        if model.status != BookingStatus.FAILED.value:
            raise BookingNotRequeueable(order_id, f"task is {model.status}")
        moved = await self.repository.transition(
            order_id,
            from_statuses=[BookingStatus.FAILED.value],
            to_status=BookingStatus.QUEUED.value,
            attempts=0,
            next_attempt_at=now or utcnow(),
            claimed_at=None,
        )
        if not moved:
            raise BookingNotRequeueable(order_id, "task changed concurrently")
        logger.info("Booking for order %s requeued by operator", order_id)
        refreshed = await self.repository.get(order_id)
        assert refreshed is not None
        return self._to_task(refreshed)

    async def list_failed(self, limit: int = 50, offset: int = 0) -> list[BookingTask]:
        return await self.list_tasks(BookingStatus.FAILED, limit=limit, offset=offset)

    async def list_tasks(
        self, status: Optional[BookingStatus] = None, *, limit: int = 50, offset: int = 0
    ) -> list[BookingTask]:
        models = await self.repository.list_by_status(status.value if status else None, limit, offset)
        return [self._to_task(model) for model in models]

    @staticmethod
    def _to_task(model: ShipmentBookingModel) -> BookingTask:
        return BookingTask(
            order_id=model.order_id,
            partner=model.partner,
            status=BookingStatus(model.status),
            attempts=model.attempts or 0,
            next_attempt_at=model.next_attempt_at,
            claimed_at=model.claimed_at,
            booked_at=model.booked_at,
            last_error=model.last_error,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
