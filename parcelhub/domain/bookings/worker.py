"""Background worker that turns queued booking tasks into partner shipments."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcelhub.core.config import BookingSettings
from parcelhub.core.constants import OrderStatus
from parcelhub.domain.orders.exceptions import OrderNotFound
from parcelhub.domain.orders.service import OrderOrchestrator
from parcelhub.domain.pricing.quoter import RateQuoter
from parcelhub.providers import ProviderError, ShipmentOutcomeUnknown, ShipmentRejected, UnknownProvider

from .models import BookingOutcome, BookingRunSummary
from .service import BookingQueue

logger = logging.getLogger(__name__)


class BookingWorker:
    """Claims due booking tasks and calls ``create_shipment`` for each.

    A task is claimed with a compare-and-swap before the partner is called,
    so a given order reaches the partner from at most one worker at a time.
    Retryable failures go back to the queue with exponential backoff. A
    rejection or an exhausted retry budget parks the task as ``failed`` for
    operators. So does a call whose outcome is unknown (timeout after the
    request went out), since the partner may already hold the shipment.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        quoter: RateQuoter,
        settings: BookingSettings,
    ) -> None:
        self.session_factory = session_factory
        self.quoter = quoter
        self.settings = settings
        self._wakeup = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def notify(self) -> None:
        self._wakeup.set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._wakeup = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="booking-worker")
        logger.info("Booking worker started (poll every %.0fs)", self.settings.poll_interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Booking worker task cancelled")
        logger.info("Booking worker stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # pylint: disable=broad-except
                logger.exception("Booking worker pass failed")
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.settings.poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()

    def backoff_seconds(self, attempts: int) -> float:
        return self.settings.backoff_seconds * (2 ** max(attempts - 1, 0))

    async def run_once(self) -> BookingRunSummary:
        summary = BookingRunSummary()
        async with self.session_factory() as session:
            queue = BookingQueue.with_session(session)
            summary.expired = await queue.expire_stale(self.settings.claim_lease_seconds)
            await session.commit()
            due = await queue.due(self.settings.batch_size)

        for order_id in due:
            summary.outcomes[order_id] = await self.process(order_id)
        return summary

    async def process(self, order_id: str) -> BookingOutcome:
        async with self.session_factory() as session:
            queue = BookingQueue.with_session(session)
            claimed = await queue.claim(order_id)
            await session.commit()
            if not claimed:
                return BookingOutcome.SKIPPED

            orchestrator = OrderOrchestrator.with_session(session, quoter=self.quoter)
            try:
                order = await orchestrator.load(order_id)
            except OrderNotFound:
                await queue.mark_failed(order_id, "order no longer exists")
                await session.commit()
                return BookingOutcome.FAILED

            if order.awb:
                await queue.mark_booked(order_id)
                await session.commit()
                return BookingOutcome.ALREADY_BOOKED
            if order.status is not OrderStatus.PENDING:
                await queue.mark_failed(order_id, f"order is {order.status.value}")
                await session.commit()
                if order.status is OrderStatus.CANCELLED:
                    return BookingOutcome.CANCELLED
                return BookingOutcome.FAILED

            try:
                adapter = self.quoter.registry.resolve(order.partner)
            except UnknownProvider as exc:
                await queue.mark_failed(order_id, str(exc))
                await session.commit()
                return BookingOutcome.FAILED

            task = await queue.get(order_id)
            attempts = task.attempts if task else 1
            try:
                receipt = await adapter.bounded(
                    "create_shipment",
                    adapter.create_shipment(
                        order.pickup,
                        order.delivery,
                        order.package,
                        order.order_number,
                        order.quote.get("service_code"),
                    ),
                )
            except ShipmentRejected as exc:
                await queue.mark_failed(order_id, str(exc))
                await session.commit()
                return BookingOutcome.FAILED
            except ShipmentOutcomeUnknown as exc:
                logger.error(
                    "[%s] order %s may have been booked without a reply; needs manual review",
                    adapter.name,
                    order.order_number,
                )
                await queue.mark_failed(order_id, f"outcome unknown: {exc}")
                await session.commit()
                return BookingOutcome.FAILED
            except ProviderError as exc:
                if not exc.retryable or attempts >= self.settings.max_attempts:
                    await queue.mark_failed(order_id, f"{exc} (after {attempts} attempts)")
                    await session.commit()
                    return BookingOutcome.FAILED
                await queue.schedule_retry(order_id, self.backoff_seconds(attempts), str(exc))
                await session.commit()
                return BookingOutcome.RETRY_SCHEDULED

            try:
                await orchestrator.record_shipment(order_id, receipt, adapter.name)
            except BaseException:
                logger.error(
                    "[%s] order %s booked as %s but the result was not saved",
                    adapter.name,
                    order.order_number,
                    receipt.tracking_id,
                )
                raise
            await queue.mark_booked(order_id)
            await session.commit()
            return BookingOutcome.BOOKED
