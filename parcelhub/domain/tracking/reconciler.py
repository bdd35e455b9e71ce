"""Periodic sync of order status with partner tracking."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcelhub.core.config import TrackingSettings
from parcelhub.core.constants import TERMINAL_STATUSES
from parcelhub.domain.orders.service import OrderOrchestrator
from parcelhub.domain.pricing.quoter import RateQuoter
from parcelhub.infrastructure.database.repositories.order_repository import SqlOrderRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileSummary:
    checked: int = 0
    updated: int = 0
    unchanged: int = 0
    unavailable: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "unavailable": self.unavailable,
            "failed": self.failed,
            "errors": dict(self.errors),
        }


class TrackingReconciler:
    """Polls partners for booked, non-terminal orders.

    Each order is handled in its own session so one partner outage or one
    bad row does not hold back the rest of the batch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        quoter: RateQuoter,
        settings: TrackingSettings,
    ) -> None:
        self.session_factory = session_factory
        self.quoter = quoter
        self.settings = settings
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, limit: Optional[int] = None) -> ReconcileSummary:
        summary = ReconcileSummary()
        async with self.session_factory() as session:
            models = await SqlOrderRepository(session).list_trackable(
                [status.value for status in TERMINAL_STATUSES], limit or self.settings.batch_size
            )
            order_ids = [model.id for model in models]

        for order_id in order_ids:
            summary.checked += 1
            try:
                await self._reconcile(order_id, summary)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Tracking reconciliation failed for order %s", order_id)
                summary.failed += 1
                summary.errors[order_id] = f"{type(exc).__name__}: {exc}"

        logger.info(
            "Tracking pass: %d checked, %d updated, %d unavailable, %d failed",
            summary.checked,
            summary.updated,
            summary.unavailable,
            summary.failed,
        )
        return summary

    async def _reconcile(self, order_id: str, summary: ReconcileSummary) -> None:
        async with self.session_factory() as session:
            orchestrator = OrderOrchestrator.with_session(session, quoter=self.quoter)
            order = await orchestrator.load(order_id)
            outcome = await orchestrator.refresh_tracking(order, source="poll")
            if outcome.result == "updated":
                await session.commit()
                summary.updated += 1
            elif outcome.result == "unavailable":
                summary.unavailable += 1
            elif outcome.result == "failed":
                summary.failed += 1
                summary.errors[order.order_number] = outcome.error or "unknown error"
            else:
                summary.unchanged += 1

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running or not self.settings.enabled:
            return
        self._task = asyncio.create_task(self._run(), name="tracking-reconciler")
        logger.info("Tracking reconciler started (every %.0fs)", self.settings.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Tracking reconciler task cancelled")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.settings.interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # pylint: disable=broad-except
                logger.exception("Tracking reconciliation pass failed")
