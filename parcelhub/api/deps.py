"""Reusable FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.container import ApplicationContainer, get_container
from parcelhub.domain.orders import OrderOrchestrator
from parcelhub.domain.pricing import RateQuoter
from parcelhub.infrastructure.database.session import get_session


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_quoter(container: ApplicationContainer = Depends(get_container)) -> RateQuoter:
    return container.quoter


def get_orchestrator(
    db: AsyncSession = Depends(get_db_session),
    container: ApplicationContainer = Depends(get_container),
) -> OrderOrchestrator:
    return OrderOrchestrator.with_session(db, quoter=container.quoter, on_enqueued=container.worker.notify)


__all__ = ["get_db_session", "get_orchestrator", "get_quoter"]
