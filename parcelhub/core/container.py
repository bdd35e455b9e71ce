"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcelhub.core.config import Settings, get_settings
from parcelhub.domain.bookings.worker import BookingWorker
from parcelhub.domain.pricing import RateQuoter
from parcelhub.domain.tracking import TrackingReconciler
from parcelhub.infrastructure.database.session import get_engine, get_session_factory
from parcelhub.providers import ProviderRegistry, build_registry


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    registry: ProviderRegistry
    quoter: RateQuoter
    worker: BookingWorker
    reconciler: TrackingReconciler

    @classmethod
    def build(
        cls,
        settings: Settings,
        registry: Optional[ProviderRegistry] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> "ApplicationContainer":
        if registry is None:
            registry = build_registry(settings)
        quoter = RateQuoter(registry, settings.pricing)
        session_factory = session_factory or get_session_factory()
        return cls(
            settings=settings,
            registry=registry,
            quoter=quoter,
            worker=BookingWorker(session_factory, quoter, settings.booking),
            reconciler=TrackingReconciler(session_factory, quoter, settings.tracking),
        )

    def init_infrastructure(self) -> None:
        """Ensure infrastructure singletons (database engine, etc.) are initialised."""
        get_engine()

    def start_background(self) -> None:
        self.worker.start()
        self.reconciler.start()

    async def shutdown(self) -> None:
        await self.worker.stop()
        await self.reconciler.stop()
        await self.registry.aclose()


@lru_cache()
def get_container() -> ApplicationContainer:
    container = ApplicationContainer.build(get_settings())
    container.init_infrastructure()
    return container


__all__ = ["ApplicationContainer", "get_container"]
