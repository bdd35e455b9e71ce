"""Partner name to adapter resolution."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import httpx

from parcelhub.core.config import Settings
from parcelhub.core.constants import DeliveryPartner

from .base import ProviderAdapter
from .delhivery import DelhiveryAdapter
from .exceptions import UnknownProvider
from .nimbuspost import NimbusPostAdapter
from .overseas_logistic import OverseasLogisticAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds exactly one adapter instance per registered partner."""

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        if adapter.name in self._adapters:
            raise ValueError(f"adapter for '{adapter.name}' already registered")
        self._adapters[adapter.name] = adapter

    def resolve(self, name: object) -> ProviderAdapter:
        key = name.strip().lower() if isinstance(name, str) else name
        if not isinstance(key, str) or key not in self._adapters:
            raise UnknownProvider(name, self._adapters)
        return self._adapters[key]

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._adapters

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()


def build_registry(settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderRegistry:
    providers = settings.providers
    registry = ProviderRegistry(
        [
            DelhiveryAdapter(providers.delhivery, transport=transport),
            NimbusPostAdapter(providers.nimbuspost, transport=transport),
            OverseasLogisticAdapter(providers.overseas_logistic, transport=transport),
        ]
    )
    # registered set must match the partner enum
    missing = {partner.value for partner in DeliveryPartner} - set(registry.names())
    if missing:
        raise RuntimeError(f"no adapter registered for: {', '.join(sorted(missing))}")
    logger.info("Provider registry ready: %s", ", ".join(registry.names()))
    return registry
