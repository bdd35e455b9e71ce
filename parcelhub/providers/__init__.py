"""Delivery-partner adapters behind a single contract."""

from .base import ProviderAdapter
from .exceptions import (
    NoServiceableRoute,
    ProviderError,
    ProviderUnavailable,
    ShipmentOutcomeUnknown,
    ShipmentRejected,
    TrackingUnavailable,
    UnknownProvider,
)
from .models import (
    Address,
    Dimensions,
    PackageInfo,
    ProviderQuote,
    Serviceability,
    ServiceOption,
    ShipmentReceipt,
    TrackingEvent,
    TrackingInfo,
)
from .registry import ProviderRegistry, build_registry

__all__ = [
    "Address",
    "Dimensions",
    "NoServiceableRoute",
    "PackageInfo",
    "ProviderAdapter",
    "ProviderError",
    "ProviderQuote",
    "ProviderRegistry",
    "ProviderUnavailable",
    "Serviceability",
    "ServiceOption",
    "ShipmentOutcomeUnknown",
    "ShipmentReceipt",
    "ShipmentRejected",
    "TrackingEvent",
    "TrackingInfo",
    "TrackingUnavailable",
    "UnknownProvider",
    "build_registry",
]
