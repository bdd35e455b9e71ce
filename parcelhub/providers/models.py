"""Normalized value objects exchanged with provider adapters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal
from typing import Any, Optional

from parcelhub.core.constants import DEFAULT_CURRENCY, OrderStatus
from parcelhub.core.money import to_decimal


@dataclass(slots=True, frozen=True)
class Address:
    name: str
    phone: str
    address: str
    pincode: str
    city: str
    state: str
    country: str = "IN"
    email: str = ""
    company_name: str = ""
    contact_person: str = ""
    address_line2: str = ""
    address_line3: str = ""
    warehouse_name: str = ""
    kyc_type: str = ""
    kyc_no: str = ""
    vat_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(slots=True, frozen=True)
class Dimensions:
    length: float = 10.0
    width: float = 10.0
    height: float = 10.0


@dataclass(slots=True, frozen=True)
class PackageInfo:
    weight_kg: float
    dimensions: Dimensions = field(default_factory=Dimensions)
    declared_value: Decimal = Decimal(0)
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "weight_kg": self.weight_kg,
            "dimensions": asdict(self.dimensions),
            "declared_value": str(self.declared_value),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PackageInfo":
        dims = data.get("dimensions") or {}
        return cls(
            weight_kg=float(data["weight_kg"]),
            dimensions=Dimensions(**dims),
            declared_value=to_decimal(data.get("declared_value")),
            description=data.get("description") or "",
        )


@dataclass(slots=True, frozen=True)
class ServiceOption:
    code: str
    name: str
    base_rate: Decimal
    additional_charges: Decimal
    total: Decimal
    estimated_delivery: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ProviderQuote:
    """Rate returned by an adapter, amounts in rupees."""

    base_rate: Decimal
    additional_charges: Decimal
    tax: Decimal
    total: Decimal
    currency: str = DEFAULT_CURRENCY
    estimated_delivery: Optional[str] = None
    service_type: Optional[str] = None
    service_code: Optional[str] = None
    options: tuple[ServiceOption, ...] = ()


@dataclass(slots=True, frozen=True)
class ShipmentReceipt:
    tracking_id: str
    tracking_url: Optional[str]
    partner_order_ref: Optional[str] = None
    label_url: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class TrackingEvent:
    status: str
    description: str = ""
    location: str = ""
    occurred_at: Optional[str] = None


@dataclass(slots=True, frozen=True)
class TrackingInfo:
    tracking_id: str
    internal_status: OrderStatus
    raw_status: str
    location: Optional[str] = None
    history: tuple[TrackingEvent, ...] = ()
    expected_delivery: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tracking_id": self.tracking_id,
            "status": self.internal_status.value,
            "raw_status": self.raw_status,
            "location": self.location,
            "expected_delivery": self.expected_delivery,
            "history": [asdict(event) for event in self.history],
        }


@dataclass(slots=True, frozen=True)
class Serviceability:
    serviceable: bool
    message: str = ""
    options: tuple[str, ...] = ()
