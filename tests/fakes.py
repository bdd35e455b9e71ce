"""In-memory stand-ins for delivery partners."""

from __future__ import annotations

import asyncio
from collections import deque
from decimal import Decimal
from typing import Iterable, Optional, Union

import httpx

from parcelhub.providers import (
    Address,
    PackageInfo,
    ProviderAdapter,
    ProviderQuote,
    ProviderUnavailable,
    ShipmentReceipt,
    TrackingInfo,
    TrackingUnavailable,
)
from parcelhub.providers.delhivery import DELHIVERY_STATUS_MAP

Outcome = Union[ShipmentReceipt, Exception]


def _offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("fake adapters never touch the network", request=request)


def sample_address(pincode: str = "110001", name: str = "Asha Verma") -> Address:
    return Address(
        name=name,
        phone="9876543210",
        address="12 MG Road",
        pincode=pincode,
        city="New Delhi",
        state="Delhi",
    )


def sample_package(weight_kg: float = 2.5) -> PackageInfo:
    return PackageInfo(weight_kg=weight_kg, declared_value=Decimal("1500"), description="Books")


def receipt(awb: str) -> ShipmentReceipt:
    return ShipmentReceipt(tracking_id=awb, tracking_url=f"https://track.test/{awb}", partner_order_ref=f"REF-{awb}")


class FakeAdapter(ProviderAdapter):
    """Scriptable adapter: set ``quote``, queue shipment outcomes, set ``tracking``."""

    status_map = DELHIVERY_STATUS_MAP

    def __init__(
        self,
        name: str = "delhivery",
        *,
        quote: Union[ProviderQuote, Exception, None] = None,
        shipments: Iterable[Outcome] = (),
        tracking: Union[TrackingInfo, Exception, None] = None,
        international: bool = False,
        booking_delay: float = 0.0,
    ) -> None:
        self.name = name
        self.international = international
        super().__init__(base_url="https://fake.test", timeout=5.0, transport=httpx.MockTransport(_offline))
        self.quote = quote if quote is not None else ProviderQuote(
            base_rate=Decimal("100.00"),
            additional_charges=Decimal("20.00"),
            tax=Decimal("21.60"),
            total=Decimal("141.60"),
            estimated_delivery="2-3 business days",
            service_type="Express",
            service_code="E",
        )
        self.shipments: deque[Outcome] = deque(shipments)
        self.tracking = tracking
        self.booking_delay = booking_delay
        self.quote_calls = 0
        self.shipment_calls: list[str] = []
        self.tracking_calls: list[str] = []

    async def quote_rate(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> ProviderQuote:
        self.quote_calls += 1
        if isinstance(self.quote, Exception):
            raise self.quote
        return self.quote

    async def create_shipment(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        order_ref: str,
        service_code: Optional[str] = None,
    ) -> ShipmentReceipt:
        self.shipment_calls.append(order_ref)
        if self.booking_delay:
            await asyncio.sleep(self.booking_delay)
        outcome = self.shipments.popleft() if self.shipments else receipt(f"AWB{len(self.shipment_calls):06d}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def track_shipment(self, tracking_id: str) -> TrackingInfo:
        self.tracking_calls.append(tracking_id)
        if self.tracking is None:
            raise TrackingUnavailable("no scans yet", partner=self.name, operation="track_shipment")
        if isinstance(self.tracking, Exception):
            raise self.tracking
        return self.tracking

    def tracking_url(self, tracking_id: str) -> Optional[str]:
        return f"https://track.test/{tracking_id}"


def outage(partner: str = "delhivery", operation: str = "quote_rate") -> ProviderUnavailable:
    return ProviderUnavailable("connection refused", partner=partner, operation=operation)
