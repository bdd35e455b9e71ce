"""NimbusPost (domestic aggregator) adapter."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from parcelhub.core.config import NimbusPostSettings
from parcelhub.core.constants import DeliveryPartner, OrderStatus

from .auth import BearerTokenAuth, TokenCache
from .base import ProviderAdapter
from .exceptions import NoServiceableRoute, ProviderUnavailable, ShipmentRejected, TrackingUnavailable
from .models import (
    Address,
    PackageInfo,
    ProviderQuote,
    Serviceability,
    ServiceOption,
    ShipmentReceipt,
    TrackingEvent,
    TrackingInfo,
)
from .status import status_table

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_WINDOW = "3-5 business days"

NIMBUSPOST_STATUS_MAP = status_table(
    {
        "booked": OrderStatus.CONFIRMED,
        "pending pickup": OrderStatus.CONFIRMED,
        "manifested": OrderStatus.IN_TRANSIT,
        "shipped": OrderStatus.IN_TRANSIT,
        "in_transit": OrderStatus.IN_TRANSIT,
        "in transit": OrderStatus.IN_TRANSIT,
        "out_for_delivery": OrderStatus.OUT_FOR_DELIVERY,
        "undelivered": OrderStatus.IN_TRANSIT,
        "delivered": OrderStatus.DELIVERED,
        "rto": OrderStatus.RTO,
        "rto_in_transit": OrderStatus.RTO,
        "rto_delivered": OrderStatus.RTO,
        "cancelled": OrderStatus.CANCELLED,
    }
)


class NimbusPostAdapter(ProviderAdapter):
    name = DeliveryPartner.NIMBUSPOST.value
    display_name = "NimbusPost"
    status_map = NIMBUSPOST_STATUS_MAP

    def __init__(self, settings: NimbusPostSettings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._email = settings.email
        self._password = settings.password.get_secret_value()
        self._session_ttl = settings.session_ttl_hours * 3600
        self.token_cache = TokenCache(self._login)
        super().__init__(
            base_url=settings.base_url,
            timeout=settings.timeout,
            auth=BearerTokenAuth(self.name, self.token_cache),
            transport=transport,
        )

    def tracking_url(self, tracking_id: str) -> Optional[str]:
        return f"https://ship.nimbuspost.com/tracking/{tracking_id}"

    async def _login(self) -> tuple[str, float]:
        if not self._email or not self._password:
            raise self._error(ProviderUnavailable, "authenticate", "credentials not configured")

        logger.info("[%s] requesting session token", self.name)
        response = await self._request(
            "authenticate",
            "POST",
            "/users/login",
            authenticated=False,
            json={"email": self._email, "password": self._password},
        )
        body = self._json_object("authenticate", response)
        token = body.get("data")
        if not body.get("status") or not isinstance(token, str) or not token:
            raise self._error(ProviderUnavailable, "authenticate", body.get("message") or "authentication failed")
        return token, float(self._session_ttl)

    async def quote_rate(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> ProviderQuote:
        payload = {
            "origin": pickup.pincode,
            "destination": delivery.pincode,
            "payment_type": "prepaid",
            "order_amount": _whole(package.declared_value or 1000),
            "weight": self.kg_to_grams(package.weight_kg),
            "length": _whole(package.dimensions.length),
            "breadth": _whole(package.dimensions.width),
            "height": _whole(package.dimensions.height),
        }
        response = await self._request("quote_rate", "POST", "/courier/serviceability", json=payload)
        body = self._json_object("quote_rate", response)
        couriers = body.get("data")
        if not body.get("status") or not couriers:
            raise self._error(NoServiceableRoute, "quote_rate", body.get("message") or "no courier services available")

        with self._parsing("quote_rate"):
            options = sorted(
                (
                    ServiceOption(
                        code=str(courier.get("id")),
                        name=courier.get("name") or str(courier.get("id")),
                        base_rate=self.amount(courier.get("freight_charges")),
                        additional_charges=self.amount(courier.get("cod_charges")),
                        total=self.amount(courier.get("total_charges")),
                        estimated_delivery=courier.get("edd") or DEFAULT_DELIVERY_WINDOW,
                    )
                    for courier in couriers
                    if isinstance(courier, dict)
                ),
                key=lambda option: option.total,
            )
        if not options:
            raise self._error(NoServiceableRoute, "quote_rate", "no usable courier options in response")
        chosen = _pick_option(options, service_hint)
        logger.info("[%s] %d courier options, using %s at %s", self.name, len(options), chosen.name, chosen.total)

        return ProviderQuote(
            base_rate=chosen.base_rate,
            additional_charges=chosen.additional_charges,
            tax=Decimal(0),
            total=chosen.total,
            estimated_delivery=chosen.estimated_delivery,
            service_type=chosen.name,
            service_code=chosen.code,
            options=tuple(options),
        )

    async def create_shipment(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        order_ref: str,
        service_code: Optional[str] = None,
    ) -> ShipmentReceipt:
        declared = _whole(package.declared_value or 1000)
        payload: dict[str, Any] = {
            "order_number": order_ref,
            "shipping_charges": 0,
            "discount": 0,
            "cod_charges": 0,
            "payment_type": "prepaid",
            "order_amount": declared,
            "package_weight": self.kg_to_grams(package.weight_kg),
            "package_length": _whole(package.dimensions.length),
            "package_breadth": _whole(package.dimensions.width),
            "package_height": _whole(package.dimensions.height),
            "request_auto_pickup": "Yes",
            "consignee": {
                "name": delivery.name,
                "address": delivery.address,
                "address_2": delivery.address_line2,
                "city": delivery.city,
                "state": delivery.state,
                "pincode": delivery.pincode,
                "phone": delivery.phone,
            },
            "pickup": {
                "warehouse_name": pickup.warehouse_name or "Warehouse 1",
                "name": pickup.name,
                "address": pickup.address,
                "address_2": pickup.address_line2,
                "city": pickup.city,
                "state": pickup.state,
                "pincode": pickup.pincode,
                "phone": pickup.phone,
            },
            "order_items": [
                {"name": package.description or "Product", "qty": "1", "price": str(declared), "sku": "SKU001"}
            ],
        }
        if service_code:
            payload["courier_id"] = str(service_code)

        response = await self._request(
            "create_shipment", "POST", "/shipments", json=payload, rejection=ShipmentRejected
        )
        body = self._json_object("create_shipment", response)
        data = body.get("data")
        if not body.get("status") or not isinstance(data, dict) or not data.get("awb_number"):
            message = body.get("message") or body.get("error") or "shipment creation failed"
            raise self._error(ShipmentRejected, "create_shipment", str(message))

        awb = str(data["awb_number"])
        logger.info("[%s] booked %s as AWB %s via %s", self.name, order_ref, awb, data.get("courier_name"))
        return ShipmentReceipt(
            tracking_id=awb,
            tracking_url=self.tracking_url(awb),
            partner_order_ref=str(data.get("order_id") or data.get("shipment_id") or order_ref),
            label_url=data.get("label"),
            raw=data,
        )

    async def track_shipment(self, tracking_id: str) -> TrackingInfo:
        response = await self._request(
            "track_shipment", "GET", f"/shipments/track/{tracking_id}", rejection=TrackingUnavailable
        )
        body = self._json_object("track_shipment", response)
        data = body.get("data")
        if not body.get("status") or not isinstance(data, dict):
            raise self._error(TrackingUnavailable, "track_shipment", f"no tracking data for {tracking_id}")

        raw_status = data.get("status") or ""
        with self._parsing("track_shipment"):
            history = tuple(
                TrackingEvent(
                    status=event.get("status") or event.get("status_code") or "",
                    description=event.get("message") or "",
                    location=event.get("location") or "",
                    occurred_at=event.get("event_time"),
                )
                for event in data.get("tracking_history") or []
                if isinstance(event, dict)
            )
        return TrackingInfo(
            tracking_id=tracking_id,
            internal_status=self.map_status(raw_status),
            raw_status=raw_status,
            location=data.get("current_location"),
            history=history,
            expected_delivery=data.get("estimated_delivery"),
        )

    async def check_serviceability(self, origin: str, destination: str) -> Serviceability:
        response = await self._request(
            "check_serviceability", "GET", f"/courier/serviceable-pincodes/{destination}"
        )
        body = self._json_object("check_serviceability", response)
        data = body.get("data")
        if not body.get("status") or not data:
            return Serviceability(serviceable=False, message=f"Pincode {destination} is not serviceable")
        names: tuple[str, ...] = ()
        if isinstance(data, list):
            names = tuple(str(item.get("name")) for item in data if isinstance(item, dict) and item.get("name"))
        return Serviceability(serviceable=True, message="Serviceable", options=names)


def _whole(value: Any) -> int:
    return int(round(float(value)))


def _pick_option(options: list[ServiceOption], hint: Optional[str]) -> ServiceOption:
    if hint:
        wanted = hint.strip().lower()
        for option in options:
            if option.code.lower() == wanted or option.name.lower() == wanted:
                return option
    return options[0]
