"""Delhivery (domestic) adapter."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from parcelhub.core.config import DelhiverySettings
from parcelhub.core.constants import DeliveryPartner, OrderStatus

from .auth import StaticKeyAuth
from .base import ProviderAdapter
from .exceptions import (
    NoServiceableRoute,
    ProviderUnavailable,
    ShipmentOutcomeUnknown,
    ShipmentRejected,
    TrackingUnavailable,
)
from .models import (
    Address,
    PackageInfo,
    ProviderQuote,
    Serviceability,
    ShipmentReceipt,
    TrackingEvent,
    TrackingInfo,
)
from .status import status_table

logger = logging.getLogger(__name__)

EXPRESS = "E"
SURFACE = "S"

DELHIVERY_STATUS_MAP = status_table(
    {
        "Pending": OrderStatus.PENDING,
        "Manifested": OrderStatus.CONFIRMED,
        "Dispatched": OrderStatus.CONFIRMED,
        "Pickup": OrderStatus.PICKED_UP,
        "Picked Up": OrderStatus.PICKED_UP,
        "In Transit": OrderStatus.IN_TRANSIT,
        "Pending Delivery": OrderStatus.IN_TRANSIT,
        "Out for Delivery": OrderStatus.OUT_FOR_DELIVERY,
        "Undelivered": OrderStatus.IN_TRANSIT,
        "Delivered": OrderStatus.DELIVERED,
        "RTO": OrderStatus.RTO,
        "Returned": OrderStatus.RTO,
        "Cancelled": OrderStatus.CANCELLED,
    }
)


class DelhiveryAdapter(ProviderAdapter):
    name = DeliveryPartner.DELHIVERY.value
    display_name = "Delhivery"
    status_map = DELHIVERY_STATUS_MAP

    def __init__(self, settings: DelhiverySettings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(
            base_url=settings.base_url,
            timeout=settings.timeout,
            auth=StaticKeyAuth(self.name, settings.api_token.get_secret_value(), scheme="Token"),
            transport=transport,
        )
        self.client_name = settings.client_name

    def tracking_url(self, tracking_id: str) -> Optional[str]:
        return f"https://www.delhivery.com/track/{tracking_id}"

    async def quote_rate(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> ProviderQuote:
        mode = SURFACE if (service_hint or "").strip().lower() in {"s", "surface"} else EXPRESS
        params = {
            "md": mode,
            "cgm": self.kg_to_grams(package.weight_kg),
            "o_pin": pickup.pincode,
            "d_pin": delivery.pincode,
            "ss": "Delivered",
            "pt": "Pre-paid",
        }
        logger.info("[%s] quoting %s -> %s (%s g, mode %s)", self.name, pickup.pincode, delivery.pincode, params["cgm"], mode)
        response = await self._request("quote_rate", "GET", "/api/kinko/v1/invoice/charges/.json", params=params)
        charges = _first_record(self._json("quote_rate", response))

        total = self.amount(charges.get("total_amount")) if charges else Decimal(0)
        if total <= 0:
            raise self._error(NoServiceableRoute, "quote_rate", f"no rate for {pickup.pincode} -> {delivery.pincode}")

        with self._parsing("quote_rate"):
            base = self.amount(charges.get("charge_DL") or charges.get("gross_amount"))
            additional = sum(
                (self.amount(charges.get(key)) for key in ("charge_DPH", "charge_pickup", "charge_AWB")),
                Decimal(0),
            )
            tax_data = charges.get("tax_data") or {}
            tax = sum((self.amount(tax_data.get(key)) for key in ("CGST", "SGST", "IGST")), Decimal(0))

        return ProviderQuote(
            base_rate=base,
            additional_charges=additional,
            tax=tax,
            total=total,
            estimated_delivery=_delivery_window(charges.get("tat")),
            service_type="Express" if mode == EXPRESS else "Surface",
            service_code=mode,
        )

    async def create_shipment(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        order_ref: str,
        service_code: Optional[str] = None,
    ) -> ShipmentReceipt:
        shipment = {
            "name": delivery.name,
            "add": ", ".join(part for part in (delivery.address, delivery.address_line2) if part),
            "pin": delivery.pincode,
            "city": delivery.city,
            "state": delivery.state,
            "country": "India",
            "phone": delivery.phone,
            "order": order_ref,
            "payment_mode": "Prepaid",
            "total_amount": str(package.declared_value),
            "products_desc": package.description or "General goods",
            "quantity": "1",
            "weight": self.kg_to_grams(package.weight_kg),
            "shipment_length": package.dimensions.length,
            "shipment_width": package.dimensions.width,
            "shipment_height": package.dimensions.height,
            "shipping_mode": "Surface" if service_code == SURFACE else "Express",
            "return_pin": pickup.pincode,
            "return_city": pickup.city,
            "return_state": pickup.state,
            "return_phone": pickup.phone,
            "return_add": pickup.address,
        }
        payload = {
            "shipments": [shipment],
            "pickup_location": {
                "name": pickup.warehouse_name or self.client_name or pickup.name,
                "add": pickup.address,
                "city": pickup.city,
                "pin_code": pickup.pincode,
                "country": "India",
                "phone": pickup.phone,
            },
        }
        response = await self._request(
            "create_shipment",
            "POST",
            "/api/cmu/create.json",
            data={"format": "json", "data": json.dumps(payload)},
            rejection=ShipmentRejected,
        )
        body = self._json_object("create_shipment", response)
        packages = body.get("packages")
        if packages and not (isinstance(packages, list) and isinstance(packages[0], dict)):
            raise self._error(ShipmentOutcomeUnknown, "create_shipment", "unexpected packages payload")
        package_result = packages[0] if packages else {}
        waybill = package_result.get("waybill") or package_result.get("awb")

        if not waybill or body.get("success") is False:
            remarks = package_result.get("remarks") or body.get("rmk")
            raise self._error(ShipmentRejected, "create_shipment", _join_remarks(remarks) or "no waybill returned")

        logger.info("[%s] booked %s as waybill %s", self.name, order_ref, waybill)
        return ShipmentReceipt(
            tracking_id=str(waybill),
            tracking_url=self.tracking_url(str(waybill)),
            partner_order_ref=package_result.get("refnum") or order_ref,
            raw=body,
        )

    async def track_shipment(self, tracking_id: str) -> TrackingInfo:
        response = await self._request(
            "track_shipment",
            "GET",
            "/api/v1/packages/json/",
            params={"waybill": tracking_id},
            rejection=TrackingUnavailable,
        )
        body = self._json("track_shipment", response)
        records = body.get("ShipmentData") if isinstance(body, dict) else None
        if not records:
            raise self._error(TrackingUnavailable, "track_shipment", f"no tracking data for {tracking_id}")
        if not isinstance(records, list) or not isinstance(records[0], dict):
            raise self._error(ProviderUnavailable, "track_shipment", "unexpected ShipmentData payload")

        with self._parsing("track_shipment"):
            shipment = records[0].get("Shipment", records[0])
            status = shipment.get("Status")
            if isinstance(status, dict):
                raw_status = status.get("Status") or ""
                location = status.get("StatusLocation")
            else:
                raw_status = status or ""
                location = shipment.get("CurrentLocation")

            history = []
            for scan in shipment.get("Scans") or []:
                if not isinstance(scan, dict):
                    continue
                detail = scan.get("ScanDetail", scan)
                history.append(
                    TrackingEvent(
                        status=detail.get("Scan") or detail.get("ScanType") or "",
                        description=detail.get("Instructions") or "",
                        location=detail.get("ScannedLocation") or "",
                        occurred_at=detail.get("ScanDateTime"),
                    )
                )

            return TrackingInfo(
                tracking_id=tracking_id,
                internal_status=self.map_status(raw_status),
                raw_status=raw_status,
                location=location,
                history=tuple(history),
                expected_delivery=shipment.get("ExpectedDeliveryDate") or shipment.get("ExpectedDate"),
            )

    async def check_serviceability(self, origin: str, destination: str) -> Serviceability:
        response = await self._request(
            "check_serviceability",
            "GET",
            "/c/api/pin-codes/json/",
            params={"filter_codes": destination},
        )
        body = self._json("check_serviceability", response)
        codes = body.get("delivery_codes") if isinstance(body, dict) else None
        if not codes:
            return Serviceability(serviceable=False, message=f"Pincode {destination} is not serviceable")
        return Serviceability(serviceable=True, message="Serviceable", options=("Express", "Surface"))


def _first_record(body: Any) -> dict[str, Any]:
    if isinstance(body, list):
        return body[0] if body and isinstance(body[0], dict) else {}
    if isinstance(body, dict):
        for key in ("data", "result"):
            nested = body.get(key)
            if nested:
                return _first_record(nested)
        return body
    return {}


def _delivery_window(tat: Any) -> str:
    if tat in (None, ""):
        return "3-5 business days"
    return f"{tat} business days"


def _join_remarks(remarks: Any) -> str:
    if isinstance(remarks, list):
        return "; ".join(str(item) for item in remarks if item)
    return str(remarks) if remarks else ""
