"""Overseas Logistic (international) adapter.

The partner exposes no rate endpoint, so quotes come from a local rate card
with GST added. Shipment creation and tracking go through the OAuth2
protected REST API.
"""

from __future__ import annotations

import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx

from parcelhub.core.config import OverseasLogisticSettings
from parcelhub.core.constants import DeliveryPartner, OrderStatus

from .auth import BearerTokenAuth, TokenCache
from .base import ProviderAdapter
from .exceptions import ProviderUnavailable, ShipmentRejected, TrackingUnavailable
from .models import (
    Address,
    PackageInfo,
    ProviderQuote,
    ServiceOption,
    ShipmentReceipt,
    TrackingEvent,
    TrackingInfo,
)
from .status import status_table

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "UPS_SAVER"
DELIVERY_WINDOW = "5-7 business days"
GST_RATE = Decimal("0.18")
DEFAULT_TOKEN_LIFETIME = 3600
CENT = Decimal("0.01")

# service -> (base, per kg), rupees
RATE_CARD: dict[str, tuple[Decimal, Decimal]] = {
    "UPS_SAVER": (Decimal(800), Decimal(400)),
    "UPS_EXPRESS": (Decimal(1200), Decimal(600)),
    "DHL_EXPRESS": (Decimal(1000), Decimal(500)),
    "FEDEX_PRIORITY": (Decimal(1100), Decimal(550)),
    "FEDEX_ECONOMY": (Decimal(700), Decimal(350)),
}

OVERSEAS_STATUS_MAP = status_table(
    {
        "MANIFESTED": OrderStatus.CONFIRMED,
        "BOOKED": OrderStatus.CONFIRMED,
        "PKL": OrderStatus.PICKED_UP,
        "PKD": OrderStatus.PICKED_UP,
        "PICKUP": OrderStatus.PICKED_UP,
        "Picked Up": OrderStatus.PICKED_UP,
        "IN_TRANSIT": OrderStatus.IN_TRANSIT,
        "TRANSIT": OrderStatus.IN_TRANSIT,
        "DEP": OrderStatus.IN_TRANSIT,
        "ARR": OrderStatus.IN_TRANSIT,
        "OUT": OrderStatus.OUT_FOR_DELIVERY,
        "OFD": OrderStatus.OUT_FOR_DELIVERY,
        "UNDELIVERED": OrderStatus.IN_TRANSIT,
        "DLV": OrderStatus.DELIVERED,
        "POD": OrderStatus.DELIVERED,
        "RTO": OrderStatus.RTO,
        "RETURN": OrderStatus.RTO,
        "Returned": OrderStatus.RTO,
        "CANCEL": OrderStatus.CANCELLED,
        "CANCELLED": OrderStatus.CANCELLED,
    }
)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def price_service(service: str, weight_kg: float) -> ServiceOption:
    base, per_kg = RATE_CARD[service]
    weight_charge = _cents(per_kg * Decimal(str(weight_kg)))
    subtotal = base + weight_charge
    total = _cents(subtotal * (1 + GST_RATE))
    return ServiceOption(
        code=service,
        name=service.replace("_", " ").title(),
        base_rate=_cents(base),
        additional_charges=weight_charge,
        total=total,
        estimated_delivery=DELIVERY_WINDOW,
    )


class OverseasLogisticAdapter(ProviderAdapter):
    name = DeliveryPartner.OVERSEAS_LOGISTIC.value
    display_name = "Overseas Logistic"
    international = True
    status_map = OVERSEAS_STATUS_MAP

    def __init__(
        self,
        settings: OverseasLogisticSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._username = settings.username
        self._password = settings.password.get_secret_value()
        self.account_code = settings.account_code
        self.token_cache = TokenCache(self._fetch_token)
        super().__init__(
            base_url=settings.base_url,
            timeout=settings.timeout,
            auth=BearerTokenAuth(self.name, self.token_cache),
            transport=transport,
        )

    def tracking_url(self, tracking_id: str) -> Optional[str]:
        return f"{self.base_url.rstrip('/')}/api/tracking/{tracking_id}"

    async def _fetch_token(self) -> tuple[str, float]:
        if not self._username or not self._password:
            raise self._error(ProviderUnavailable, "authenticate", "credentials not configured")

        logger.info("[%s] requesting OAuth2 access token", self.name)
        response = await self._request(
            "authenticate",
            "POST",
            "/token",
            authenticated=False,
            data={"grant_type": "client_credentials", "username": self._username, "password": self._password},
        )
        body = self._json_object("authenticate", response)
        token = body.get("access_token")
        if not token:
            raise self._error(ProviderUnavailable, "authenticate", body.get("error_description") or "no access token")
        with self._parsing("authenticate"):
            lifetime = float(body.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
        return str(token), lifetime

    async def quote_rate(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        service_hint: Optional[str] = None,
    ) -> ProviderQuote:
        service = (service_hint or DEFAULT_SERVICE).strip().upper()
        if service not in RATE_CARD:
            service = DEFAULT_SERVICE
        options = tuple(price_service(code, package.weight_kg) for code in RATE_CARD)
        chosen = next(option for option in options if option.code == service)
        subtotal = chosen.base_rate + chosen.additional_charges
        return ProviderQuote(
            base_rate=chosen.base_rate,
            additional_charges=chosen.additional_charges,
            tax=chosen.total - subtotal,
            total=chosen.total,
            estimated_delivery=DELIVERY_WINDOW,
            service_type=service,
            service_code=service,
            options=options,
        )

    async def create_shipment(
        self,
        pickup: Address,
        delivery: Address,
        package: PackageInfo,
        order_ref: str,
        service_code: Optional[str] = None,
    ) -> ShipmentReceipt:
        timestamp = int(time.time() * 1000)
        payload = {
            "AccountCode": self.account_code,
            "Sender": {
                "SenderName": pickup.company_name or pickup.name,
                "SenderContactPerson": pickup.contact_person or pickup.name,
                "SenderAddressLine1": pickup.address,
                "SenderAddressLine2": pickup.address_line2,
                "SenderAddressLine3": pickup.address_line3,
                "SenderPincode": pickup.pincode,
                "SenderCity": pickup.city,
                "SenderState": pickup.state,
                "SenderTelephone": pickup.phone,
                "SenderEmailId": pickup.email,
                "KYCType": pickup.kyc_type or "GSTIN (Normal)",
                "KYCNo": pickup.kyc_no,
            },
            "Receiver": {
                "ReceiverName": delivery.company_name or delivery.name,
                "ReceiverContactPerson": delivery.contact_person or delivery.name,
                "ReceiverAddressLine1": delivery.address,
                "ReceiverAddressLine2": delivery.address_line2,
                "ReceiverAddressLine3": delivery.address_line3,
                "ReceiverZipcode": delivery.pincode,
                "ReceiverCity": delivery.city,
                "ReceiverState": delivery.state,
                "ReceiverCountry": delivery.country or "US",
                "ReceiverTelephone": delivery.phone,
                "ReceiverEmailid": delivery.email,
                "VatId": delivery.vat_id,
            },
            "ServiceDetails": {
                "Service": service_code or DEFAULT_SERVICE,
                "GoodsType": "NDox",
                "PackageType": "PACKAGE",
            },
            "PackageDetails": {
                "PackageDetail": [
                    {
                        "Length": package.dimensions.length,
                        "Width": package.dimensions.width,
                        "Height": package.dimensions.height,
                        "ActualWeight": package.weight_kg,
                    }
                ]
            },
            "AdditionalDetails": {
                "ProductDetails": [
                    {
                        "BoxNo": "1",
                        "Description": package.description or "General Merchandise",
                        "UnitType": "PCS",
                        "Qty": 1,
                        "UnitRate": float(package.declared_value or 100),
                        "ShipPieceIGST": 0,
                        "PieceWt": package.weight_kg,
                    }
                ],
                "InvoiceCurrency": "INR",
                "InvoiceNo": f"INV-{order_ref}",
                "TermsOfSale": "FOB",
                "ReasonForExport": "SALE",
                "CSB_Type": "CSB 4",
                "CustomerRefNo": order_ref,
                "DutyTax": "DDU",
                "TransactionId": f"TXN{timestamp}",
            },
        }
        response = await self._request(
            "create_shipment", "POST", "/api/shipment/create", json=payload, rejection=ShipmentRejected
        )
        body = self._json_object("create_shipment", response)
        status = str(body.get("Status") or body.get("status") or "")
        message = body.get("Message") or body.get("message") or ""
        if status.lower() in {"error", "failed"}:
            raise self._error(ShipmentRejected, "create_shipment", message or "shipment creation failed")

        awb = _first_present(body, ("Awbno", "AwbNo", "awb", "AWB", "WaybillNo"))
        if not awb:
            raise self._error(ShipmentRejected, "create_shipment", message or "no AWB returned")

        logger.info("[%s] booked %s as AWB %s", self.name, order_ref, awb)
        return ShipmentReceipt(
            tracking_id=str(awb),
            tracking_url=self.tracking_url(str(awb)),
            partner_order_ref=body.get("OrderId") or body.get("orderId"),
            raw=body,
        )

    async def track_shipment(self, tracking_id: str) -> TrackingInfo:
        response = await self._request(
            "track_shipment", "GET", f"/api/tracking/{tracking_id}", rejection=TrackingUnavailable
        )
        body = self._json_object("track_shipment", response)
        if body.get("Status") is False or str(body.get("status", "")).lower() == "error":
            raise self._error(TrackingUnavailable, "track_shipment", body.get("Message") or "tracking failed")

        info = body.get("ShipmentInfo") or body
        if not isinstance(info, dict):
            raise self._error(ProviderUnavailable, "track_shipment", "unexpected ShipmentInfo payload")
        raw_status = info.get("Status") or info.get("EventCode") or ""
        if not isinstance(raw_status, str):
            raw_status = ""
        with self._parsing("track_shipment"):
            events = info.get("Events") or body.get("Events") or []
            history = tuple(
                TrackingEvent(
                    status=event.get("EventCode") or event.get("Status") or "",
                    description=event.get("EventDescription") or event.get("Description") or "",
                    location=event.get("Location") or "",
                    occurred_at=_event_timestamp(event),
                )
                for event in events
                if isinstance(event, dict)
            )
        return TrackingInfo(
            tracking_id=tracking_id,
            internal_status=self.map_status(raw_status),
            raw_status=raw_status,
            location=info.get("Location") or info.get("Destination"),
            history=history,
            expected_delivery=info.get("ExpectedDelivery"),
        )


def _first_present(body: dict[str, Any], keys: tuple[str, ...]) -> Optional[Any]:
    for key in keys:
        if body.get(key):
            return body[key]
    return None


def _event_timestamp(event: dict[str, Any]) -> Optional[str]:
    date, clock = event.get("EventDate"), event.get("EventTime")
    if date and clock:
        return f"{date}T{clock}"
    return event.get("Timestamp") or date
