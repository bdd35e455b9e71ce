"""Pydantic schemas used across the HTTP interface."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from parcelhub.core.constants import OrderType


class AddressPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=6, max_length=20)
    address: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=3, max_length=12)
    city: str = ""
    state: str = ""
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


class DimensionsPayload(BaseModel):
    length: float = Field(10.0, gt=0, description="cm")
    width: float = Field(10.0, gt=0, description="cm")
    height: float = Field(10.0, gt=0, description="cm")


class PackagePayload(BaseModel):
    weight_kg: float = Field(..., gt=0)
    dimensions: DimensionsPayload = Field(default_factory=DimensionsPayload)
    declared_value: Decimal = Field(Decimal(0), ge=0, description="rupees")
    description: str = ""


class RateRequest(BaseModel):
    partner: Optional[str] = Field(None, description="Quote a single partner; all partners when omitted")
    pickup: AddressPayload
    delivery: AddressPayload
    package: PackagePayload
    service_type: Optional[str] = None


class ServiceOptionResponse(BaseModel):
    code: str
    name: str
    base_rate: Decimal
    additional_charges: Decimal
    total: Decimal
    estimated_delivery: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RateResponse(BaseModel):
    partner: str
    base_paise: int
    surcharge_paise: int
    tax_paise: int
    total_paise: int
    currency: str
    estimated_delivery: Optional[str] = None
    service_type: Optional[str] = None
    service_code: Optional[str] = None
    fallback: bool = False
    options: list[ServiceOptionResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class RateListResponse(BaseModel):
    rates: list[RateResponse] = Field(default_factory=list)


class ServiceabilityResponse(BaseModel):
    partner: str
    origin: str
    destination: str
    serviceable: bool
    message: str = ""
    options: list[str] = Field(default_factory=list)


class OrderCreateRequest(BaseModel):
    partner: str
    pickup: AddressPayload
    delivery: AddressPayload
    package: PackagePayload
    order_type: OrderType = OrderType.DOMESTIC
    service_type: Optional[str] = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    order_type: str
    partner: str
    service_type: Optional[str] = None
    status: str
    payment_status: str
    payment_method: str
    payment_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    base_paise: int
    surcharge_paise: int
    tax_paise: int
    total_paise: int
    currency: str
    fallback_quote: bool = False
    awb: Optional[str] = None
    tracking_url: Optional[str] = None
    partner_order_ref: Optional[str] = None
    pickup: dict[str, Any]
    delivery: dict[str, Any]
    package: dict[str, Any]
    status_history: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderListResponse(BaseModel):
    total: int
    orders: list[OrderResponse] = Field(default_factory=list)


class OrderPlacedResponse(BaseModel):
    order: OrderResponse
    transaction_id: str
    balance_after_paise: int


class TrackingResponse(BaseModel):
    order: OrderResponse
    result: str
    tracking: Optional[dict[str, Any]] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class CancellationResponse(BaseModel):
    order: OrderResponse
    refund_transaction_id: Optional[str] = None
    refunded_paise: int = 0
    balance_after_paise: Optional[int] = None


class WalletSnapshotResponse(BaseModel):
    account_id: str
    balance_paise: int
    currency: str
    updated_at: Optional[datetime] = None


class WalletTransactionResponse(BaseModel):
    id: str
    sequence: int
    type: str
    amount_paise: int
    balance_after_paise: int
    currency: str
    description: str
    order_id: Optional[str] = None
    awb: Optional[str] = None
    created_at: datetime


class WalletTransactionListResponse(BaseModel):
    total: int
    total_credit_paise: int
    total_debit_paise: int
    transactions: list[WalletTransactionResponse] = Field(default_factory=list)


class WalletTopupRequest(BaseModel):
    amount_paise: int = Field(..., gt=0)
    payment_channel: Optional[str] = None
    reference_no: Optional[str] = Field(None, max_length=100)


class WalletTopupResponse(BaseModel):
    id: str
    amount_paise: int
    currency: str
    status: str
    payment_channel: Optional[str] = None
    reference_no: str
    ledger_transaction_id: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None


class WalletTopupListResponse(BaseModel):
    topups: list[WalletTopupResponse] = Field(default_factory=list)


class OrderStatusWebhook(BaseModel):
    """Partner status push. Identifiers are checked by the handler, not here."""

    order_id: Optional[str] = Field(None, alias="orderId")
    awb: Optional[str] = None
    status: Optional[str] = None
    tracking_data: Optional[dict[str, Any]] = Field(None, alias="trackingData")
    partner_name: Optional[str] = Field(None, alias="partnerName")

    model_config = ConfigDict(populate_by_name=True)


class WebhookAck(BaseModel):
    success: bool = True
    order_id: str
    order_number: str
    status: str


class TopupEvent(BaseModel):
    reference_no: str = Field(..., min_length=1, max_length=100)
    amount_paise: int = Field(..., gt=0)
    status: Literal["success", "failed"] = "success"


class BookingTaskResponse(BaseModel):
    order_id: str
    partner: str
    status: str
    attempts: int
    next_attempt_at: datetime
    claimed_at: Optional[datetime] = None
    booked_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BookingTaskListResponse(BaseModel):
    tasks: list[BookingTaskResponse] = Field(default_factory=list)


class AdminCreditRequest(BaseModel):
    account_id: str = Field(..., min_length=1, max_length=64)
    amount_paise: int = Field(..., gt=0)
    description: str = Field("Manual credit", max_length=255)


class LedgerAuditResponse(BaseModel):
    account_id: str
    stored_balance_paise: int
    computed_balance_paise: int
    transaction_count: int
    consistent: bool


class LedgerAuditListResponse(BaseModel):
    consistent: bool
    accounts: list[LedgerAuditResponse] = Field(default_factory=list)


class ReconcileResponse(BaseModel):
    checked: int
    updated: int
    unchanged: int
    unavailable: int
    failed: int
    errors: dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
    partners: list[str] = Field(default_factory=list)
    booking_worker: bool = False
    tracking_reconciler: bool = False
