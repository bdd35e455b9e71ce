"""Order domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from parcelhub.core.constants import OrderStatus, OrderType, PaymentStatus
from parcelhub.domain.wallets.models import LedgerTransaction
from parcelhub.providers.models import Address, PackageInfo


@dataclass(slots=True)
class OrderRecord:
    id: str
    order_number: str
    user_id: str
    order_type: OrderType
    partner: str
    service_type: Optional[str]
    pickup: Address
    delivery: Address
    package: PackageInfo
    base_paise: int
    surcharge_paise: int
    tax_paise: int
    total_paise: int
    currency: str
    payment_status: PaymentStatus
    payment_method: str
    payment_transaction_id: Optional[str]
    paid_at: Optional[datetime]
    status: OrderStatus
    awb: Optional[str]
    tracking_url: Optional[str]
    partner_order_ref: Optional[str]
    meta: dict[str, Any]
    created_at: datetime
    updated_at: Optional[datetime]

    @property
    def status_history(self) -> list[dict[str, Any]]:
        return list(self.meta.get("status_history", []))

    @property
    def quote(self) -> dict[str, Any]:
        return dict(self.meta.get("quote", {}))

    @property
    def used_fallback_quote(self) -> bool:
        return bool(self.quote.get("fallback"))


@dataclass(slots=True)
class OrderDraft:
    """Caller input for placing an order."""

    user_id: str
    partner: str
    pickup: Address
    delivery: Address
    package: PackageInfo
    order_type: OrderType = OrderType.DOMESTIC
    service_hint: Optional[str] = None


@dataclass(slots=True)
class PlacementResult:
    order: OrderRecord
    transaction: LedgerTransaction
    balance_after_paise: int


@dataclass(slots=True)
class CancellationResult:
    order: OrderRecord
    refund: Optional[LedgerTransaction]
    balance_after_paise: Optional[int]


@dataclass(slots=True)
class OrderPage:
    items: list[OrderRecord] = field(default_factory=list)
    total: int = 0
