"""Wallet domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from parcelhub.core.constants import TransactionKind


@dataclass(slots=True)
class WalletSnapshot:
    account_id: str
    balance_paise: int
    currency: str
    version: int
    updated_at: Optional[datetime]


@dataclass(slots=True)
class LedgerTransaction:
    id: str
    account_id: str
    sequence: int
    kind: TransactionKind
    amount_paise: int
    balance_after_paise: int
    currency: str
    description: str
    order_id: Optional[str]
    awb: Optional[str]
    metadata: dict[str, Any]
    created_at: datetime

    @property
    def signed_amount_paise(self) -> int:
        return self.amount_paise if self.kind is TransactionKind.CREDIT else -self.amount_paise


@dataclass(slots=True)
class TransactionPage:
    items: list[LedgerTransaction] = field(default_factory=list)
    total: int = 0
    total_credit_paise: int = 0
    total_debit_paise: int = 0


@dataclass(slots=True)
class LedgerAudit:
    account_id: str
    stored_balance_paise: int
    computed_balance_paise: int
    transaction_count: int

    @property
    def consistent(self) -> bool:
        return self.stored_balance_paise == self.computed_balance_paise
