"""Domain model for wallet top-up orders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from parcelhub.core.constants import TopupStatus


@dataclass(slots=True)
class TopupOrder:
    id: str
    account_id: str
    amount_paise: int
    currency: str
    status: TopupStatus
    payment_channel: Optional[str]
    reference_no: str
    ledger_transaction_id: Optional[str]
    created_at: datetime
    confirmed_at: Optional[datetime]
