"""Repository interface for the wallet ledger."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from parcelhub.db.models import Wallet as WalletModel, WalletTransaction as WalletTransactionModel


class WalletRepository(Protocol):
    async def get_wallet(self, account_id: str) -> WalletModel | None:
        ...

    async def create_wallet(self, account_id: str, currency: str) -> WalletModel:
        ...

    async def apply_delta(self, account_id: str, delta_paise: int) -> tuple[int, int] | None:
        """Conditionally add ``delta_paise``; returns (balance, version) or None."""
        ...

    async def add_transaction(
        self,
        *,
        account_id: str,
        sequence: int,
        kind: str,
        amount_paise: int,
        balance_after_paise: int,
        currency: str,
        description: str,
        order_id: Optional[str],
        awb: Optional[str],
        meta: Optional[str],
    ) -> WalletTransactionModel:
        ...

    async def list_transactions(
        self,
        account_id: str,
        *,
        kind: Optional[str],
        limit: Optional[int],
        offset: int,
        ascending: bool = False,
    ) -> Sequence[WalletTransactionModel]:
        ...

    async def count_transactions(self, account_id: str, kind: Optional[str] = None) -> int:
        ...

    async def totals_by_kind(self, account_id: str) -> dict[str, int]:
        ...

    async def list_account_ids(self) -> Sequence[str]:
        ...
