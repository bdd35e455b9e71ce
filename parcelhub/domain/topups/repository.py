"""Repository interface for top-up orders."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from parcelhub.db.models import WalletTopupOrder as TopupOrderModel


class TopupOrderRepository(Protocol):
    async def create(
        self,
        *,
        account_id: str,
        amount_paise: int,
        currency: str,
        payment_channel: Optional[str],
        reference_no: str,
    ) -> TopupOrderModel:
        ...

    async def get_by_reference(self, reference_no: str) -> TopupOrderModel | None:
        ...

    async def transition(
        self,
        reference_no: str,
        *,
        from_status: str,
        to_status: str,
        **values: object,
    ) -> TopupOrderModel | None:
        """Move a top-up out of ``from_status``; None when it was not there."""
        ...

    async def list_orders(
        self, account_id: str, limit: int, offset: int, status: Optional[str] = None
    ) -> Sequence[TopupOrderModel]:
        ...
