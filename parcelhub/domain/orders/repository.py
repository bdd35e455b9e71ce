"""Repository interface for orders."""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from parcelhub.db.models import Order as OrderModel


class OrderRepository(Protocol):
    async def create(self, **values: Any) -> OrderModel:
        ...

    async def get(self, order_id: str) -> OrderModel | None:
        ...

    async def get_by_reference(self, reference: str) -> OrderModel | None:
        """Look up by id, then by order number."""
        ...

    async def get_by_awb(self, awb: str) -> OrderModel | None:
        ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[str],
        partner: Optional[str],
        limit: Optional[int],
        offset: int,
    ) -> Sequence[OrderModel]:
        ...

    async def count_for_user(self, user_id: str, *, status: Optional[str], partner: Optional[str]) -> int:
        ...

    async def list_trackable(self, terminal: Sequence[str], limit: int) -> Sequence[OrderModel]:
        ...

    async def update_if_revision(self, order_id: str, revision: int, **values: Any) -> bool:
        """Apply ``values`` only when the stored revision still matches."""
        ...

    async def delete(self, order_id: str) -> None:
        ...

    async def awb_by_ids(self, order_ids: Sequence[str]) -> dict[str, str]:
        ...
