"""SQLAlchemy implementation for order repository"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.db.models import Order


class SqlOrderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, **values: Any) -> Order:
        order = Order(**values)
        self.session.add(order)
        await self.session.flush()
        await self.session.refresh(order)
        return order

    async def get(self, order_id: str) -> Order | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_reference(self, reference: str) -> Order | None:
        stmt = (
            select(Order)
            .where(or_(Order.id == reference, Order.order_number == reference))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_awb(self, awb: str) -> Order | None:
        stmt = select(Order).where(Order.awb == awb).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    def _filtered(self, stmt, user_id: str, status: Optional[str], partner: Optional[str]):
        stmt = stmt.where(Order.user_id == user_id)
        if status:
            stmt = stmt.where(Order.status == status)
        if partner:
            stmt = stmt.where(Order.partner == partner)
        return stmt

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[str],
        partner: Optional[str],
        limit: Optional[int],
        offset: int,
    ) -> Sequence[Order]:
        stmt = self._filtered(select(Order), user_id, status, partner)
        stmt = stmt.order_by(desc(Order.created_at)).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_for_user(self, user_id: str, *, status: Optional[str], partner: Optional[str]) -> int:
        stmt = self._filtered(select(func.count()).select_from(Order), user_id, status, partner)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def list_trackable(self, terminal: Sequence[str], limit: int) -> Sequence[Order]:
        stmt = (
            select(Order)
            .where(Order.awb.is_not(None), Order.status.not_in(list(terminal)))
            .order_by(Order.updated_at.is_(None).desc(), Order.updated_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update_if_revision(self, order_id: str, revision: int, **values: Any) -> bool:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.revision == revision)
            .values(revision=revision + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def delete(self, order_id: str) -> None:
        await self.session.execute(delete(Order).where(Order.id == order_id).execution_options(synchronize_session=False))

    async def awb_by_ids(self, order_ids: Sequence[str]) -> dict[str, str]:
        if not order_ids:
            return {}
        stmt = select(Order.id, Order.awb).where(Order.id.in_(list(order_ids)), Order.awb.is_not(None))
        result = await self.session.execute(stmt)
        return {order_id: awb for order_id, awb in result.all()}
