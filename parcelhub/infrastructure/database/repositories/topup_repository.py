"""SQLAlchemy implementation for top-up repository"""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.db.models import WalletTopupOrder


class SqlTopupRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        *,
        account_id: str,
        amount_paise: int,
        currency: str,
        payment_channel: Optional[str],
        reference_no: str,
    ) -> WalletTopupOrder:
        order = WalletTopupOrder(
            account_id=account_id,
            amount_paise=amount_paise,
            currency=currency,
            payment_channel=payment_channel,
            reference_no=reference_no,
        )
        self.session.add(order)
        await self.session.flush()
        await self.session.refresh(order)
        return order

    async def get_by_reference(self, reference_no: str) -> WalletTopupOrder | None:
        stmt = (
            select(WalletTopupOrder)
            .where(WalletTopupOrder.reference_no == reference_no)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def transition(
        self,
        reference_no: str,
        *,
        from_status: str,
        to_status: str,
        **values: object,
    ) -> WalletTopupOrder | None:
        stmt = (
            update(WalletTopupOrder)
            .where(WalletTopupOrder.reference_no == reference_no, WalletTopupOrder.status == from_status)
            .values(status=to_status, **values)
            .execution_options(synchronize_session="fetch")
            .returning(WalletTopupOrder)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_orders(
        self,
        account_id: str,
        limit: int,
        offset: int,
        status: Optional[str] = None,
    ) -> Sequence[WalletTopupOrder]:
        stmt = select(WalletTopupOrder).where(WalletTopupOrder.account_id == account_id)
        if status and status != "all":
            stmt = stmt.where(WalletTopupOrder.status == status)
        stmt = stmt.order_by(desc(WalletTopupOrder.created_at)).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()
