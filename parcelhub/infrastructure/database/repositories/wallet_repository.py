"""SQLAlchemy implementation for wallet domain"""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.db.models import Wallet, WalletTransaction


class SqlWalletRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_wallet(self, account_id: str) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.account_id == account_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_wallet(self, account_id: str, currency: str) -> Wallet:
        wallet = Wallet(account_id=account_id, currency=currency, balance_paise=0, version=0)
        self.session.add(wallet)
        await self.session.flush()
        return wallet

    async def apply_delta(self, account_id: str, delta_paise: int) -> tuple[int, int] | None:
        # single conditional statement; a debit only matches when funds cover it
        stmt = (
            update(Wallet)
            .where(Wallet.account_id == account_id)
            .values(
                balance_paise=Wallet.balance_paise + delta_paise,
                version=Wallet.version + 1,
                updated_at=func.now(),
            )
            .returning(Wallet.balance_paise, Wallet.version)
            .execution_options(synchronize_session=False)
        )
        if delta_paise < 0:
            stmt = stmt.where(Wallet.balance_paise >= -delta_paise)
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return int(row[0]), int(row[1])

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
    ) -> WalletTransaction:
        tx = WalletTransaction(
            account_id=account_id,
            sequence=sequence,
            kind=kind,
            amount_paise=amount_paise,
            balance_after_paise=balance_after_paise,
            currency=currency,
            description=description,
            order_id=order_id,
            awb=awb,
            meta=meta,
        )
        self.session.add(tx)
        await self.session.flush()
        return tx

    async def list_transactions(
        self,
        account_id: str,
        *,
        kind: Optional[str],
        limit: Optional[int],
        offset: int,
        ascending: bool = False,
    ) -> Sequence[WalletTransaction]:
        stmt = select(WalletTransaction).where(WalletTransaction.account_id == account_id)
        if kind:
            stmt = stmt.where(WalletTransaction.kind == kind)
        order = WalletTransaction.sequence if ascending else desc(WalletTransaction.sequence)
        stmt = stmt.order_by(order).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_transactions(self, account_id: str, kind: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(WalletTransaction).where(WalletTransaction.account_id == account_id)
        if kind:
            stmt = stmt.where(WalletTransaction.kind == kind)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def totals_by_kind(self, account_id: str) -> dict[str, int]:
        stmt = (
            select(WalletTransaction.kind, func.coalesce(func.sum(WalletTransaction.amount_paise), 0))
            .where(WalletTransaction.account_id == account_id)
            .group_by(WalletTransaction.kind)
        )
        result = await self.session.execute(stmt)
        return {kind: int(total) for kind, total in result.all()}

    async def list_account_ids(self) -> Sequence[str]:
        result = await self.session.execute(select(Wallet.account_id).order_by(Wallet.account_id))
        return result.scalars().all()
