"""Wallet ledger: one balance per account plus an append-only transaction log."""

from __future__ import annotations

import asyncio
import json
import logging
import weakref
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import DEFAULT_CURRENCY, TransactionKind
from parcelhub.db.models import Wallet as WalletModel, WalletTransaction as WalletTransactionModel
from parcelhub.infrastructure.database.repositories.wallet_repository import SqlWalletRepository

from .exceptions import InsufficientFunds, InvalidAmount
from .models import LedgerAudit, LedgerTransaction, TransactionPage, WalletSnapshot
from .repository import WalletRepository

logger = logging.getLogger(__name__)

_account_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(account_id: str) -> asyncio.Lock:
    lock = _account_locks.get(account_id)
    if lock is None:
        lock = asyncio.Lock()
        _account_locks[account_id] = lock
    return lock


def _validate_amount(amount_paise: object) -> int:
    if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise <= 0:
        raise InvalidAmount(amount_paise)
    return amount_paise


@dataclass(slots=True)
class WalletLedger:
    """Credits and debits applied inside the caller's transaction.

    The caller owns commit and rollback. Mutations for one account are
    serialized on an in-process lock and on the conditional row update, so
    a debit can never be applied against a stale balance.
    """

    repository: WalletRepository
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def with_session(cls, session: AsyncSession) -> "WalletLedger":
        return cls(SqlWalletRepository(session))

    async def get_wallet(self, account_id: str) -> WalletSnapshot:
        wallet = await self.repository.get_wallet(account_id)
        if wallet is None:
            wallet = await self.repository.create_wallet(account_id, self.currency)
        return self._to_snapshot(wallet)

    async def get_balance(self, account_id: str) -> int:
        wallet = await self.repository.get_wallet(account_id)
        return int(wallet.balance_paise) if wallet is not None else 0

    async def credit(
        self,
        account_id: str,
        amount_paise: int,
        description: str,
        *,
        order_id: Optional[str] = None,
        awb: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> LedgerTransaction:
        amount = _validate_amount(amount_paise)
        async with _lock_for(account_id):
            applied = await self.repository.apply_delta(account_id, amount)
            if applied is None:
                await self.repository.create_wallet(account_id, self.currency)
                applied = await self.repository.apply_delta(account_id, amount)
                if applied is None:
                    raise RuntimeError(f"wallet {account_id} vanished during credit")
            return await self._record(
                TransactionKind.CREDIT, account_id, amount, applied, description, order_id, awb, metadata
            )

    async def debit(
        self,
        account_id: str,
        amount_paise: int,
        description: str,
        *,
        order_id: Optional[str] = None,
        awb: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> LedgerTransaction:
        amount = _validate_amount(amount_paise)
        async with _lock_for(account_id):
            applied = await self.repository.apply_delta(account_id, -amount)
            if applied is None:
                available = await self.get_balance(account_id)
                logger.info(
                    "Debit of %s paise refused for %s: balance %s paise", amount, account_id, available
                )
                raise InsufficientFunds(amount, available)
            return await self._record(
                TransactionKind.DEBIT, account_id, amount, applied, description, order_id, awb, metadata
            )

    async def list_transactions(
        self,
        account_id: str,
        *,
        kind: Optional[TransactionKind] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> TransactionPage:
        kind_value = kind.value if kind else None
        rows = await self.repository.list_transactions(account_id, kind=kind_value, limit=limit, offset=offset)
        total = await self.repository.count_transactions(account_id, kind_value)
        totals = await self.repository.totals_by_kind(account_id)
        return TransactionPage(
            items=[self._to_transaction(row) for row in rows],
            total=total,
            total_credit_paise=totals.get(TransactionKind.CREDIT.value, 0),
            total_debit_paise=totals.get(TransactionKind.DEBIT.value, 0),
        )

    async def statement(self, account_id: str) -> list[LedgerTransaction]:
        rows = await self.repository.list_transactions(
            account_id, kind=None, limit=None, offset=0, ascending=True
        )
        return [self._to_transaction(row) for row in rows]

    async def audit(self, account_id: str) -> LedgerAudit:
        wallet = await self.repository.get_wallet(account_id)
        totals = await self.repository.totals_by_kind(account_id)
        count = await self.repository.count_transactions(account_id)
        computed = totals.get(TransactionKind.CREDIT.value, 0) - totals.get(TransactionKind.DEBIT.value, 0)
        stored = int(wallet.balance_paise) if wallet is not None else 0
        if stored != computed:
            logger.error("Ledger mismatch for %s: stored %s, computed %s", account_id, stored, computed)
        return LedgerAudit(
            account_id=account_id,
            stored_balance_paise=stored,
            computed_balance_paise=computed,
            transaction_count=count,
        )

    async def audit_all(self) -> list[LedgerAudit]:
        return [await self.audit(account_id) for account_id in await self.repository.list_account_ids()]

    async def _record(
        self,
        kind: TransactionKind,
        account_id: str,
        amount: int,
        applied: tuple[int, int],
        description: str,
        order_id: Optional[str],
        awb: Optional[str],
        metadata: Optional[dict[str, Any]],
    ) -> LedgerTransaction:
        balance_after, version = applied
        model = await self.repository.add_transaction(
            account_id=account_id,
            sequence=version,
            kind=kind.value,
            amount_paise=amount,
            balance_after_paise=balance_after,
            currency=self.currency,
            description=description,
            order_id=order_id,
            awb=awb,
            meta=json.dumps(metadata, ensure_ascii=False, default=str) if metadata else None,
        )
        logger.info(
            "Wallet %s %s %s paise, balance now %s paise", account_id, kind.value, amount, balance_after
        )
        return self._to_transaction(model)

    @staticmethod
    def _to_snapshot(model: WalletModel) -> WalletSnapshot:
        return WalletSnapshot(
            account_id=model.account_id,
            balance_paise=int(model.balance_paise or 0),
            currency=model.currency,
            version=int(model.version or 0),
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_transaction(model: WalletTransactionModel) -> LedgerTransaction:
        return LedgerTransaction(
            id=model.id,
            account_id=model.account_id,
            sequence=model.sequence,
            kind=TransactionKind(model.kind),
            amount_paise=model.amount_paise,
            balance_after_paise=model.balance_after_paise,
            currency=model.currency,
            description=model.description,
            order_id=model.order_id,
            awb=model.awb,
            metadata=json.loads(model.meta) if model.meta else {},
            created_at=model.created_at,
        )
