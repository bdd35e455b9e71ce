"""Wallet top-up intents and their confirmation by the payment bridge."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import DEFAULT_CURRENCY, TopupStatus
from parcelhub.db.models import WalletTopupOrder as TopupOrderModel
from parcelhub.domain.wallets import InvalidAmount, WalletLedger
from parcelhub.infrastructure.database.repositories.topup_repository import SqlTopupRepository

from .exceptions import TopupError, TopupMismatch, TopupNotFound, TopupNotPending
from .models import TopupOrder
from .repository import TopupOrderRepository

logger = logging.getLogger(__name__)


def generate_reference_no() -> str:
    return f"TOP{datetime.now(timezone.utc):%Y%m%d%H%M%S}{secrets.token_hex(4).upper()}"


@dataclass(slots=True)
class TopupService:
    repository: TopupOrderRepository
    ledger: WalletLedger

    @classmethod
    def with_session(cls, session: AsyncSession) -> "TopupService":
        return cls(SqlTopupRepository(session), WalletLedger.with_session(session))

    async def create_order(
        self,
        account_id: str,
        amount_paise: int,
        channel: Optional[str] = None,
        reference_no: Optional[str] = None,
    ) -> TopupOrder:
        if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise <= 0:
            raise InvalidAmount(amount_paise)
        if reference_no:
            existing = await self.repository.get_by_reference(reference_no)
            if existing is not None:
                if existing.account_id != account_id or existing.amount_paise != amount_paise:
                    raise TopupError(f"Reference {reference_no} is already in use")
                return self._to_domain(existing)
        model = await self.repository.create(
            account_id=account_id,
            amount_paise=amount_paise,
            currency=DEFAULT_CURRENCY,
            payment_channel=channel,
            reference_no=reference_no or generate_reference_no(),
        )
        logger.info("Top-up %s created for %s: %s paise", model.reference_no, account_id, amount_paise)
        return self._to_domain(model)

    async def confirm(self, reference_no: str, amount_paise: int) -> TopupOrder:
        """Apply a verified payment event exactly once.

        The pending → success swap and the ledger credit share the caller's
        transaction. A repeated event for a successful top-up returns the
        stored record without crediting again. A wrong amount marks the
        top-up failed and raises :class:`TopupMismatch`; the caller should
        still commit so the failure is kept.
        """
        model = await self.repository.get_by_reference(reference_no)
        if model is None:
            raise TopupNotFound(reference_no)
        if model.status == TopupStatus.SUCCESS.value:
            logger.info("Duplicate confirmation for top-up %s ignored", reference_no)
            return self._to_domain(model)
        if model.status != TopupStatus.PENDING.value:
            raise TopupNotPending(reference_no, model.status)

        if amount_paise != model.amount_paise:
            await self.repository.transition(
                reference_no,
                from_status=TopupStatus.PENDING.value,
                to_status=TopupStatus.FAILED.value,
                confirmed_at=datetime.now(timezone.utc),
            )
            logger.warning(
                "Top-up %s failed: expected %s paise, bridge reported %s",
                reference_no,
                model.amount_paise,
                amount_paise,
            )
            raise TopupMismatch(reference_no, model.amount_paise, amount_paise)

        updated = await self.repository.transition(
            reference_no,
            from_status=TopupStatus.PENDING.value,
            to_status=TopupStatus.SUCCESS.value,
            confirmed_at=datetime.now(timezone.utc),
        )
        if updated is None:
            # another confirmation won the swap
            current = await self.repository.get_by_reference(reference_no)
            if current is not None and current.status == TopupStatus.SUCCESS.value:
                return self._to_domain(current)
            raise TopupNotPending(reference_no, current.status if current else "missing")

        transaction = await self.ledger.credit(
            updated.account_id,
            updated.amount_paise,
            f"Wallet top-up {reference_no}",
            metadata={"reference_no": reference_no, "channel": updated.payment_channel},
        )
        updated = await self.repository.transition(
            reference_no,
            from_status=TopupStatus.SUCCESS.value,
            to_status=TopupStatus.SUCCESS.value,
            ledger_transaction_id=transaction.id,
        )
        return self._to_domain(updated)

    async def mark_failed(self, reference_no: str) -> TopupOrder:
        model = await self.repository.get_by_reference(reference_no)
        if model is None:
            raise TopupNotFound(reference_no)
        if model.status == TopupStatus.FAILED.value:
            return self._to_domain(model)
        updated = await self.repository.transition(
            reference_no,
            from_status=TopupStatus.PENDING.value,
            to_status=TopupStatus.FAILED.value,
            confirmed_at=datetime.now(timezone.utc),
        )
        if updated is None:
            current = await self.repository.get_by_reference(reference_no)
            raise TopupNotPending(reference_no, current.status if current else "missing")
        logger.info("Top-up %s marked failed", reference_no)
        return self._to_domain(updated)

    async def get_order(self, reference_no: str) -> Optional[TopupOrder]:
        model = await self.repository.get_by_reference(reference_no)
        return self._to_domain(model) if model else None

    async def list_orders(
        self,
        account_id: str,
        *,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[TopupOrder]:
        models = await self.repository.list_orders(account_id, limit, offset, status)
        return [self._to_domain(model) for model in models]

    @staticmethod
    def _to_domain(model: TopupOrderModel) -> TopupOrder:
        return TopupOrder(
            id=model.id,
            account_id=model.account_id,
            amount_paise=model.amount_paise,
            currency=model.currency,
            status=TopupStatus(model.status),
            payment_channel=model.payment_channel,
            reference_no=model.reference_no,
            ledger_transaction_id=model.ledger_transaction_id,
            created_at=model.created_at,
            confirmed_at=model.confirmed_at,
        )
