"""CSV renderings of the wallet ledger and booked shipments."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import OrderStatus, TransactionKind
from parcelhub.core.money import format_rupees
from parcelhub.domain.orders.models import OrderRecord
from parcelhub.domain.orders.service import to_record
from parcelhub.domain.wallets.models import LedgerTransaction
from parcelhub.domain.wallets.service import WalletLedger
from parcelhub.infrastructure.database.repositories.order_repository import SqlOrderRepository

STATEMENT_HEADER = ["Date", "Transaction ID", "Type", "Description", "Order ID", "AWB", "Credit", "Debit", "Balance"]
AWB_BATCH_HEADER = ["Order Number", "AWB", "Partner", "Status", "Tracking URL", "Total", "Created At"]

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime(_DATE_FORMAT) if value else ""


def _write(header: list[str], rows: Iterable[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def render_statement(
    transactions: Iterable[LedgerTransaction],
    awb_by_order: Optional[Mapping[str, str]] = None,
) -> str:
    """Ledger statement, oldest first; Balance is the running balance after each row."""
    awb_by_order = awb_by_order or {}
    ordered = sorted(transactions, key=lambda item: item.sequence)
    rows = []
    for item in ordered:
        is_credit = item.kind is TransactionKind.CREDIT
        awb = item.awb or (awb_by_order.get(item.order_id, "") if item.order_id else "")
        rows.append(
            [
                _format_date(item.created_at),
                item.id,
                item.kind.value.title(),
                item.description,
                item.order_id or "",
                awb,
                format_rupees(item.amount_paise) if is_credit else "",
                "" if is_credit else format_rupees(item.amount_paise),
                format_rupees(item.balance_after_paise),
            ]
        )
    return _write(STATEMENT_HEADER, rows)


def render_awb_batch(orders: Iterable[OrderRecord], *, include_unbooked: bool = False) -> str:
    rows = [
        [
            order.order_number,
            order.awb or "",
            order.partner,
            order.status.value,
            order.tracking_url or "",
            format_rupees(order.total_paise),
            _format_date(order.created_at),
        ]
        for order in orders
        if include_unbooked or order.awb
    ]
    return _write(AWB_BATCH_HEADER, rows)


async def export_statement(session: AsyncSession, account_id: str) -> str:
    transactions = await WalletLedger.with_session(session).statement(account_id)
    order_ids = sorted({item.order_id for item in transactions if item.order_id and not item.awb})
    awb_by_order = await SqlOrderRepository(session).awb_by_ids(order_ids)
    return render_statement(transactions, awb_by_order)


async def export_awb_batch(
    session: AsyncSession,
    user_id: str,
    *,
    status: Optional[OrderStatus] = None,
    partner: Optional[str] = None,
) -> str:
    repository = SqlOrderRepository(session)
    models = await repository.list_for_user(
        user_id, status=status.value if status else None, partner=partner, limit=None, offset=0
    )
    return render_awb_batch(to_record(model) for model in models)
