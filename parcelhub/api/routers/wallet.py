"""Wallet balance, ledger and top-up endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.deps import get_db_session
from parcelhub.api.errors import DomainError, http_error
from parcelhub.core.constants import TransactionKind
from parcelhub.core.security import Principal, get_current_principal
from parcelhub.domain.reports import export_statement
from parcelhub.domain.topups import TopupOrder, TopupService
from parcelhub.domain.wallets import LedgerTransaction, WalletLedger
from parcelhub.schemas import (
    WalletSnapshotResponse,
    WalletTopupListResponse,
    WalletTopupRequest,
    WalletTopupResponse,
    WalletTransactionListResponse,
    WalletTransactionResponse,
)

router = APIRouter()


def to_transaction_response(item: LedgerTransaction) -> WalletTransactionResponse:
    return WalletTransactionResponse(
        id=item.id,
        sequence=item.sequence,
        type=item.kind.value,
        amount_paise=item.amount_paise,
        balance_after_paise=item.balance_after_paise,
        currency=item.currency,
        description=item.description,
        order_id=item.order_id,
        awb=item.awb,
        created_at=item.created_at,
    )


def to_topup_response(order: TopupOrder) -> WalletTopupResponse:
    return WalletTopupResponse(
        id=order.id,
        amount_paise=order.amount_paise,
        currency=order.currency,
        status=order.status.value,
        payment_channel=order.payment_channel,
        reference_no=order.reference_no,
        ledger_transaction_id=order.ledger_transaction_id,
        created_at=order.created_at,
        confirmed_at=order.confirmed_at,
    )


@router.get("", response_model=WalletSnapshotResponse, summary="Wallet balance")
async def wallet_snapshot(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WalletSnapshotResponse:
    snapshot = await WalletLedger.with_session(db).get_wallet(principal.user_id)
    await db.commit()
    return WalletSnapshotResponse(
        account_id=snapshot.account_id,
        balance_paise=snapshot.balance_paise,
        currency=snapshot.currency,
        updated_at=snapshot.updated_at,
    )


@router.get("/transactions", response_model=WalletTransactionListResponse, summary="Ledger page with totals")
async def wallet_transactions(
    type_filter: Optional[str] = Query(None, alias="type"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTransactionListResponse:
    kind = None
    if type_filter and type_filter != "all":
        try:
            kind = TransactionKind(type_filter.lower())
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "invalid_type", "message": f"Unknown transaction type: {type_filter}"},
            ) from exc
    page = await WalletLedger.with_session(db).list_transactions(
        principal.user_id, kind=kind, limit=limit, offset=offset
    )
    return WalletTransactionListResponse(
        total=page.total,
        total_credit_paise=page.total_credit_paise,
        total_debit_paise=page.total_debit_paise,
        transactions=[to_transaction_response(item) for item in page.items],
    )


@router.get("/statement.csv", summary="Download the ledger statement")
async def wallet_statement(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    content = await export_statement(db, principal.user_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="wallet-statement.csv"'},
    )


@router.post(
    "/topups",
    response_model=WalletTopupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a top-up intent",
)
async def create_topup(
    payload: WalletTopupRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTopupResponse:
    service = TopupService.with_session(db)
    try:
        order = await service.create_order(
            principal.user_id,
            payload.amount_paise,
            channel=payload.payment_channel,
            reference_no=payload.reference_no,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    await db.commit()
    return to_topup_response(order)


@router.get("/topups", response_model=WalletTopupListResponse, summary="List own top-ups")
async def list_topups(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTopupListResponse:
    orders = await TopupService.with_session(db).list_orders(
        principal.user_id, status=status_filter, limit=limit, offset=offset
    )
    return WalletTopupListResponse(topups=[to_topup_response(order) for order in orders])
