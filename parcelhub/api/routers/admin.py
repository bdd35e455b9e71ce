"""Operator endpoints: booking queue, forced cancellation, ledger tools."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.deps import get_db_session, get_orchestrator
from parcelhub.api.errors import DomainError, http_error
from parcelhub.api.routers.orders import to_cancellation_response
from parcelhub.api.routers.wallet import to_transaction_response
from parcelhub.core.constants import BookingStatus
from parcelhub.core.container import ApplicationContainer, get_container
from parcelhub.core.security import Principal, get_current_admin
from parcelhub.domain.bookings import BookingQueue, BookingTask
from parcelhub.domain.orders import OrderOrchestrator
from parcelhub.domain.wallets import LedgerAudit, WalletLedger
from parcelhub.schemas import (
    AdminCreditRequest,
    BookingTaskListResponse,
    BookingTaskResponse,
    CancellationResponse,
    CancelRequest,
    LedgerAuditListResponse,
    LedgerAuditResponse,
    ReconcileResponse,
    WalletTransactionResponse,
)

router = APIRouter()


def _to_task_response(task: BookingTask) -> BookingTaskResponse:
    return BookingTaskResponse(
        order_id=task.order_id,
        partner=task.partner,
        status=task.status.value,
        attempts=task.attempts,
        next_attempt_at=task.next_attempt_at,
        claimed_at=task.claimed_at,
        booked_at=task.booked_at,
        last_error=task.last_error,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _to_audit_response(audit: LedgerAudit) -> LedgerAuditResponse:
    return LedgerAuditResponse(
        account_id=audit.account_id,
        stored_balance_paise=audit.stored_balance_paise,
        computed_balance_paise=audit.computed_balance_paise,
        transaction_count=audit.transaction_count,
        consistent=audit.consistent,
    )


@router.get("/bookings", response_model=BookingTaskListResponse, summary="Booking queue (failed by default)")
async def list_bookings(
    status_filter: str = Query(BookingStatus.FAILED.value, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _: Principal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BookingTaskListResponse:
    booking_status: Optional[BookingStatus] = None
    if status_filter != "all":
        try:
            booking_status = BookingStatus(status_filter)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "invalid_status", "message": f"Unknown booking status: {status_filter}"},
            ) from exc
    tasks = await BookingQueue.with_session(db).list_tasks(booking_status, limit=limit, offset=offset)
    return BookingTaskListResponse(tasks=[_to_task_response(task) for task in tasks])


@router.post(
    "/bookings/{order_id}/requeue",
    response_model=BookingTaskResponse,
    summary="Retry a failed booking",
)
async def requeue_booking(
    order_id: str,
    _: Principal = Depends(get_current_admin),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> BookingTaskResponse:
    try:
        task = await orchestrator.requeue_booking(order_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return _to_task_response(task)


@router.post("/orders/{order_id}/cancel", response_model=CancellationResponse, summary="Force cancel and refund")
async def force_cancel_order(
    order_id: str,
    payload: Optional[CancelRequest] = None,
    admin: Principal = Depends(get_current_admin),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> CancellationResponse:
    try:
        result = await orchestrator.cancel_order(
            admin.user_id,
            order_id,
            is_admin=True,
            reason=payload.reason if payload else None,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return to_cancellation_response(result)


@router.post(
    "/wallet/credit",
    response_model=WalletTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Manual wallet credit",
)
async def credit_wallet(
    payload: AdminCreditRequest,
    admin: Principal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> WalletTransactionResponse:
    try:
        transaction = await WalletLedger.with_session(db).credit(
            payload.account_id,
            payload.amount_paise,
            payload.description,
            metadata={"credited_by": admin.user_id},
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    await db.commit()
    return to_transaction_response(transaction)


@router.get("/wallet/audit", response_model=LedgerAuditListResponse, summary="Compare balances with the ledger")
async def audit_wallets(
    account_id: Optional[str] = Query(None),
    _: Principal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LedgerAuditListResponse:
    ledger = WalletLedger.with_session(db)
    audits = [await ledger.audit(account_id)] if account_id else await ledger.audit_all()
    return LedgerAuditListResponse(
        consistent=all(audit.consistent for audit in audits),
        accounts=[_to_audit_response(audit) for audit in audits],
    )


@router.post("/reconcile", response_model=ReconcileResponse, summary="Run one tracking reconciliation pass")
async def reconcile(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    _: Principal = Depends(get_current_admin),
    container: ApplicationContainer = Depends(get_container),
) -> ReconcileResponse:
    summary = await container.reconciler.run_once(limit)
    return ReconcileResponse(**summary.as_dict())
