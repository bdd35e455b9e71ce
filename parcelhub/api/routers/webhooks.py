"""Inbound partner and payment-bridge callbacks.

Partners retry on non-2xx answers, so every caller error is answered once
with 400 and nothing is mutated.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.deps import get_db_session, get_orchestrator
from parcelhub.api.errors import DomainError, http_error
from parcelhub.api.routers.wallet import to_topup_response
from parcelhub.core.security import require_bridge_token
from parcelhub.domain.orders import OrderOrchestrator
from parcelhub.domain.topups import TopupMismatch, TopupService
from parcelhub.schemas import OrderStatusWebhook, TopupEvent, WalletTopupResponse, WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/order-status", response_model=WebhookAck, summary="Partner status webhook")
async def order_status_webhook(
    payload: OrderStatusWebhook,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> WebhookAck:
    try:
        order = await orchestrator.apply_status_update(
            order_id=payload.order_id,
            awb=payload.awb,
            status=payload.status,
            tracking_data=payload.tracking_data,
            partner=payload.partner_name,
            source="webhook",
        )
    except DomainError as exc:
        await orchestrator.session.rollback()
        logger.info(
            "Rejected status webhook (order=%s awb=%s partner=%s): %s",
            payload.order_id,
            payload.awb,
            payload.partner_name,
            exc,
        )
        raise http_error(exc, status.HTTP_400_BAD_REQUEST) from exc
    await orchestrator.session.commit()
    return WebhookAck(order_id=order.id, order_number=order.order_number, status=order.status.value)


@router.post(
    "/topups",
    response_model=WalletTopupResponse,
    dependencies=[Depends(require_bridge_token)],
    summary="Verified top-up event from the payment bridge",
)
async def topup_event(
    payload: TopupEvent,
    db: AsyncSession = Depends(get_db_session),
) -> WalletTopupResponse:
    service = TopupService.with_session(db)
    try:
        if payload.status == "failed":
            order = await service.mark_failed(payload.reference_no)
        else:
            order = await service.confirm(payload.reference_no, payload.amount_paise)
    except TopupMismatch as exc:
        # keep the failed marker written by confirm()
        await db.commit()
        raise http_error(exc) from exc
    except DomainError as exc:
        await db.rollback()
        raise http_error(exc) from exc
    await db.commit()
    return to_topup_response(order)
