"""Order placement, tracking and cancellation endpoints."""
from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.deps import get_db_session, get_orchestrator, get_quoter
from parcelhub.api.errors import DomainError, http_error
from parcelhub.core.constants import OrderStatus
from parcelhub.core.security import Principal, get_current_principal
from parcelhub.domain.orders import (
    CancellationResult,
    InvalidStatus,
    OrderDraft,
    OrderOrchestrator,
    OrderRecord,
)
from parcelhub.domain.pricing import Pricing, RateQuoter
from parcelhub.domain.reports import export_awb_batch
from parcelhub.providers import Address, Dimensions, PackageInfo, ProviderError, UnknownProvider
from parcelhub.schemas import (
    AddressPayload,
    CancellationResponse,
    CancelRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderPlacedResponse,
    OrderResponse,
    PackagePayload,
    RateListResponse,
    RateRequest,
    RateResponse,
    ServiceabilityResponse,
    ServiceOptionResponse,
    TrackingResponse,
)

router = APIRouter()


def to_address(payload: AddressPayload) -> Address:
    return Address(**payload.model_dump())


def to_package(payload: PackagePayload) -> PackageInfo:
    return PackageInfo(
        weight_kg=payload.weight_kg,
        dimensions=Dimensions(**payload.dimensions.model_dump()),
        declared_value=payload.declared_value,
        description=payload.description,
    )


def to_order_response(order: OrderRecord) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        user_id=order.user_id,
        order_type=order.order_type.value,
        partner=order.partner,
        service_type=order.service_type,
        status=order.status.value,
        payment_status=order.payment_status.value,
        payment_method=order.payment_method,
        payment_transaction_id=order.payment_transaction_id,
        paid_at=order.paid_at,
        base_paise=order.base_paise,
        surcharge_paise=order.surcharge_paise,
        tax_paise=order.tax_paise,
        total_paise=order.total_paise,
        currency=order.currency,
        fallback_quote=order.used_fallback_quote,
        awb=order.awb,
        tracking_url=order.tracking_url,
        partner_order_ref=order.partner_order_ref,
        pickup=order.pickup.to_dict(),
        delivery=order.delivery.to_dict(),
        package=order.package.to_dict(),
        status_history=order.status_history,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def to_cancellation_response(result: CancellationResult) -> CancellationResponse:
    return CancellationResponse(
        order=to_order_response(result.order),
        refund_transaction_id=result.refund.id if result.refund else None,
        refunded_paise=result.refund.amount_paise if result.refund else 0,
        balance_after_paise=result.balance_after_paise,
    )


def _to_rate_response(pricing: Pricing) -> RateResponse:
    return RateResponse(
        partner=pricing.partner,
        base_paise=pricing.base_paise,
        surcharge_paise=pricing.surcharge_paise,
        tax_paise=pricing.tax_paise,
        total_paise=pricing.total_paise,
        currency=pricing.currency,
        estimated_delivery=pricing.estimated_delivery,
        service_type=pricing.service_type,
        service_code=pricing.service_code,
        fallback=pricing.fallback,
        options=[ServiceOptionResponse.model_validate(option) for option in pricing.options],
    )


def _parse_status(value: Optional[str]) -> Optional[OrderStatus]:
    if not value or value == "all":
        return None
    parsed = OrderStatus.parse(value)
    if parsed is None:
        raise http_error(InvalidStatus(value, allowed=[member.value for member in OrderStatus]))
    return parsed


@router.post("/rates", response_model=RateListResponse, summary="Quote shipping rates")
async def quote_rates(
    payload: RateRequest,
    _: Principal = Depends(get_current_principal),
    quoter: RateQuoter = Depends(get_quoter),
) -> RateListResponse:
    pickup = to_address(payload.pickup)
    delivery = to_address(payload.delivery)
    package = to_package(payload.package)
    partners = [payload.partner] if payload.partner else quoter.registry.names()
    try:
        pricings = await asyncio.gather(
            *(quoter.quote(partner, pickup, delivery, package, payload.service_type) for partner in partners)
        )
    except UnknownProvider as exc:
        raise http_error(exc) from exc
    return RateListResponse(rates=[_to_rate_response(pricing) for pricing in pricings])


@router.get("/serviceability", response_model=ServiceabilityResponse, summary="Check partner serviceability")
async def check_serviceability(
    partner: str = Query(...),
    origin: str = Query(..., min_length=3),
    destination: str = Query(..., min_length=3),
    _: Principal = Depends(get_current_principal),
    quoter: RateQuoter = Depends(get_quoter),
) -> ServiceabilityResponse:
    try:
        adapter = quoter.registry.resolve(partner)
        result = await adapter.bounded(
            "check_serviceability", adapter.check_serviceability(origin, destination)
        )
    except (UnknownProvider, ProviderError) as exc:
        raise http_error(exc) from exc
    return ServiceabilityResponse(
        partner=adapter.name,
        origin=origin,
        destination=destination,
        serviceable=result.serviceable,
        message=result.message,
        options=list(result.options),
    )


@router.post(
    "",
    response_model=OrderPlacedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order paid from the wallet",
)
async def place_order(
    payload: OrderCreateRequest,
    principal: Principal = Depends(get_current_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderPlacedResponse:
    draft = OrderDraft(
        user_id=principal.user_id,
        partner=payload.partner,
        pickup=to_address(payload.pickup),
        delivery=to_address(payload.delivery),
        package=to_package(payload.package),
        order_type=payload.order_type,
        service_hint=payload.service_type,
    )
    try:
        result = await orchestrator.place_order(draft)
    except DomainError as exc:
        raise http_error(exc) from exc
    return OrderPlacedResponse(
        order=to_order_response(result.order),
        transaction_id=result.transaction.id,
        balance_after_paise=result.balance_after_paise,
    )


@router.get("", response_model=OrderListResponse, summary="List own orders")
async def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    partner: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_current_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderListResponse:
    page = await orchestrator.list_orders(
        principal.user_id, status=_parse_status(status_filter), partner=partner, limit=limit, offset=offset
    )
    return OrderListResponse(total=page.total, orders=[to_order_response(order) for order in page.items])


@router.get("/export.csv", summary="Export booked AWBs as CSV")
async def export_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    partner: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    content = await export_awb_batch(db, principal.user_id, status=_parse_status(status_filter), partner=partner)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="awb-export.csv"'},
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Order detail")
async def get_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderResponse:
    try:
        order = await orchestrator.get_order(principal.user_id, order_id, is_admin=principal.is_admin)
    except DomainError as exc:
        raise http_error(exc) from exc
    return to_order_response(order)


@router.get("/{order_id}/track", response_model=TrackingResponse, summary="Refresh tracking from the partner")
async def track_order(
    order_id: str,
    principal: Principal = Depends(get_current_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> TrackingResponse:
    try:
        outcome = await orchestrator.track_order(principal.user_id, order_id, is_admin=principal.is_admin)
    except DomainError as exc:
        raise http_error(exc) from exc
    return TrackingResponse(
        order=to_order_response(outcome.order),
        result=outcome.result,
        tracking=outcome.info.to_dict() if outcome.info else None,
    )


@router.post("/{order_id}/cancel", response_model=CancellationResponse, summary="Cancel and refund an order")
async def cancel_order(
    order_id: str,
    payload: Optional[CancelRequest] = None,
    principal: Principal = Depends(get_current_principal),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> CancellationResponse:
    try:
        result = await orchestrator.cancel_order(
            principal.user_id,
            order_id,
            reason=payload.reason if payload else None,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return to_cancellation_response(result)
