"""Order placement, payment coupling and status reconciliation."""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.constants import BookingStatus, OrderStatus, OrderType, PaymentStatus
from parcelhub.db.models import Order as OrderModel
from parcelhub.domain.bookings.models import BookingTask
from parcelhub.domain.bookings.service import BookingQueue
from parcelhub.domain.pricing.quoter import RateQuoter
from parcelhub.domain.wallets.exceptions import InsufficientFunds
from parcelhub.domain.wallets.service import WalletLedger
from parcelhub.infrastructure.database.repositories.order_repository import SqlOrderRepository
from parcelhub.providers import (
    Address,
    PackageInfo,
    ProviderError,
    ProviderRegistry,
    ShipmentReceipt,
    TrackingInfo,
    TrackingUnavailable,
)

from .exceptions import (
    InvalidStatus,
    MissingOrderReference,
    OrderError,
    OrderNotCancellable,
    OrderNotFound,
    OrderOwnershipError,
)
from .models import CancellationResult, OrderDraft, OrderPage, OrderRecord, PlacementResult
from .repository import OrderRepository

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3

# (model) -> column values to write, or None for a no-op
Mutation = Callable[[OrderModel, dict[str, Any]], Optional[dict[str, Any]]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_order_number(now: Optional[datetime] = None) -> str:
    stamp = (now or utcnow()).strftime("%Y%m%d%H%M%S")
    return f"ORD{stamp}{secrets.token_hex(3).upper()}"


def history_entry(
    status: OrderStatus,
    previous: Optional[str],
    *,
    source: str,
    partner: Optional[str],
    tracking: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return {
        "status": status.value,
        "previous": previous,
        "source": source,
        "partner": partner,
        "at": utcnow().isoformat(),
        "tracking": tracking,
    }


def to_record(model: OrderModel) -> OrderRecord:
    return OrderRecord(
        id=model.id,
        order_number=model.order_number,
        user_id=model.user_id,
        order_type=OrderType(model.order_type),
        partner=model.partner,
        service_type=model.service_type,
        pickup=Address.from_dict(json.loads(model.pickup)),
        delivery=Address.from_dict(json.loads(model.delivery)),
        package=PackageInfo.from_dict(json.loads(model.package)),
        base_paise=model.base_paise,
        surcharge_paise=model.surcharge_paise,
        tax_paise=model.tax_paise,
        total_paise=model.total_paise,
        currency=model.currency,
        payment_status=PaymentStatus(model.payment_status),
        payment_method=model.payment_method,
        payment_transaction_id=model.payment_transaction_id,
        paid_at=model.paid_at,
        status=OrderStatus(model.status),
        awb=model.awb,
        tracking_url=model.tracking_url,
        partner_order_ref=model.partner_order_ref,
        meta=json.loads(model.meta) if model.meta else {},
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


@dataclass(slots=True)
class TrackingOutcome:
    order: OrderRecord
    info: Optional[TrackingInfo]
    result: str  # updated, unchanged, unavailable, failed, not_booked
    error: Optional[str] = None


class OrderOrchestrator:
    """Drives an order from quote to booked shipment.

    Placement commits twice: once for the pending order, once for the debit
    together with the paid marker and the booking task. If the second unit
    fails for any reason, including cancellation of the caller, the pending
    order is deleted before the error propagates.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        orders: OrderRepository,
        ledger: WalletLedger,
        bookings: BookingQueue,
        quoter: RateQuoter,
        on_enqueued: Optional[Callable[[], None]] = None,
    ) -> None:
        self.session = session
        self.orders = orders
        self.ledger = ledger
        self.bookings = bookings
        self.quoter = quoter
        self._on_enqueued = on_enqueued

    @classmethod
    def with_session(
        cls,
        session: AsyncSession,
        *,
        quoter: RateQuoter,
        on_enqueued: Optional[Callable[[], None]] = None,
    ) -> "OrderOrchestrator":
        return cls(
            session,
            orders=SqlOrderRepository(session),
            ledger=WalletLedger.with_session(session),
            bookings=BookingQueue.with_session(session),
            quoter=quoter,
            on_enqueued=on_enqueued,
        )

    @property
    def registry(self) -> ProviderRegistry:
        return self.quoter.registry

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    async def place_order(self, draft: OrderDraft) -> PlacementResult:
        adapter = self.registry.resolve(draft.partner)
        order_type = OrderType.INTERNATIONAL if adapter.international else draft.order_type

        pricing = await self.quoter.quote(
            adapter.name, draft.pickup, draft.delivery, draft.package, draft.service_hint
        )

        available = await self.ledger.get_balance(draft.user_id)
        if available < pricing.total_paise:
            raise InsufficientFunds(pricing.total_paise, available)

        order_number = generate_order_number()
        meta = {
            "quote": pricing.to_meta(),
            "status_history": [
                history_entry(OrderStatus.PENDING, None, source="placement", partner=adapter.name)
            ],
        }
        model = await self.orders.create(
            order_number=order_number,
            user_id=draft.user_id,
            order_type=order_type.value,
            partner=adapter.name,
            service_type=pricing.service_type,
            pickup=json.dumps(draft.pickup.to_dict(), ensure_ascii=False),
            delivery=json.dumps(draft.delivery.to_dict(), ensure_ascii=False),
            package=json.dumps(draft.package.to_dict(), ensure_ascii=False),
            base_paise=pricing.base_paise,
            surcharge_paise=pricing.surcharge_paise,
            tax_paise=pricing.tax_paise,
            total_paise=pricing.total_paise,
            currency=pricing.currency,
            payment_status=PaymentStatus.PENDING.value,
            payment_method="wallet",
            status=OrderStatus.PENDING.value,
            meta=json.dumps(meta, ensure_ascii=False),
            revision=0,
        )
        order_id = model.id
        await self.session.commit()
        logger.info(
            "Order %s created for %s via %s, total %s paise%s",
            order_number,
            draft.user_id,
            adapter.name,
            pricing.total_paise,
            " (fallback quote)" if pricing.fallback else "",
        )

        try:
            transaction = await self.ledger.debit(
                draft.user_id,
                pricing.total_paise,
                f"Shipping charges for order {order_number}",
                order_id=order_id,
                metadata={"order_number": order_number, "partner": adapter.name},
            )
            marked = await self.orders.update_if_revision(
                order_id,
                0,
                payment_status=PaymentStatus.COMPLETED.value,
                payment_transaction_id=transaction.id,
                paid_at=utcnow(),
            )
            if not marked:
                raise OrderError(f"Order {order_number} changed while payment was recorded")
            await self.bookings.enqueue(order_id, adapter.name)
            await self.session.commit()
        except BaseException as exc:
            await self._compensate_placement(order_id, order_number, exc)
            raise

        if self._on_enqueued is not None:
            self._on_enqueued()

        order = await self._load(order_id)
        return PlacementResult(
            order=order,
            transaction=transaction,
            balance_after_paise=transaction.balance_after_paise,
        )

    async def _compensate_placement(self, order_id: str, order_number: str, exc: BaseException) -> None:
        logger.warning("Payment for order %s did not complete (%r); removing order", order_number, exc)
        await self.session.rollback()
        await self.orders.delete(order_id)
        await self.session.commit()

    # ------------------------------------------------------------------
    # Status updates
    # ------------------------------------------------------------------
    async def apply_status_update(
        self,
        *,
        order_id: Optional[str] = None,
        awb: Optional[str] = None,
        status: object,
        tracking_data: Optional[dict[str, Any]] = None,
        partner: Optional[str] = None,
        source: str = "webhook",
    ) -> OrderRecord:
        """Overwrite the order status and append it to the history.

        Terminal statuses are sticky: repeating one is a no-op, moving away
        from one raises InvalidStatus. The caller commits.
        """
        if not order_id and not awb:
            raise MissingOrderReference()
        new_status = status if isinstance(status, OrderStatus) else (
            OrderStatus.parse(status) if isinstance(status, str) else None
        )
        if new_status is None:
            raise InvalidStatus(status, allowed=[member.value for member in OrderStatus])

        def mutation(model: OrderModel, meta: dict[str, Any]) -> Optional[dict[str, Any]]:
            current = OrderStatus(model.status)
            if current.is_terminal:
                if current is new_status:
                    return None
                raise InvalidStatus(new_status, f"Order is already {current.value}")
            meta.setdefault("status_history", []).append(
                history_entry(new_status, current.value, source=source, partner=partner, tracking=tracking_data)
            )
            if tracking_data:
                meta["tracking"] = tracking_data
            return {"status": new_status.value}

        record = await self._mutate(order_id, awb, mutation)
        logger.info("Order %s status -> %s (%s)", record.order_number, record.status.value, source)
        return record

    async def record_shipment(self, order_id: str, receipt: ShipmentReceipt, partner: str) -> OrderRecord:
        """Attach the partner's tracking id and confirm a pending order."""

        def mutation(model: OrderModel, meta: dict[str, Any]) -> Optional[dict[str, Any]]:
            values: dict[str, Any] = {
                "awb": receipt.tracking_id,
                "tracking_url": receipt.tracking_url,
                "partner_order_ref": receipt.partner_order_ref,
            }
            meta["booking"] = {"label_url": receipt.label_url, "booked_at": utcnow().isoformat()}
            if model.status == OrderStatus.PENDING.value:
                meta.setdefault("status_history", []).append(
                    history_entry(OrderStatus.CONFIRMED, model.status, source="booking", partner=partner)
                )
                values["status"] = OrderStatus.CONFIRMED.value
            return values

        record = await self._mutate(order_id, None, mutation)
        logger.info("Order %s booked with %s, AWB %s", record.order_number, partner, receipt.tracking_id)
        return record

    async def _mutate(self, order_id: Optional[str], awb: Optional[str], mutation: Mutation) -> OrderRecord:
        for _ in range(MAX_WRITE_ATTEMPTS):
            model = await self._resolve(order_id, awb)
            meta = json.loads(model.meta) if model.meta else {}
            values = mutation(model, meta)
            if values is None:
                return to_record(model)
            values["meta"] = json.dumps(meta, ensure_ascii=False, default=str)
            if await self.orders.update_if_revision(model.id, model.revision, **values):
                return await self._load(model.id)
        raise OrderError(f"Order {order_id or awb} is being updated concurrently; try again")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_order(self, user_id: str, order_id: str, *, is_admin: bool = False) -> OrderRecord:
        model = await self.orders.get_by_reference(order_id)
        if model is None:
            raise OrderNotFound(order_id=order_id)
        if not is_admin and model.user_id != user_id:
            raise OrderOwnershipError(order_id)
        return to_record(model)

    async def list_orders(
        self,
        user_id: str,
        *,
        status: Optional[OrderStatus] = None,
        partner: Optional[str] = None,
        limit: Optional[int] = 20,
        offset: int = 0,
    ) -> OrderPage:
        status_value = status.value if status else None
        models = await self.orders.list_for_user(
            user_id, status=status_value, partner=partner, limit=limit, offset=offset
        )
        total = await self.orders.count_for_user(user_id, status=status_value, partner=partner)
        return OrderPage(items=[to_record(model) for model in models], total=total)

    async def track_order(self, user_id: str, order_id: str, *, is_admin: bool = False) -> TrackingOutcome:
        order = await self.get_order(user_id, order_id, is_admin=is_admin)
        outcome = await self.refresh_tracking(order, source="on_demand")
        if outcome.result == "updated":
            await self.session.commit()
        return outcome

    async def refresh_tracking(self, order: OrderRecord, *, source: str = "poll") -> TrackingOutcome:
        """Pull partner tracking for one order and apply a changed status.

        Never raises for partner failures of any kind; they come back as a
        ``failed`` outcome. A partner status that folds to
        ``pending`` carries no information and is not applied.
        """
        if not order.awb:
            return TrackingOutcome(order, None, "not_booked")
        adapter = self.registry.resolve(order.partner)
        try:
            info = await adapter.bounded("track_shipment", adapter.track_shipment(order.awb))
        except TrackingUnavailable as exc:
            logger.debug("[%s] no tracking yet for %s: %s", adapter.name, order.awb, exc)
            return TrackingOutcome(order, None, "unavailable")
        except ProviderError as exc:
            logger.warning("[%s] tracking %s failed: %s", adapter.name, order.awb, exc)
            return TrackingOutcome(order, None, "failed", str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("[%s] tracking %s failed unexpectedly", adapter.name, order.awb)
            return TrackingOutcome(order, None, "failed", f"{type(exc).__name__}: {exc}")

        if order.status.is_terminal or info.internal_status in (order.status, OrderStatus.PENDING):
            return TrackingOutcome(order, info, "unchanged")
        try:
            updated = await self.apply_status_update(
                order_id=order.id,
                status=info.internal_status,
                tracking_data=info.to_dict(),
                partner=adapter.name,
                source=source,
            )
        except InvalidStatus as exc:
            # order went terminal between the read and the write
            logger.info("Skipping tracking update for %s: %s", order.order_number, exc)
            return TrackingOutcome(order, info, "unchanged")
        return TrackingOutcome(updated, info, "updated")

    # ------------------------------------------------------------------
    # Cancellation and ops
    # ------------------------------------------------------------------
    async def cancel_order(
        self,
        user_id: str,
        order_id: str,
        *,
        is_admin: bool = False,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        order = await self.get_order(user_id, order_id, is_admin=is_admin)
        if order.status is not OrderStatus.PENDING:
            raise OrderNotCancellable(order.id, f"order is {order.status.value}")
        if order.awb:
            raise OrderNotCancellable(order.id, "shipment already booked")

        try:
            booking = await self.bookings.get(order.id)
            if booking is not None and booking.status is not BookingStatus.CANCELLED:
                if not await self.bookings.cancel(order.id):
                    raise OrderNotCancellable(order.id, f"booking is {booking.status.value}")

            refund = None
            if order.payment_status is PaymentStatus.COMPLETED:
                refund = await self.ledger.credit(
                    order.user_id,
                    order.total_paise,
                    f"Refund for cancelled order {order.order_number}",
                    order_id=order.id,
                    metadata={"reason": reason, "cancelled_by": "admin" if is_admin else "user"},
                )

            def mutation(model: OrderModel, meta: dict[str, Any]) -> Optional[dict[str, Any]]:
                if model.status != OrderStatus.PENDING.value or model.awb:
                    raise OrderNotCancellable(model.id, f"order is {model.status}")
                meta.setdefault("status_history", []).append(
                    history_entry(OrderStatus.CANCELLED, model.status, source="cancellation", partner=model.partner)
                )
                if reason:
                    meta["cancellation_reason"] = reason
                values: dict[str, Any] = {"status": OrderStatus.CANCELLED.value}
                if refund is not None:
                    values["payment_status"] = PaymentStatus.REFUNDED.value
                return values

            cancelled = await self._mutate(order.id, None, mutation)
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

        logger.info(
            "Order %s cancelled%s", order.order_number, f", refunded {order.total_paise} paise" if refund else ""
        )
        return CancellationResult(
            order=cancelled,
            refund=refund,
            balance_after_paise=refund.balance_after_paise if refund else None,
        )

    async def requeue_booking(self, order_id: str) -> BookingTask:
        order = await self._load(order_id)
        if order.status is not OrderStatus.PENDING or order.awb:
            raise OrderNotCancellable(order_id, "only unbooked pending orders can be requeued")
        task = await self.bookings.requeue(order_id)
        await self.session.commit()
        if self._on_enqueued is not None:
            self._on_enqueued()
        return task

    async def load(self, order_id: str) -> OrderRecord:
        return await self._load(order_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _resolve(self, order_id: Optional[str], awb: Optional[str]) -> OrderModel:
        model = None
        if order_id:
            model = await self.orders.get_by_reference(order_id)
        if model is None and awb:
            model = await self.orders.get_by_awb(awb)
        if model is None:
            raise OrderNotFound(order_id=order_id, awb=awb)
        return model

    async def _load(self, order_id: str) -> OrderRecord:
        model = await self.orders.get(order_id)
        if model is None:
            raise OrderNotFound(order_id=order_id)
        return to_record(model)
