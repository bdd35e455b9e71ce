import asyncio

import pytest

from parcelhub.core.constants import BookingStatus, OrderStatus, OrderType, PaymentStatus, TransactionKind
from parcelhub.domain.bookings import BookingQueue
from parcelhub.domain.orders import (
    InvalidStatus,
    MissingOrderReference,
    OrderDraft,
    OrderNotCancellable,
    OrderNotFound,
    OrderOrchestrator,
    OrderOwnershipError,
)
from parcelhub.domain.wallets import InsufficientFunds, WalletLedger
from parcelhub.infrastructure.database.repositories.booking_repository import SqlBookingRepository
from parcelhub.infrastructure.database.repositories.order_repository import SqlOrderRepository
from parcelhub.infrastructure.database.repositories.wallet_repository import SqlWalletRepository
from parcelhub.providers import UnknownProvider

from tests.fakes import FakeAdapter, outage, receipt, sample_address, sample_package


def draft(user_id: str = "user-1", partner: str = "delhivery", weight_kg: float = 2.5) -> OrderDraft:
    return OrderDraft(
        user_id=user_id,
        partner=partner,
        pickup=sample_address("110001"),
        delivery=sample_address("400001", name="Ravi Kumar"),
        package=sample_package(weight_kg),
    )


@pytest.fixture
def orchestrator(session, quoter):
    return OrderOrchestrator.with_session(session, quoter=quoter)


async def balance_of(session_factory, account_id: str) -> int:
    async with session_factory() as session:
        return await WalletLedger.with_session(session).get_balance(account_id)


async def order_count(session_factory, user_id: str) -> int:
    async with session_factory() as session:
        return await SqlOrderRepository(session).count_for_user(user_id, status=None, partner=None)


async def test_placement_debits_wallet_and_queues_booking(session, quoter, fund, session_factory):
    await fund("user-1", 50000)
    woken = []
    orchestrator = OrderOrchestrator.with_session(session, quoter=quoter, on_enqueued=lambda: woken.append(True))

    result = await orchestrator.place_order(draft())

    order = result.order
    assert order.order_number.startswith("ORD")
    assert order.status is OrderStatus.PENDING
    assert order.payment_status is PaymentStatus.COMPLETED
    assert order.payment_transaction_id == result.transaction.id
    assert order.total_paise == 14160
    assert order.base_paise + order.surcharge_paise + order.tax_paise == order.total_paise
    assert result.transaction.kind is TransactionKind.DEBIT
    assert result.transaction.order_id == order.id
    assert result.balance_after_paise == 50000 - 14160
    assert await balance_of(session_factory, "user-1") == 35840
    assert woken == [True]
    assert [entry["status"] for entry in order.status_history] == ["pending"]

    async with session_factory() as session:
        task = await BookingQueue.with_session(session).get(order.id)
    assert task is not None
    assert task.status is BookingStatus.QUEUED
    assert task.partner == "delhivery"


async def test_insufficient_funds_creates_nothing(orchestrator, fund, session_factory):
    await fund("user-1", 1000)

    with pytest.raises(InsufficientFunds) as excinfo:
        await orchestrator.place_order(draft())

    assert excinfo.value.required_paise == 14160
    assert excinfo.value.available_paise == 1000
    assert excinfo.value.shortfall_paise == 13160
    assert await order_count(session_factory, "user-1") == 0
    assert await balance_of(session_factory, "user-1") == 1000


async def test_unknown_partner_is_rejected_before_quoting(orchestrator, fund, delhivery):
    await fund("user-1", 50000)
    with pytest.raises(UnknownProvider):
        await orchestrator.place_order(draft(partner="fedex"))
    assert delhivery.quote_calls == 0


async def test_partner_outage_places_order_at_fallback_price(orchestrator, fund, delhivery, session_factory):
    await fund("user-1", 50000)
    delhivery.quote = outage()

    result = await orchestrator.place_order(draft(weight_kg=2.5))

    assert result.order.total_paise == 7500
    assert result.order.used_fallback_quote
    assert result.order.payment_status is PaymentStatus.COMPLETED
    assert await balance_of(session_factory, "user-1") == 42500
    async with session_factory() as session:
        task = await BookingQueue.with_session(session).get(result.order.id)
    assert task.status is BookingStatus.QUEUED


async def test_international_partner_forces_order_type(session, fund, registry, quoter):
    registry.register(FakeAdapter("overseas_logistic", international=True))
    await fund("user-1", 50000)

    result = await OrderOrchestrator.with_session(session, quoter=quoter).place_order(
        draft(partner="overseas_logistic")
    )
    assert result.order.order_type is OrderType.INTERNATIONAL


class ExplodingQueue(BookingQueue):
    async def enqueue(self, order_id, partner, *, now=None):
        raise RuntimeError("queue table locked")


class StalledLedger(WalletLedger):
    async def debit(self, account_id, amount_paise, description, **kwargs):
        await asyncio.sleep(10)


async def test_failure_after_debit_rolls_back_and_deletes_order(session, quoter, fund, session_factory):
    await fund("user-1", 50000)
    orchestrator = OrderOrchestrator(
        session,
        orders=SqlOrderRepository(session),
        ledger=WalletLedger(SqlWalletRepository(session)),
        bookings=ExplodingQueue(SqlBookingRepository(session)),
        quoter=quoter,
    )

    with pytest.raises(RuntimeError, match="queue table locked"):
        await orchestrator.place_order(draft())

    assert await order_count(session_factory, "user-1") == 0
    assert await balance_of(session_factory, "user-1") == 50000
    async with session_factory() as check:
        page = await WalletLedger.with_session(check).list_transactions("user-1")
    assert [item.kind for item in page.items] == [TransactionKind.CREDIT]


async def test_cancelled_caller_still_compensates(session, quoter, fund, session_factory):
    await fund("user-1", 50000)
    orchestrator = OrderOrchestrator(
        session,
        orders=SqlOrderRepository(session),
        ledger=StalledLedger(SqlWalletRepository(session)),
        bookings=BookingQueue(SqlBookingRepository(session)),
        quoter=quoter,
    )

    task = asyncio.create_task(orchestrator.place_order(draft()))
    while await order_count(session_factory, "user-1") == 0:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await order_count(session_factory, "user-1") == 0
    assert await balance_of(session_factory, "user-1") == 50000


async def test_status_update_appends_history_and_terminal_is_sticky(orchestrator, fund, session):
    await fund("user-1", 50000)
    placed = (await orchestrator.place_order(draft())).order

    updated = await orchestrator.apply_status_update(
        order_id=placed.id, status="In_Transit", partner="delhivery", tracking_data={"location": "Delhi"}
    )
    await session.commit()
    assert updated.status is OrderStatus.IN_TRANSIT
    assert updated.meta["tracking"] == {"location": "Delhi"}
    assert [entry["status"] for entry in updated.status_history] == ["pending", "in_transit"]

    delivered = await orchestrator.apply_status_update(order_id=placed.order_number, status="delivered")
    await session.commit()
    assert delivered.status is OrderStatus.DELIVERED

    again = await orchestrator.apply_status_update(order_id=placed.id, status="delivered")
    assert len(again.status_history) == 3

    with pytest.raises(InvalidStatus):
        await orchestrator.apply_status_update(order_id=placed.id, status="in_transit")


async def test_status_update_validation(orchestrator, fund):
    await fund("user-1", 50000)
    placed = (await orchestrator.place_order(draft())).order

    with pytest.raises(MissingOrderReference):
        await orchestrator.apply_status_update(status="delivered")
    with pytest.raises(InvalidStatus) as excinfo:
        await orchestrator.apply_status_update(order_id=placed.id, status="teleported")
    assert "delivered" in excinfo.value.allowed
    with pytest.raises(OrderNotFound):
        await orchestrator.apply_status_update(order_id="missing", awb="NOPE", status="delivered")


async def test_status_update_by_awb(orchestrator, fund, session):
    await fund("user-1", 50000)
    placed = (await orchestrator.place_order(draft())).order
    booked = await orchestrator.record_shipment(placed.id, receipt("AWB777"), "delhivery")
    await session.commit()
    assert booked.status is OrderStatus.CONFIRMED
    assert booked.awb == "AWB777"

    updated = await orchestrator.apply_status_update(awb="AWB777", status="out_for_delivery")
    assert updated.id == placed.id
    assert updated.status is OrderStatus.OUT_FOR_DELIVERY


async def test_cancel_refunds_and_cancels_booking(orchestrator, fund, session_factory):
    await fund("user-1", 50000)
    placed = (await orchestrator.place_order(draft())).order

    result = await orchestrator.cancel_order("user-1", placed.id, reason="changed my mind")

    assert result.order.status is OrderStatus.CANCELLED
    assert result.order.payment_status is PaymentStatus.REFUNDED
    assert result.order.meta["cancellation_reason"] == "changed my mind"
    assert result.refund.kind is TransactionKind.CREDIT
    assert result.refund.amount_paise == placed.total_paise
    assert result.balance_after_paise == 50000
    assert await balance_of(session_factory, "user-1") == 50000
    async with session_factory() as session:
        task = await BookingQueue.with_session(session).get(placed.id)
    assert task.status is BookingStatus.CANCELLED

    with pytest.raises(OrderNotCancellable):
        await orchestrator.cancel_order("user-1", placed.id)


async def test_cancel_rules(orchestrator, fund, session):
    await fund("user-1", 50000)
    placed = (await orchestrator.place_order(draft())).order

    with pytest.raises(OrderOwnershipError):
        await orchestrator.cancel_order("user-2", placed.id)

    await orchestrator.record_shipment(placed.id, receipt("AWB1"), "delhivery")
    await session.commit()
    with pytest.raises(OrderNotCancellable):
        await orchestrator.cancel_order("user-1", placed.id, is_admin=True)


async def test_reads_are_scoped_to_owner(orchestrator, fund):
    await fund("user-1", 50000)
    await fund("user-2", 50000)
    first = (await orchestrator.place_order(draft("user-1"))).order
    await orchestrator.place_order(draft("user-1", partner="nimbuspost"))
    await orchestrator.place_order(draft("user-2"))

    page = await orchestrator.list_orders("user-1")
    assert page.total == 2
    filtered = await orchestrator.list_orders("user-1", partner="nimbuspost")
    assert filtered.total == 1
    assert filtered.items[0].partner == "nimbuspost"

    assert (await orchestrator.get_order("user-1", first.order_number)).id == first.id
    with pytest.raises(OrderOwnershipError):
        await orchestrator.get_order("user-2", first.id)
    assert (await orchestrator.get_order("ops", first.id, is_admin=True)).id == first.id
