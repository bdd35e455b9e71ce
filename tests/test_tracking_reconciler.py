import pytest

from parcelhub.core.constants import OrderStatus
from parcelhub.domain.orders import OrderDraft, OrderOrchestrator
from parcelhub.domain.tracking import TrackingReconciler
from parcelhub.providers import TrackingInfo

from tests.fakes import outage, receipt, sample_address, sample_package


@pytest.fixture
async def booked_order(session_factory, quoter, fund):
    await fund("user-1", 100000)
    async with session_factory() as session:
        orchestrator = OrderOrchestrator.with_session(session, quoter=quoter)
        placed = await orchestrator.place_order(
            OrderDraft(
                user_id="user-1",
                partner="delhivery",
                pickup=sample_address(),
                delivery=sample_address("700001"),
                package=sample_package(),
            )
        )
        order = await orchestrator.record_shipment(placed.order.id, receipt("DL55"), "delhivery")
        await session.commit()
    return order


@pytest.fixture
def reconciler(session_factory, quoter, tracking_settings):
    return TrackingReconciler(session_factory, quoter, tracking_settings)


def scan(status: OrderStatus, raw: str) -> TrackingInfo:
    return TrackingInfo(tracking_id="DL55", internal_status=status, raw_status=raw, location="Kolkata")


async def current(session_factory, quoter, order_id):
    async with session_factory() as session:
        return await OrderOrchestrator.with_session(session, quoter=quoter).load(order_id)


async def test_changed_partner_status_is_applied(reconciler, booked_order, delhivery, session_factory, quoter):
    delhivery.tracking = scan(OrderStatus.IN_TRANSIT, "In Transit")

    summary = await reconciler.run_once()

    assert summary.checked == 1
    assert summary.updated == 1
    order = await current(session_factory, quoter, booked_order.id)
    assert order.status is OrderStatus.IN_TRANSIT
    assert order.status_history[-1]["source"] == "poll"
    assert order.meta["tracking"]["raw_status"] == "In Transit"

    again = await reconciler.run_once()
    assert again.updated == 0
    assert again.unchanged == 1


async def test_pending_scan_carries_no_information(reconciler, booked_order, delhivery, session_factory, quoter):
    delhivery.tracking = scan(OrderStatus.PENDING, "weirdstatus123")

    summary = await reconciler.run_once()

    assert summary.unchanged == 1
    assert (await current(session_factory, quoter, booked_order.id)).status is OrderStatus.CONFIRMED


async def test_partner_errors_do_not_stop_the_pass(reconciler, booked_order, delhivery):
    delhivery.tracking = None
    assert (await reconciler.run_once()).unavailable == 1

    delhivery.tracking = outage(operation="track_shipment")
    summary = await reconciler.run_once()
    assert summary.failed == 1
    assert "connection refused" in summary.errors[booked_order.order_number]
    assert summary.as_dict()["failed"] == 1


async def test_terminal_orders_are_not_polled(reconciler, booked_order, delhivery, session_factory, quoter):
    delhivery.tracking = scan(OrderStatus.DELIVERED, "Delivered")
    assert (await reconciler.run_once()).updated == 1

    delhivery.tracking_calls.clear()
    summary = await reconciler.run_once()

    assert summary.checked == 0
    assert delhivery.tracking_calls == []
    assert (await current(session_factory, quoter, booked_order.id)).status is OrderStatus.DELIVERED


async def test_unbooked_orders_are_skipped(reconciler, fund, session_factory, quoter, delhivery):
    await fund("user-2", 100000)
    async with session_factory() as session:
        await OrderOrchestrator.with_session(session, quoter=quoter).place_order(
            OrderDraft(
                user_id="user-2",
                partner="delhivery",
                pickup=sample_address(),
                delivery=sample_address(),
                package=sample_package(),
            )
        )

    assert (await reconciler.run_once()).checked == 0
    assert delhivery.tracking_calls == []


async def test_on_demand_tracking_commits_change(booked_order, delhivery, session_factory, quoter):
    delhivery.tracking = scan(OrderStatus.OUT_FOR_DELIVERY, "Out for Delivery")
    async with session_factory() as session:
        outcome = await OrderOrchestrator.with_session(session, quoter=quoter).track_order("user-1", booked_order.id)

    assert outcome.result == "updated"
    assert outcome.info.location == "Kolkata"
    assert (await current(session_factory, quoter, booked_order.id)).status is OrderStatus.OUT_FOR_DELIVERY


def test_start_respects_disabled_setting(reconciler):
    reconciler.start()
    assert not reconciler.running


async def book_orders(session_factory, quoter, fund, awbs):
    await fund("user-3", 100000)
    orders = []
    async with session_factory() as session:
        orchestrator = OrderOrchestrator.with_session(session, quoter=quoter)
        for awb in awbs:
            placed = await orchestrator.place_order(
                OrderDraft(
                    user_id="user-3",
                    partner="delhivery",
                    pickup=sample_address(),
                    delivery=sample_address("600001"),
                    package=sample_package(),
                )
            )
            orders.append(await orchestrator.record_shipment(placed.order.id, receipt(awb), "delhivery"))
        await session.commit()
    return orders


async def test_malformed_partner_reply_fails_only_that_order(reconciler, delhivery, session_factory, quoter, fund):
    await book_orders(session_factory, quoter, fund, ["A1", "A2"])
    delhivery.tracking = AttributeError("'str' object has no attribute 'get'")

    summary = await reconciler.run_once()

    assert sorted(delhivery.tracking_calls) == ["A1", "A2"]
    assert summary.checked == 2
    assert summary.failed == 2
    assert all("malformed partner response" in error for error in summary.errors.values())


async def test_unexpected_error_on_one_order_does_not_stop_the_pass(
    reconciler, delhivery, session_factory, quoter, fund, monkeypatch
):
    first, second = await book_orders(session_factory, quoter, fund, ["A1", "A2"])
    delhivery.tracking = scan(OrderStatus.IN_TRANSIT, "In Transit")
    refresh = OrderOrchestrator.refresh_tracking

    async def flaky_refresh(self, order, *, source="poll"):
        if order.awb == "A1":
            raise RuntimeError("row could not be decoded")
        return await refresh(self, order, source=source)

    monkeypatch.setattr(OrderOrchestrator, "refresh_tracking", flaky_refresh)

    summary = await reconciler.run_once()

    assert summary.checked == 2
    assert summary.failed == 1
    assert summary.updated == 1
    assert "RuntimeError" in summary.errors[first.id]
    assert (await current(session_factory, quoter, second.id)).status is OrderStatus.IN_TRANSIT
    assert (await current(session_factory, quoter, first.id)).status is OrderStatus.CONFIRMED


async def test_on_demand_tracking_degrades_on_unexpected_error(booked_order, delhivery, session_factory, quoter):
    delhivery.tracking = RuntimeError("partner SDK blew up")
    async with session_factory() as session:
        outcome = await OrderOrchestrator.with_session(session, quoter=quoter).track_order("user-1", booked_order.id)

    assert outcome.result == "failed"
    assert "partner SDK blew up" in outcome.error
    assert (await current(session_factory, quoter, booked_order.id)).status is OrderStatus.CONFIRMED
