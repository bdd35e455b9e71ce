import asyncio
from datetime import timedelta

import pytest

from parcelhub.core.config import BookingSettings
from parcelhub.core.constants import BookingStatus, OrderStatus
from parcelhub.domain.bookings import BookingNotRequeueable, BookingOutcome, BookingQueue
from parcelhub.domain.bookings.service import utcnow
from parcelhub.domain.bookings.worker import BookingWorker
from parcelhub.domain.orders import OrderDraft, OrderOrchestrator
from parcelhub.providers import ShipmentOutcomeUnknown, ShipmentRejected

from tests.fakes import outage, receipt, sample_address, sample_package


@pytest.fixture
async def placed_order(session_factory, quoter, fund):
    await fund("user-1", 100000)
    async with session_factory() as session:
        result = await OrderOrchestrator.with_session(session, quoter=quoter).place_order(
            OrderDraft(
                user_id="user-1",
                partner="delhivery",
                pickup=sample_address(),
                delivery=sample_address("560001"),
                package=sample_package(),
            )
        )
    return result.order


@pytest.fixture
def worker(session_factory, quoter, booking_settings):
    return BookingWorker(session_factory, quoter, booking_settings)


async def load_task(session_factory, order_id):
    async with session_factory() as session:
        return await BookingQueue.with_session(session).get(order_id)


async def load_order(session_factory, quoter, order_id):
    async with session_factory() as session:
        return await OrderOrchestrator.with_session(session, quoter=quoter).load(order_id)


async def test_due_task_is_booked(worker, placed_order, delhivery, session_factory, quoter):
    delhivery.shipments.append(receipt("DL123"))

    summary = await worker.run_once()

    assert summary.outcomes == {placed_order.id: BookingOutcome.BOOKED}
    assert delhivery.shipment_calls == [placed_order.order_number]
    order = await load_order(session_factory, quoter, placed_order.id)
    assert order.awb == "DL123"
    assert order.status is OrderStatus.CONFIRMED
    assert order.tracking_url == "https://track.test/DL123"
    assert order.partner_order_ref == "REF-DL123"
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.BOOKED
    assert task.attempts == 1
    assert task.booked_at is not None

    assert (await worker.run_once()).outcomes == {}


async def test_concurrent_workers_reach_partner_at_most_once(worker, placed_order, delhivery, session_factory, quoter):
    delhivery.booking_delay = 0.05
    rival = BookingWorker(session_factory, quoter, worker.settings)

    outcomes = await asyncio.gather(
        *(candidate.process(placed_order.id) for candidate in (worker, rival, worker, rival))
    )

    assert outcomes.count(BookingOutcome.BOOKED) == 1
    assert outcomes.count(BookingOutcome.SKIPPED) == 3
    assert len(delhivery.shipment_calls) == 1


async def test_retryable_failure_is_rescheduled_then_booked(worker, placed_order, delhivery, session_factory):
    delhivery.shipments.extend([outage(operation="create_shipment"), receipt("DL9")])

    first = await worker.process(placed_order.id)
    assert first is BookingOutcome.RETRY_SCHEDULED
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.QUEUED
    assert task.attempts == 1
    assert "connection refused" in task.last_error
    assert task.claimed_at is None

    second = await worker.process(placed_order.id)
    assert second is BookingOutcome.BOOKED
    task = await load_task(session_factory, placed_order.id)
    assert task.attempts == 2
    assert task.last_error is None


async def test_retry_budget_exhaustion_parks_task(worker, placed_order, delhivery, session_factory):
    delhivery.shipments.extend(outage(operation="create_shipment") for _ in range(3))

    outcomes = [await worker.process(placed_order.id) for _ in range(3)]

    assert outcomes == [
        BookingOutcome.RETRY_SCHEDULED,
        BookingOutcome.RETRY_SCHEDULED,
        BookingOutcome.FAILED,
    ]
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.FAILED
    assert "after 3 attempts" in task.last_error
    assert await worker.process(placed_order.id) is BookingOutcome.SKIPPED


async def test_rejection_fails_without_retry(worker, placed_order, delhivery, session_factory, quoter):
    delhivery.shipments.append(
        ShipmentRejected("Invalid pincode", partner="delhivery", operation="create_shipment")
    )

    assert await worker.process(placed_order.id) is BookingOutcome.FAILED
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.FAILED
    assert "Invalid pincode" in task.last_error
    order = await load_order(session_factory, quoter, placed_order.id)
    assert order.awb is None
    assert order.status is OrderStatus.PENDING


async def test_backoff_grows_exponentially(session_factory, quoter):
    worker = BookingWorker(session_factory, quoter, BookingSettings(backoff_seconds=30))
    assert [worker.backoff_seconds(n) for n in (1, 2, 3, 4)] == [30, 60, 120, 240]


async def test_retry_waits_for_backoff(session_factory, quoter, placed_order, delhivery):
    worker = BookingWorker(session_factory, quoter, BookingSettings(backoff_seconds=600))
    delhivery.shipments.append(outage(operation="create_shipment"))

    assert await worker.process(placed_order.id) is BookingOutcome.RETRY_SCHEDULED
    assert (await worker.run_once()).outcomes == {}
    assert await worker.process(placed_order.id) is BookingOutcome.SKIPPED


async def test_stale_claim_is_failed_for_review(placed_order, session_factory):
    async with session_factory() as session:
        queue = BookingQueue.with_session(session)
        assert await queue.claim(placed_order.id)
        await session.commit()

    async with session_factory() as session:
        queue = BookingQueue.with_session(session)
        assert await queue.expire_stale(300) == []
        expired = await queue.expire_stale(300, now=utcnow() + timedelta(seconds=301))
        await session.commit()

    assert expired == [placed_order.id]
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.FAILED
    assert task.last_error.startswith("outcome unknown")


async def test_worker_pass_expires_abandoned_claims(session_factory, quoter, placed_order):
    async with session_factory() as session:
        await BookingQueue.with_session(session).claim(placed_order.id)
        await session.commit()

    worker = BookingWorker(session_factory, quoter, BookingSettings(claim_lease_seconds=0))
    summary = await worker.run_once()

    assert summary.expired == [placed_order.id]
    assert summary.outcomes == {}


async def test_failed_task_can_be_requeued(worker, placed_order, delhivery, session_factory, quoter):
    delhivery.shipments.append(ShipmentRejected("quota", partner="delhivery", operation="create_shipment"))
    assert await worker.process(placed_order.id) is BookingOutcome.FAILED

    async with session_factory() as session:
        task = await OrderOrchestrator.with_session(session, quoter=quoter).requeue_booking(placed_order.id)
    assert task.status is BookingStatus.QUEUED
    assert task.attempts == 0

    async with session_factory() as session:
        with pytest.raises(BookingNotRequeueable):
            await BookingQueue.with_session(session).requeue(placed_order.id)

    assert (await worker.run_once()).outcomes == {placed_order.id: BookingOutcome.BOOKED}


async def test_cancelled_order_is_never_booked(worker, placed_order, delhivery, session_factory, quoter):
    async with session_factory() as session:
        await OrderOrchestrator.with_session(session, quoter=quoter).cancel_order("user-1", placed_order.id)

    summary = await worker.run_once()

    assert summary.outcomes == {}
    assert delhivery.shipment_calls == []


async def test_background_loop_books_after_notify(session_factory, quoter, booking_settings, placed_order, delhivery):
    worker = BookingWorker(session_factory, quoter, booking_settings.model_copy(update={"poll_interval": 60}))
    worker.start()
    try:
        assert worker.running
        for _ in range(100):
            if delhivery.shipment_calls:
                break
            worker.notify()
            await asyncio.sleep(0.02)
    finally:
        await worker.stop()

    assert delhivery.shipment_calls == [placed_order.order_number]
    assert not worker.running


async def test_timed_out_booking_is_parked_not_resent(worker, placed_order, delhivery, session_factory, quoter):
    delhivery.timeout = 0.05
    delhivery.booking_delay = 0.1

    assert await worker.process(placed_order.id) is BookingOutcome.FAILED
    assert await worker.process(placed_order.id) is BookingOutcome.SKIPPED
    assert (await worker.run_once()).outcomes == {}

    assert delhivery.shipment_calls == [placed_order.order_number]
    task = await load_task(session_factory, placed_order.id)
    assert task.status is BookingStatus.FAILED
    assert task.last_error.startswith("outcome unknown")
    assert "deadline exceeded" in task.last_error
    order = await load_order(session_factory, quoter, placed_order.id)
    assert order.awb is None


async def test_unknown_booking_outcome_skips_remaining_retries(worker, placed_order, delhivery, session_factory):
    delhivery.shipments.append(
        ShipmentOutcomeUnknown("request timed out", partner="delhivery", operation="create_shipment")
    )

    assert await worker.process(placed_order.id) is BookingOutcome.FAILED
    task = await load_task(session_factory, placed_order.id)
    assert task.attempts == 1
    assert task.status is BookingStatus.FAILED
    assert "request timed out" in task.last_error
    assert len(delhivery.shipment_calls) == 1
