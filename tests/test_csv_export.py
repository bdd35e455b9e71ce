import csv
import io

from parcelhub.domain.orders import OrderDraft, OrderOrchestrator
from parcelhub.domain.reports import AWB_BATCH_HEADER, STATEMENT_HEADER, export_awb_batch, export_statement

from tests.fakes import receipt, sample_address, sample_package


def rows(content: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content)))


async def place(session_factory, quoter, user_id="user-1", partner="delhivery"):
    async with session_factory() as session:
        result = await OrderOrchestrator.with_session(session, quoter=quoter).place_order(
            OrderDraft(
                user_id=user_id,
                partner=partner,
                pickup=sample_address(),
                delivery=sample_address("600001"),
                package=sample_package(),
            )
        )
    return result.order


async def test_statement_lists_ledger_oldest_first_with_awb(session_factory, quoter, fund):
    await fund("user-1", 50000)
    order = await place(session_factory, quoter)
    async with session_factory() as session:
        await OrderOrchestrator.with_session(session, quoter=quoter).record_shipment(
            order.id, receipt("DL42"), "delhivery"
        )
        await session.commit()

    async with session_factory() as session:
        content = await export_statement(session, "user-1")

    table = rows(content)
    assert table[0] == STATEMENT_HEADER
    opening, charge = table[1], table[2]
    assert opening[2] == "Credit"
    assert opening[6:] == ["500.00", "", "500.00"]
    assert charge[2] == "Debit"
    assert charge[4] == order.id
    assert charge[5] == "DL42"
    assert charge[6:] == ["", "141.60", "358.40"]


async def test_statement_for_empty_account_has_only_header(session):
    assert rows(await export_statement(session, "nobody")) == [STATEMENT_HEADER]


async def test_awb_batch_lists_only_booked_orders(session_factory, quoter, fund):
    await fund("user-1", 100000)
    await fund("user-2", 100000)
    booked = await place(session_factory, quoter)
    await place(session_factory, quoter, partner="nimbuspost")
    await place(session_factory, quoter, user_id="user-2")
    async with session_factory() as session:
        await OrderOrchestrator.with_session(session, quoter=quoter).record_shipment(
            booked.id, receipt("DL7"), "delhivery"
        )
        await session.commit()

    async with session_factory() as session:
        table = rows(await export_awb_batch(session, "user-1"))
        by_partner = rows(await export_awb_batch(session, "user-1", partner="nimbuspost"))

    assert table[0] == AWB_BATCH_HEADER
    assert len(table) == 2
    assert table[1][:6] == [booked.order_number, "DL7", "delhivery", "confirmed", "https://track.test/DL7", "141.60"]
    assert by_partner == [AWB_BATCH_HEADER]
