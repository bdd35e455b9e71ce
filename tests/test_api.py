import httpx
import pytest

from parcelhub.api.deps import get_db_session
from parcelhub.core.config import Settings, get_settings
from parcelhub.core.container import ApplicationContainer, get_container
from parcelhub.core.security import create_access_token
from parcelhub.main import create_app

from tests.fakes import outage

ADDRESS = {"name": "Asha Verma", "phone": "9876543210", "address": "12 MG Road", "pincode": "110001"}
ORDER_PAYLOAD = {
    "partner": "delhivery",
    "pickup": ADDRESS,
    "delivery": {**ADDRESS, "name": "Ravi Kumar", "pincode": "400001"},
    "package": {"weight_kg": 2.5, "declared_value": "1500"},
}


def auth(user_id: str = "user-1", role: str = "user") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
async def client(session_factory, registry, pricing_settings, booking_settings, tracking_settings):
    settings = Settings(pricing=pricing_settings, booking=booking_settings, tracking=tracking_settings)
    container = ApplicationContainer.build(settings, registry=registry, session_factory=session_factory)

    async def session_override():
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db_session] = session_override
    app.dependency_overrides[get_container] = lambda: container
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
    await container.worker.stop()


async def test_requests_without_token_are_rejected(client):
    response = await client.get("/api/wallet")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "unauthenticated"

    response = await client.get("/api/wallet", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_admin_routes_require_admin_role(client):
    response = await client.get("/api/admin/bookings", headers=auth())
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "unauthorized"

    response = await client.get("/api/admin/bookings", headers=auth("ops", "admin"))
    assert response.status_code == 200
    assert response.json() == {"tasks": []}


async def test_health_reports_partners(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["partners"] == ["delhivery", "nimbuspost"]
    assert body["booking_worker"] is False


async def test_rates_for_all_partners_with_fallback_flag(client, nimbuspost):
    nimbuspost.quote = outage("nimbuspost")
    payload = {key: ORDER_PAYLOAD[key] for key in ("pickup", "delivery", "package")}

    response = await client.post("/api/orders/rates", json=payload, headers=auth())

    assert response.status_code == 200
    rates = {rate["partner"]: rate for rate in response.json()["rates"]}
    assert rates["delhivery"]["total_paise"] == 14160
    assert rates["delhivery"]["fallback"] is False
    assert rates["nimbuspost"]["total_paise"] == 7500
    assert rates["nimbuspost"]["fallback"] is True


async def test_unknown_partner_rate_is_400(client):
    payload = {**{key: ORDER_PAYLOAD[key] for key in ("pickup", "delivery", "package")}, "partner": "fedex"}
    response = await client.post("/api/orders/rates", json=payload, headers=auth())
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "invalid_partner"
    assert detail["available"] == ["delhivery", "nimbuspost"]


async def test_order_lifecycle(client, fund):
    await fund("user-1", 50000)

    placed = await client.post("/api/orders", json=ORDER_PAYLOAD, headers=auth())
    assert placed.status_code == 201
    body = placed.json()
    order = body["order"]
    assert order["payment_status"] == "completed"
    assert order["status"] == "pending"
    assert body["balance_after_paise"] == 35840

    listing = await client.get("/api/orders", headers=auth())
    assert listing.json()["total"] == 1

    detail = await client.get(f"/api/orders/{order['order_number']}", headers=auth())
    assert detail.status_code == 200
    assert (await client.get(f"/api/orders/{order['id']}", headers=auth("user-2"))).status_code == 403
    assert (await client.get("/api/orders/missing", headers=auth())).status_code == 404

    transactions = await client.get("/api/wallet/transactions", params={"type": "debit"}, headers=auth())
    assert transactions.json()["total"] == 1
    assert transactions.json()["total_credit_paise"] == 50000
    assert (await client.get("/api/wallet/transactions", params={"type": "bonus"}, headers=auth())).status_code == 400

    cancelled = await client.post(f"/api/orders/{order['id']}/cancel", json={"reason": "duplicate"}, headers=auth())
    assert cancelled.status_code == 200
    assert cancelled.json()["refunded_paise"] == 14160
    assert cancelled.json()["order"]["status"] == "cancelled"

    wallet = await client.get("/api/wallet", headers=auth())
    assert wallet.json()["balance_paise"] == 50000

    statement = await client.get("/api/wallet/statement.csv", headers=auth())
    assert statement.headers["content-type"].startswith("text/csv")
    assert len(statement.text.strip().splitlines()) == 4


async def test_insufficient_funds_reports_shortfall(client, fund):
    await fund("user-1", 1000)
    response = await client.post("/api/orders", json=ORDER_PAYLOAD, headers=auth())
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "insufficient_funds"
    assert detail["shortfall_paise"] == 13160


async def test_status_webhook(client, fund):
    await fund("user-1", 50000)
    order = (await client.post("/api/orders", json=ORDER_PAYLOAD, headers=auth())).json()["order"]

    ack = await client.post(
        "/api/webhooks/order-status",
        json={"orderId": order["id"], "status": "in_transit", "partnerName": "delhivery"},
    )
    assert ack.status_code == 200
    assert ack.json() == {
        "success": True,
        "order_id": order["id"],
        "order_number": order["order_number"],
        "status": "in_transit",
    }

    unknown = await client.post("/api/webhooks/order-status", json={"orderId": "nope", "status": "delivered"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "order_not_found"

    missing = await client.post("/api/webhooks/order-status", json={"status": "delivered"})
    assert missing.status_code == 400
    assert missing.json()["detail"]["code"] == "missing_reference"

    bad_status = await client.post("/api/webhooks/order-status", json={"orderId": order["id"], "status": "lost"})
    assert bad_status.status_code == 400
    assert bad_status.json()["detail"]["code"] == "invalid_status"


async def test_topup_flow_through_bridge(client):
    created = await client.post("/api/wallet/topups", json={"amount_paise": 20000, "payment_channel": "upi"}, headers=auth())
    assert created.status_code == 201
    reference = created.json()["reference_no"]

    bridge = {"X-Bridge-Token": get_settings().security.bridge_token.get_secret_value()}
    event = {"reference_no": reference, "amount_paise": 20000}

    assert (await client.post("/api/webhooks/topups", json=event)).status_code == 401
    first = await client.post("/api/webhooks/topups", json=event, headers=bridge)
    second = await client.post("/api/webhooks/topups", json=event, headers=bridge)
    assert first.status_code == second.status_code == 200
    assert first.json()["status"] == "success"
    assert second.json()["ledger_transaction_id"] == first.json()["ledger_transaction_id"]

    wallet = await client.get("/api/wallet", headers=auth())
    assert wallet.json()["balance_paise"] == 20000

    other = (await client.post("/api/wallet/topups", json={"amount_paise": 5000}, headers=auth())).json()
    mismatch = await client.post(
        "/api/webhooks/topups", json={"reference_no": other["reference_no"], "amount_paise": 4000}, headers=bridge
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"]["code"] == "topup_mismatch"
    listing = await client.get("/api/wallet/topups", params={"status": "failed"}, headers=auth())
    assert [item["reference_no"] for item in listing.json()["topups"]] == [other["reference_no"]]


async def test_admin_credit_and_audit(client):
    admin = auth("ops", "admin")
    credit = await client.post(
        "/api/admin/wallet/credit", json={"account_id": "user-9", "amount_paise": 700}, headers=admin
    )
    assert credit.status_code == 201
    assert credit.json()["balance_after_paise"] == 700

    audit = await client.get("/api/admin/wallet/audit", headers=admin)
    assert audit.json()["consistent"] is True
    assert [account["account_id"] for account in audit.json()["accounts"]] == ["user-9"]


async def test_admin_requeue_of_unknown_booking(client):
    response = await client.post("/api/admin/bookings/missing/requeue", headers=auth("ops", "admin"))
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "order_not_found"
