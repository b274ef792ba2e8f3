from decimal import Decimal

import httpx
import pytest
from fastapi import FastAPI

from services.cart_service.router import router as cart_router
from services.notification_service.router import router as notification_router
from services.order_service.router import public_router as order_public_router
from services.order_service.router import router as order_router
from services.payment_service.router import router as payment_router
from services.payment_service.router import webhook_router
from services.product_service.router import router as product_router
from shared.config.database import get_db
from shared.security import api_key, create_access_token, limiter
from conftest import ADMIN, BUYER, OTHER_SELLER, SELLER

ADDRESS = {
    "full_name": "Ada Buyer",
    "street": "1 Charity Lane",
    "city": "Springfield",
    "postal_code": "62701",
    "country": "US",
}
INTERNAL_KEY = {"X-Internal-API-Key": "test-internal-key"}


def auth(actor):
    token = create_access_token({"sub": actor.user_id, "role": actor.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(session_factory):
    app = FastAPI()
    app.state.limiter = limiter
    app.include_router(product_router, prefix="/products")
    app.include_router(cart_router, prefix="/cart")
    app.include_router(order_public_router, prefix="/orders")
    app.include_router(order_router, prefix="/orders")
    app.include_router(payment_router, prefix="/payments")
    app.include_router(webhook_router, prefix="/payments")
    app.include_router(notification_router, prefix="/notifications")

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def place_order(client, price="100.00", quantity=1):
    resp = await client.post("/products/", json={"title": "Charity mug", "price": price}, headers=auth(SELLER))
    assert resp.status_code == 200
    product_id = resp.json()["id"]

    resp = await client.post("/cart/items", json={"product_id": product_id, "quantity": quantity},
                             headers=auth(BUYER))
    assert resp.status_code == 200

    resp = await client.post("/orders/checkout", json={"shipping_address": ADDRESS}, headers=auth(BUYER))
    assert resp.status_code == 201
    return resp.json()


async def paid_order(client, **kwargs):
    order = await place_order(client, **kwargs)
    resp = await client.post("/payments/charge", json={"order_id": order["id"]}, headers=auth(BUYER))
    assert resp.status_code == 200
    return order


async def delivered_order(client, **kwargs):
    order = await paid_order(client, **kwargs)
    resp = await client.post(f"/orders/{order['id']}/shipping",
                             json={"tracking_number": "1Z999", "shipping_carrier": "UPS"}, headers=auth(SELLER))
    assert resp.status_code == 200
    resp = await client.post(f"/orders/{order['id']}/confirm-delivery", headers=auth(BUYER))
    assert resp.status_code == 200
    return order


async def test_health(client):
    resp = await client.get("/orders/health")
    assert resp.json() == {"service": "order", "status": "running"}


async def test_checkout_to_settlement_over_http(client):
    order = await place_order(client, price="25.00", quantity=4)
    assert order["status"] == "pending"
    assert Decimal(order["total_amount"]) == Decimal("100.00")
    assert (await client.get("/cart/", headers=auth(BUYER))).json()["items"] == []

    resp = await client.post("/payments/charge", json={"order_id": order["id"]}, headers=auth(BUYER))
    body = resp.json()
    assert body["payment"]["status"] == "success"
    assert (body["order_status"], body["payment_status"]) == ("confirmed", "paid")

    resp = await client.post(f"/orders/{order['id']}/shipping",
                             json={"tracking_number": "1Z999", "shipping_carrier": "UPS"}, headers=auth(SELLER))
    assert resp.json()["status"] == "shipped"

    resp = await client.post(f"/orders/{order['id']}/confirm-delivery", headers=auth(BUYER))
    assert resp.json()["confirmed_by_buyer"] is True

    resp = await client.get(f"/orders/{order['id']}/settlement-preview", headers=auth(SELLER))
    assert resp.json()["is_estimate"] is True
    assert Decimal(resp.json()["seller_amount"]) == Decimal("90.00")

    resp = await client.post(f"/orders/{order['id']}/release-payment",
                             json={"commission_rate": "10", "transfer_notes": "batch 12"}, headers=auth(ADMIN))
    assert resp.status_code == 200
    settlement = resp.json()
    assert settlement["released_now"] is True
    assert Decimal(settlement["admin_commission"]) == Decimal("10.00")
    assert Decimal(settlement["seller_amount"]) == Decimal("90.00")

    resp = await client.get(f"/orders/{order['id']}", headers=auth(BUYER))
    assert resp.json()["status"] == "completed"
    assert resp.json()["transfer_notes"] == "batch 12"

    resp = await client.get("/notifications/", headers=auth(SELLER))
    assert {n["type"] for n in resp.json()} == {"new_order", "order_delivered", "payment_transferred"}


async def test_requests_without_token_are_rejected(client):
    assert (await client.get("/orders/mine")).status_code == 401


async def test_user_token_cannot_claim_processor_role(client):
    token = create_access_token({"sub": "mallory", "role": "payment_processor"})
    resp = await client.get("/orders/mine", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_checkout_with_empty_cart_is_422(client):
    resp = await client.post("/orders/checkout", json={"shipping_address": ADDRESS}, headers=auth(BUYER))
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "EmptyCartError"


class TestWebhook:
    async def test_unconfigured_key_rejects_every_caller(self, client, monkeypatch):
        monkeypatch.setattr(api_key, "INTERNAL_API_KEY", "")
        order = await place_order(client)

        for header in ({}, {"X-Internal-API-Key": ""}, {"X-Internal-API-Key": "insecure-default-change-me"}):
            resp = await client.post("/payments/webhook",
                                     json={"order_id": order["id"], "event": "payment_succeeded"}, headers=header)
            assert resp.status_code == 403

        resp = await client.get(f"/orders/{order['id']}", headers=auth(BUYER))
        assert resp.json()["payment_status"] == "pending"

    async def test_success_after_cancel_is_acknowledged_without_reviving_the_order(self, client):
        order = await place_order(client)
        assert (await client.post(f"/orders/{order['id']}/cancel", headers=auth(BUYER))).status_code == 200

        payload = {"order_id": order["id"], "event": "payment_succeeded", "transaction_id": "tx-late"}
        for _ in range(2):
            resp = await client.post("/payments/webhook", json=payload, headers=INTERNAL_KEY)
            assert resp.status_code == 200
            assert resp.json()["result"] == "rejected"

        resp = await client.get(f"/orders/{order['id']}", headers=auth(BUYER))
        assert (resp.json()["status"], resp.json()["payment_status"]) == ("cancelled", "pending")

    async def test_cancelled_order_cannot_be_charged(self, client):
        order = await place_order(client)
        await client.post(f"/orders/{order['id']}/cancel", headers=auth(BUYER))

        resp = await client.post("/payments/charge", json={"order_id": order["id"]}, headers=auth(BUYER))
        assert resp.status_code == 409
        assert resp.json()["detail"]["error"] == "IllegalTransitionError"

    async def test_requires_internal_key(self, client):
        order = await place_order(client)
        resp = await client.post("/payments/webhook", json={"order_id": order["id"], "event": "payment_succeeded"})
        assert resp.status_code == 403

    async def test_redelivery_is_acknowledged_as_already_processed(self, client):
        order = await place_order(client)
        payload = {"order_id": order["id"], "event": "payment_succeeded", "transaction_id": "tx-1"}

        first = await client.post("/payments/webhook", json=payload, headers=INTERNAL_KEY)
        second = await client.post("/payments/webhook", json=payload, headers=INTERNAL_KEY)

        assert first.json()["result"] == "applied"
        assert second.status_code == 200
        assert second.json() == {"order_id": order["id"], "result": "already_processed", "payment_status": "paid"}

        resp = await client.get("/notifications/", headers=auth(BUYER))
        assert [n["type"] for n in resp.json()] == ["payment_confirmed"]

    async def test_failed_payment(self, client):
        order = await place_order(client)
        resp = await client.post(
            "/payments/webhook",
            json={"order_id": order["id"], "event": "payment_failed", "reason": "insufficient_funds"},
            headers=INTERNAL_KEY,
        )
        assert resp.json()["payment_status"] == "failed"

        resp = await client.post("/payments/charge", json={"order_id": order["id"]}, headers=auth(BUYER))
        assert resp.status_code == 409


class TestErrorMapping:
    async def test_unknown_order_is_404(self, client):
        resp = await client.post("/orders/nope/cancel", headers=auth(BUYER))
        assert resp.status_code == 404

    async def test_other_seller_cannot_ship(self, client):
        order = await paid_order(client)
        resp = await client.post(f"/orders/{order['id']}/shipping",
                                 json={"tracking_number": "1Z999", "shipping_carrier": "UPS"},
                                 headers=auth(OTHER_SELLER))
        assert resp.status_code == 403
        assert resp.json()["detail"]["error"] == "UnauthorizedActorError"

    async def test_blank_tracking_number_is_422(self, client):
        order = await paid_order(client)
        resp = await client.post(f"/orders/{order['id']}/shipping",
                                 json={"tracking_number": "  ", "shipping_carrier": "UPS"}, headers=auth(SELLER))
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "MissingTrackingInfoError"

    async def test_cancel_after_shipping_is_409(self, client):
        order = await paid_order(client)
        await client.post(f"/orders/{order['id']}/shipping",
                          json={"tracking_number": "1Z999", "shipping_carrier": "UPS"}, headers=auth(SELLER))
        resp = await client.post(f"/orders/{order['id']}/cancel", headers=auth(BUYER))
        assert resp.status_code == 409
        assert resp.json()["detail"]["error"] == "IllegalTransitionError"

    async def test_non_admin_release_is_403(self, client):
        order = await delivered_order(client)
        resp = await client.post(f"/orders/{order['id']}/release-payment", json={}, headers=auth(SELLER))
        assert resp.status_code == 403

    async def test_out_of_range_rate_is_422(self, client):
        order = await delivered_order(client)
        resp = await client.post(f"/orders/{order['id']}/release-payment",
                                 json={"commission_rate": "150"}, headers=auth(ADMIN))
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "InvalidRateError"

    async def test_order_hidden_from_unrelated_seller(self, client):
        order = await place_order(client)
        resp = await client.get(f"/orders/{order['id']}", headers=auth(OTHER_SELLER))
        assert resp.status_code == 403


async def test_repeated_release_returns_original_split(client):
    order = await delivered_order(client)
    url = f"/orders/{order['id']}/release-payment"

    first = await client.post(url, json={}, headers=auth(ADMIN))
    second = await client.post(url, json={"commission_rate": "50"}, headers=auth(ADMIN))

    assert first.json()["released_now"] is True
    assert second.status_code == 200
    assert second.json()["released_now"] is False
    assert Decimal(second.json()["admin_commission"]) == Decimal(first.json()["admin_commission"])

    resp = await client.get("/notifications/", headers=auth(SELLER))
    assert [n["type"] for n in resp.json()].count("payment_transferred") == 1


async def test_settlement_summary_is_admin_only(client):
    await delivered_order(client)
    assert (await client.get("/orders/settlements/summary", headers=auth(SELLER))).status_code == 403

    resp = await client.get("/orders/settlements/summary", headers=auth(ADMIN))
    assert resp.json()["awaiting_release_count"] == 1


async def test_seller_and_buyer_order_lists(client):
    order = await place_order(client)
    assert [o["id"] for o in (await client.get("/orders/mine", headers=auth(BUYER))).json()] == [order["id"]]
    assert [o["id"] for o in (await client.get("/orders/selling", headers=auth(SELLER))).json()] == [order["id"]]
    assert (await client.get("/orders/selling", headers=auth(OTHER_SELLER))).json() == []


class TestNotificationsApi:
    async def test_preferences_default_then_update(self, client):
        resp = await client.get("/notifications/preferences", headers=auth(BUYER))
        assert resp.json()["order_updates"] is True

        resp = await client.put("/notifications/preferences",
                                json={"email": "ada@example.org", "order_updates": False}, headers=auth(BUYER))
        assert resp.json()["email"] == "ada@example.org"
        assert resp.json()["order_updates"] is False
        assert resp.json()["product_sold"] is True

    async def test_only_recipient_can_mark_read(self, client):
        await paid_order(client)
        [notification] = (await client.get("/notifications/", headers=auth(BUYER))).json()

        resp = await client.patch(f"/notifications/{notification['id']}/read", json={"is_read": True},
                                  headers=auth(SELLER))
        assert resp.status_code == 403

        resp = await client.patch(f"/notifications/{notification['id']}/read", json={"is_read": True},
                                  headers=auth(BUYER))
        assert resp.json()["is_read"] is True

    async def test_mark_all_read(self, client):
        await paid_order(client)
        resp = await client.post("/notifications/read-all", headers=auth(BUYER))
        assert resp.json() == {"updated": 1}

        resp = await client.get("/notifications/", params={"unread_only": True}, headers=auth(BUYER))
        assert resp.json() == []
