"""Tests for inbound shop and channel webhook endpoints."""

import json

import pytest

from src.services.link_service import LinkService
from src.webhooks.signatures import compute_signature

SHOPIFY_ORDER = {
    "id": 5001,
    "name": "#5001",
    "email": "buyer@example.com",
    "total_price": "20.00",
    "shipping_address": {
        "first_name": "Jane",
        "last_name": "Doe",
        "address1": "1 Main St",
        "city": "Austin",
        "province_code": "TX",
        "zip": "78701",
        "country_code": "US",
    },
    "line_items": [
        {"id": 1, "title": "Mug", "price": "10.00", "quantity": 2, "product_id": 11, "variant_id": 22}
    ],
}


def shopify_post(client, shop_id, kind, payload, secret="shop-secret"):
    body = json.dumps(payload).encode()
    return client.post(
        f"/api/v1/webhooks/shops/{shop_id}/{kind}",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": compute_signature(secret, body),
        },
    )


def openfront_post(client, channel_id, kind, payload, secret="channel-secret"):
    body = json.dumps(payload).encode()
    return client.post(
        f"/api/v1/webhooks/channels/{channel_id}/{kind}",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-OpenFront-Webhook-Signature": "sha256=" + compute_signature(secret, body, "hex"),
        },
    )


@pytest.fixture
def linked_shop(db_session, shop, channel):
    LinkService(db_session).create_link(shop.id, channel.id)
    db_session.commit()
    return shop


class TestShopWebhooks:
    def test_order_created_is_routed_and_placed(self, client, linked_shop, channel_adapter):
        response = shopify_post(client, linked_shop.id, "order-created", SHOPIFY_ORDER)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "created"
        assert data["order_status"] == "AWAITING"
        (call,) = channel_adapter.calls_for("create_purchase")
        assert call.arguments["cart_items"][0]["product_id"] == "11"

    def test_redelivery_is_a_duplicate(self, client, linked_shop, channel_adapter):
        first = shopify_post(client, linked_shop.id, "order-created", SHOPIFY_ORDER).json()

        second = shopify_post(client, linked_shop.id, "order-created", SHOPIFY_ORDER).json()

        assert second == {
            "status": "duplicate",
            "order_id": first["order_id"],
            "order_status": "AWAITING",
        }
        assert len(channel_adapter.calls_for("create_purchase")) == 1

    def test_bad_signature_is_401(self, client, shop):
        response = shopify_post(client, shop.id, "order-created", SHOPIFY_ORDER, secret="wrong")

        assert response.status_code == 401
        assert response.json()["error_code"] == "E-5002"
        assert client.get("/api/v1/orders").json()["total"] == 0

    def test_missing_signature_is_401(self, client, shop):
        response = client.post(
            f"/api/v1/webhooks/shops/{shop.id}/order-created", json=SHOPIFY_ORDER
        )

        assert response.status_code == 401
        assert response.json()["error_code"] == "E-5001"

    def test_malformed_body_is_400(self, client, shop):
        body = b"{not json"
        response = client.post(
            f"/api/v1/webhooks/shops/{shop.id}/order-created",
            content=body,
            headers={"X-Shopify-Hmac-Sha256": compute_signature("shop-secret", body)},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "E-2001"

    def test_cancellation(self, client, linked_shop):
        created = shopify_post(client, linked_shop.id, "order-created", SHOPIFY_ORDER).json()

        response = shopify_post(
            client, linked_shop.id, "order-cancelled", {"id": 5001, "cancel_reason": "customer"}
        )

        assert response.json() == {"status": "cancelled", "order_id": created["order_id"]}
        order = client.get(f"/api/v1/orders/{created['order_id']}").json()
        assert order["status"] == "CANCELLED"

    def test_cancellation_of_unknown_order_is_ignored(self, client, shop):
        response = shopify_post(client, shop.id, "order-cancelled", {"id": 404})

        assert response.json() == {"status": "ignored", "order_id": None}

    def test_unsupported_kind_is_400(self, client, shop):
        response = shopify_post(client, shop.id, "tracking-created", {})

        assert response.status_code == 400
        assert "Unsupported webhook kind" in response.json()["message"]

    def test_unknown_shop_is_404(self, client):
        response = shopify_post(client, "missing", "order-created", SHOPIFY_ORDER)

        assert response.status_code == 404


class TestChannelWebhooks:
    @pytest.fixture
    def placed_order(self, client, linked_shop):
        return shopify_post(client, linked_shop.id, "order-created", SHOPIFY_ORDER).json()

    def test_tracking_completes_order(self, client, channel, placed_order, shop_adapter):
        response = openfront_post(
            client,
            channel.id,
            "tracking-created",
            {"data": {"order": {"id": "P-1"}, "trackingNumber": "1Z999", "trackingCompany": "UPS"}},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "recorded"
        order = client.get(f"/api/v1/orders/{placed_order['order_id']}").json()
        assert order["status"] == "COMPLETE"
        assert order["cart_items"][0]["tracking_details"][0]["tracking_number"] == "1Z999"
        (call,) = shop_adapter.calls_for("add_tracking")
        assert call.arguments["tracking_number"] == "1Z999"

    def test_tracking_for_unknown_purchase_is_ignored(self, client, channel):
        response = openfront_post(
            client,
            channel.id,
            "tracking-created",
            {"data": {"order": {"id": "P-404"}, "trackingNumber": "1Z"}},
        )

        assert response.json() == {"status": "ignored", "tracking_detail_id": None}

    def test_purchase_cancellation(self, client, channel, placed_order):
        response = openfront_post(client, channel.id, "order-cancelled", {"data": {"id": "P-1"}})

        assert response.json()["status"] == "cancelled"
        assert len(response.json()["cart_item_ids"]) == 1
        order = client.get(f"/api/v1/orders/{placed_order['order_id']}").json()
        assert order["cart_items"][0]["status"] == "CANCELLED"

    def test_bad_signature_is_401(self, client, channel):
        response = openfront_post(
            client, channel.id, "order-cancelled", {"data": {"id": "P-1"}}, secret="wrong"
        )

        assert response.status_code == 401

    def test_order_created_not_accepted_from_channel(self, client, channel):
        response = openfront_post(client, channel.id, "order-created", {"data": {}})

        assert response.status_code == 400
