"""Tests for PlatformOperationsService pass-through adapter calls."""

from decimal import Decimal

import pytest

from src.adapters.operations import Operation
from src.errors.domain import NotFoundError, ValidationError
from src.services.errors import AdapterExecutionError, AdapterNotFoundError
from src.services.platform_operations import PlatformOperationsService


@pytest.fixture
def service(db_session, executor) -> PlatformOperationsService:
    return PlatformOperationsService(db_session, executor)


class TestProducts:
    async def test_search_shop_products(self, service, shop, shop_adapter):
        shop_adapter.set_product("prod-1", "var-1", title="Blue Mug")
        shop_adapter.set_product("prod-2", "", title="Red Plate")

        result = await service.search_products("shop", shop.id, "mug")

        assert [p["productId"] for p in result["products"]] == ["prod-1"]
        (call,) = shop_adapter.calls_for("search_products")
        assert call.platform_config["domain"] == "acme.myshopify.com"
        assert call.arguments == {"search_entry": "mug", "after": None}

    async def test_get_channel_product(self, service, channel, channel_adapter):
        channel_adapter.set_product("c-1", "cv-1", price="4.00")

        result = await service.get_product("channel", channel.id, "c-1", "cv-1")

        assert result == {"product": {"price": "4.00"}}

    async def test_update_shop_product(self, service, shop, shop_adapter):
        await service.update_product(shop.id, "prod-1", "var-1", price=Decimal("12.00"))

        (call,) = shop_adapter.calls_for("update_product")
        assert call.arguments["price"] == Decimal("12.00")
        assert call.arguments["inventory"] is None

    async def test_update_needs_a_change(self, service, shop, shop_adapter):
        with pytest.raises(ValidationError):
            await service.update_product(shop.id, "prod-1")

        assert shop_adapter.calls == []


class TestOrders:
    async def test_search_storefront_orders(self, service, shop, shop_adapter):
        shop_adapter.configure_response("search_orders", {"orders": [{"orderId": "1001"}]})

        result = await service.search_orders(shop.id, "1001", after="cursor-1")

        assert result["orders"][0]["orderId"] == "1001"
        assert shop_adapter.calls_for("search_orders")[0].arguments["after"] == "cursor-1"


class TestWebhooks:
    async def test_create_list_delete(self, service, channel, channel_adapter):
        channel_adapter.configure_response("get_webhooks", {"webhooks": [{"id": "wh-1"}]})

        await service.create_webhook(
            "channel", channel.id, "https://relay.test/hooks", ["TRACKING_CREATED"]
        )
        listed = await service.get_webhooks("channel", channel.id)
        await service.delete_webhook("channel", channel.id, "wh-1")

        assert listed == {"webhooks": [{"id": "wh-1"}]}
        assert channel_adapter.calls_for("create_webhook")[0].arguments == {
            "endpoint": "https://relay.test/hooks",
            "events": ["TRACKING_CREATED"],
        }
        assert channel_adapter.calls_for("delete_webhook")[0].arguments == {"webhook_id": "wh-1"}

    async def test_events_required(self, service, shop):
        with pytest.raises(ValidationError):
            await service.create_webhook("shop", shop.id, "https://relay.test/hooks", [])


class TestErrors:
    async def test_unknown_endpoint(self, service):
        with pytest.raises(NotFoundError):
            await service.get_webhooks("shop", "missing")

    async def test_operation_from_the_other_side_rejected(self, service, channel):
        with pytest.raises(ValidationError, match="searchOrdersFunction"):
            await service._invoke("channel", channel.id, Operation.SEARCH_ORDERS)

    async def test_unconfigured_operation(self, service, make_channel):
        bare = make_channel("Bare", operations={})

        with pytest.raises(AdapterNotFoundError):
            await service.search_products("channel", bare.id)

    async def test_adapter_failure_propagates(self, service, shop, shop_adapter):
        shop_adapter.configure_failure("get_webhooks", RuntimeError("rate limited"))

        with pytest.raises(AdapterExecutionError):
            await service.get_webhooks("shop", shop.id)
