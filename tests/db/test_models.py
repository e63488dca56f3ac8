"""Tests for model helpers: JSON-backed properties and derived state."""

from src.db.models import CartItem, CartItemStatus, Link, Platform, ShopItem
from src.services.platform_service import PlatformService


class TestPlatform:
    def test_operations_round_trip_sorted(self):
        platform = Platform(name="X", kind="shop")
        platform.operations = {"oAuthFunction": "b", "getProductFunction": "a"}

        assert platform.operations_json == '{"getProductFunction": "a", "oAuthFunction": "b"}'
        assert platform.operations == {"getProductFunction": "a", "oAuthFunction": "b"}

    def test_corrupt_json_reads_as_empty(self):
        platform = Platform(name="X", kind="shop", operations_json="not json", metadata_json="[1]")

        assert platform.operations == {}
        assert platform.extra == {}


class TestEndpointConfig:
    def test_credentials_override_metadata(self, shop, db_session):
        shop.metadata_json = '{"accessToken": "stale", "locale": "en"}'
        db_session.flush()

        config = shop.platform_config()

        assert config["accessToken"] == "shop-token"
        assert config["locale"] == "en"

    def test_endpoint_without_platform(self, db_session):
        channel = PlatformService(db_session).create_channel("Bare", "owner-1", domain="bare.test")

        assert channel.platform_config() == {"domain": "bare.test", "accessToken": ""}


class TestCartItem:
    def test_placed_when_purchase_or_url_set(self):
        assert not CartItem(purchase_id="", url="").is_placed
        assert CartItem(purchase_id="P-1", url="").is_placed
        assert CartItem(purchase_id="", url="https://x.test/p").is_placed

    def test_cancelled(self):
        assert CartItem(status=CartItemStatus.CANCELLED.value).is_cancelled
        assert not CartItem(status=CartItemStatus.PENDING.value).is_cancelled


def test_shop_item_fingerprint():
    item = ShopItem(product_id="p", variant_id="v", quantity=3, owner_id="o")

    assert item.fingerprint() == ("p", "v", 3)


def test_link_filters_property():
    link = Link(rank=1)
    link.filters = {"country": "US"}

    assert link.filters_json == '{"country": "US"}'
    assert link.filters == {"country": "US"}

    link.filters = None
    assert link.filters == {}


def test_order_defaults_and_relationships(make_order):
    order = make_order("6001", items=[("p-1", "", 1), ("p-2", "v", 2)])

    assert order.status == "PENDING"
    assert order.owner_id == "owner-1"
    assert {li.product_id for li in order.line_items} == {"p-1", "p-2"}
    assert order.shipping_projection()["province"] == "TX"
