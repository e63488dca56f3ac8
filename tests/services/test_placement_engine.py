"""Tests for PlacementEngine: grouping, partial failure, retries and status."""

import asyncio
from decimal import Decimal

import pytest

from src.adapters.executor import AdapterExecutor
from src.db.models import OrderStatus
from src.errors.domain import NotFoundError
from src.services.errors import AdapterNotFoundError
from src.services.order_locks import OrderLockRegistry
from src.services.placement_engine import (
    AMBIGUOUS_PLACEMENT_MESSAGE,
    PLACEMENT_ERROR_PREFIX,
    PlacementEngine,
)
from tests.helpers.mock_adapter import MockPlatformAdapter


@pytest.fixture
def second_adapter(registry) -> MockPlatformAdapter:
    adapter = MockPlatformAdapter("channel-b")
    registry.register("mock-channel-b", adapter)
    return adapter


@pytest.fixture
def second_channel(make_channel, second_adapter):
    return make_channel(
        "Warehouse",
        operations={
            "createPurchaseFunction": "mock-channel-b",
            "getProductFunction": "mock-channel-b",
        },
    )


@pytest.fixture
def engine(db_session, executor) -> PlacementEngine:
    return PlacementEngine(db_session, executor, locks=OrderLockRegistry(), best_effort_timeout=1)


@pytest.fixture
def routed_order(make_order, order_service, channel, second_channel):
    """Order with two items on the default channel and one on the warehouse."""
    order = make_order(items=[("prod-1", "var-1", 1), ("prod-2", "var-2", 1)])
    order_service.add_cart_item(order.id, channel.id, "c-1", "cv-1", 1, Decimal("5.00"))
    order_service.add_cart_item(order.id, channel.id, "c-2", "cv-2", 2, Decimal("7.50"))
    order_service.add_cart_item(order.id, second_channel.id, "w-1", "", 1, Decimal("3.00"))
    return order


class TestGrouping:
    async def test_one_purchase_per_channel(
        self, engine, routed_order, channel_adapter, second_adapter
    ):
        result = await engine.place_order(routed_order.id)

        (first_call,) = channel_adapter.calls_for("create_purchase")
        (second_call,) = second_adapter.calls_for("create_purchase")
        assert sorted(i["product_id"] for i in first_call.arguments["cart_items"]) == ["c-1", "c-2"]
        assert [i["product_id"] for i in second_call.arguments["cart_items"]] == ["w-1"]
        assert first_call.arguments["shipping"]["city"] == "Austin"
        assert first_call.arguments["shipping"]["province"] == "TX"
        assert len(result.targets) == 2

    async def test_all_placed_moves_to_awaiting(
        self, db_session, engine, routed_order, channel, shop_adapter
    ):
        result = await engine.place_order(routed_order.id)

        assert result.status == OrderStatus.AWAITING.value
        assert result.remaining == 0
        assert result.placed == 3
        db_session.refresh(routed_order)
        on_channel = [i for i in routed_order.cart_items if i.channel_id == channel.id]
        assert {i.purchase_id for i in on_channel} == {"P-1"}
        assert all(i.url.endswith("/purchases/P-1") for i in on_channel)

        (add_cart,) = shop_adapter.calls_for("add_cart_to_platform_order")
        assert add_cart.arguments["order_id"] == "1001"
        assert len(add_cart.arguments["cart_items"]) == 3


class TestFailures:
    async def test_partial_failure_keeps_siblings(
        self, db_session, engine, routed_order, second_channel, second_adapter, shop_adapter
    ):
        second_adapter.configure_failure("create_purchase", RuntimeError("out of stock"))

        result = await engine.place_order(routed_order.id)

        assert result.status == OrderStatus.PENDING.value
        assert result.placed == 2
        assert result.failed == 1
        assert result.remaining == 1
        db_session.refresh(routed_order)
        failed = [i for i in routed_order.cart_items if i.channel_id == second_channel.id]
        assert failed[0].error.startswith(PLACEMENT_ERROR_PREFIX)
        assert "out of stock" in failed[0].error
        assert not failed[0].is_placed
        assert shop_adapter.calls_for("add_cart_to_platform_order") == []

    async def test_retry_only_places_unplaced_items(
        self, db_session, engine, routed_order, channel_adapter, second_adapter
    ):
        second_adapter.configure_failure("create_purchase", RuntimeError("down"))
        await engine.place_order(routed_order.id)
        second_adapter.configure_response("create_purchase", {"purchaseId": "W-1", "url": "https://w/1"})

        result = await engine.place_order(routed_order.id)

        assert len(channel_adapter.calls_for("create_purchase")) == 1
        assert len(second_adapter.calls_for("create_purchase")) == 2
        assert result.status == OrderStatus.AWAITING.value
        db_session.refresh(routed_order)
        assert all(i.error == "" for i in routed_order.cart_items)

    async def test_missing_purchase_id_is_failure(self, engine, routed_order, second_adapter):
        second_adapter.configure_response("create_purchase", {"error": "Card declined"})

        result = await engine.place_order(routed_order.id)

        failed = next(t for t in result.targets if not t.success)
        assert failed.error == PLACEMENT_ERROR_PREFIX + "Card declined"

    async def test_purchase_with_error_is_kept(self, engine, routed_order, second_adapter):
        second_adapter.configure_response(
            "create_purchase", {"purchaseId": "W-9", "error": "partial stock"}
        )

        result = await engine.place_order(routed_order.id)

        assert result.remaining == 0

    async def test_timeout_records_ambiguous_error(
        self, db_session, registry, routed_order, second_adapter
    ):
        second_adapter.delay = 1
        engine = PlacementEngine(
            db_session,
            AdapterExecutor(registry, default_timeout=0.05),
            locks=OrderLockRegistry(),
            best_effort_timeout=1,
        )

        result = await engine.place_order(routed_order.id)

        failed = next(t for t in result.targets if not t.success)
        assert failed.error == PLACEMENT_ERROR_PREFIX + AMBIGUOUS_PLACEMENT_MESSAGE

    async def test_add_cart_failure_is_best_effort(self, engine, routed_order, shop_adapter):
        shop_adapter.configure_failure("add_cart_to_platform_order", RuntimeError("shop down"))

        result = await engine.place_order(routed_order.id)

        assert result.status == OrderStatus.AWAITING.value


class TestPreconditions:
    async def test_misconfigured_channel_fails_before_any_call(
        self, db_session, engine, make_order, order_service, channel, make_channel, channel_adapter
    ):
        bare = make_channel("Bare", operations={})
        order = make_order()
        order_service.add_cart_item(order.id, channel.id, "c-1")
        order_service.add_cart_item(order.id, bare.id, "b-1")

        with pytest.raises(AdapterNotFoundError):
            await engine.place_order(order.id)

        assert channel_adapter.calls_for("create_purchase") == []
        db_session.rollback()
        db_session.refresh(order)
        assert len(order.cart_items) == 2

    async def test_unknown_order(self, engine):
        with pytest.raises(NotFoundError):
            await engine.place_order("missing")

    async def test_cancelled_order_is_skipped(
        self, engine, routed_order, order_service, channel_adapter
    ):
        order_service.cancel_order(routed_order.id)

        result = await engine.place_order(routed_order.id)

        assert result.status == OrderStatus.CANCELLED.value
        assert result.targets == []
        assert channel_adapter.calls_for("create_purchase") == []

    async def test_new_unplaced_item_moves_awaiting_back_to_pending(
        self, engine, routed_order, order_service, second_channel, second_adapter
    ):
        await engine.place_order(routed_order.id)
        order_service.add_cart_item(routed_order.id, second_channel.id, "w-2")
        second_adapter.configure_failure("create_purchase", RuntimeError("down"))

        result = await engine.place_order(routed_order.id)

        assert result.status == OrderStatus.PENDING.value
        assert result.remaining == 1


async def test_place_orders_continues_past_failures(engine, routed_order):
    results = await engine.place_orders(["missing", routed_order.id])

    assert results[0].error_code == "E-2003"
    assert "missing" in results[0].error
    assert results[1].status == OrderStatus.AWAITING.value


class TestConcurrentPlacement:
    async def test_same_order_placed_once(
        self, engine, make_order, order_service, channel, channel_adapter
    ):
        order = make_order()
        order_service.add_cart_item(order.id, channel.id, "c-1", "cv-1", 1, Decimal("5.00"))
        channel_adapter.delay = 0.05

        first, second = await asyncio.gather(
            engine.place_order(order.id), engine.place_order(order.id)
        )

        assert len(channel_adapter.calls_for("create_purchase")) == 1
        assert sorted([first.placed, second.placed]) == [0, 1]
        assert first.status == second.status == OrderStatus.AWAITING.value

    async def test_different_orders_both_placed(
        self, engine, make_order, order_service, channel, channel_adapter
    ):
        orders = [make_order("2001"), make_order("2002")]
        for order in orders:
            order_service.add_cart_item(order.id, channel.id, "c-1")
        channel_adapter.delay = 0.05

        results = await asyncio.gather(*(engine.place_order(o.id) for o in orders))

        assert [r.placed for r in results] == [1, 1]
        assert len(channel_adapter.calls_for("create_purchase")) == 2


class TestConcurrencySetting:
    def test_env_override(self, db_session, executor, monkeypatch):
        monkeypatch.setenv("ORDERRELAY_PLACEMENT_CONCURRENCY", "2")
        assert PlacementEngine(db_session, executor).concurrency == 2

    def test_invalid_env_falls_back(self, db_session, executor, monkeypatch):
        monkeypatch.setenv("ORDERRELAY_PLACEMENT_CONCURRENCY", "lots")
        assert PlacementEngine(db_session, executor).concurrency == 5

    def test_explicit_value_floored_at_one(self, db_session, executor):
        assert PlacementEngine(db_session, executor, concurrency=0).concurrency == 1
