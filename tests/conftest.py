"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory SQLite session
- Adapter registry/executor wired to recording mock adapters
- Shop/channel/order factories
"""

import os
import tempfile
from collections.abc import Callable, Generator
from decimal import Decimal

# The engine in src.db.connection is created at import time; keep it off
# the user's real data directory.
os.environ.setdefault("ORDERRELAY_DATA_DIR", tempfile.mkdtemp(prefix="orderrelay-tests-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.adapters.executor import AdapterExecutor
from src.adapters.operations import Operation
from src.adapters.registry import AdapterRegistry
from src.db.models import Base, Channel, Order, Shop
from src.services.order_service import OrderService
from src.services.platform_service import PlatformService
from src.webhooks.events import NormalizedLineItem, OrderCreatedEvent, ShippingAddress
from tests.helpers.mock_adapter import MockPlatformAdapter

OWNER_ID = "owner-1"


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that exercise several services end to end"
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Create an in-memory SQLite database for testing.

    Creates all tables, yields a session, and cleans up after test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# ============================================================================
# Adapter Fixtures
# ============================================================================


@pytest.fixture
def shop_adapter() -> MockPlatformAdapter:
    return MockPlatformAdapter("shop")


@pytest.fixture
def channel_adapter() -> MockPlatformAdapter:
    return MockPlatformAdapter("channel")


@pytest.fixture
def registry(shop_adapter, channel_adapter) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register("mock-shop", shop_adapter)
    registry.register("mock-channel", channel_adapter)
    return registry


@pytest.fixture
def executor(registry) -> AdapterExecutor:
    return AdapterExecutor(registry, default_timeout=5)


# ============================================================================
# Endpoint Fixtures
# ============================================================================

SHOP_OPERATION_MAP = {
    Operation.GET_PRODUCT.value: "mock-shop",
    Operation.ADD_TRACKING.value: "mock-shop",
    Operation.ADD_CART_TO_PLATFORM_ORDER.value: "mock-shop",
    Operation.OAUTH.value: "mock-shop",
    Operation.OAUTH_CALLBACK.value: "mock-shop",
    Operation.SEARCH_PRODUCTS.value: "mock-shop",
    Operation.SEARCH_ORDERS.value: "mock-shop",
    Operation.UPDATE_PRODUCT.value: "mock-shop",
    Operation.CREATE_WEBHOOK.value: "mock-shop",
    Operation.DELETE_WEBHOOK.value: "mock-shop",
    Operation.GET_WEBHOOKS.value: "mock-shop",
}

CHANNEL_OPERATION_MAP = {
    Operation.GET_PRODUCT.value: "mock-channel",
    Operation.CREATE_PURCHASE.value: "mock-channel",
    Operation.CANCEL_PURCHASE.value: "mock-channel",
    Operation.SEARCH_PRODUCTS.value: "mock-channel",
    Operation.CREATE_WEBHOOK.value: "mock-channel",
    Operation.DELETE_WEBHOOK.value: "mock-channel",
    Operation.GET_WEBHOOKS.value: "mock-channel",
}


@pytest.fixture
def shop(db_session) -> Shop:
    service = PlatformService(db_session)
    platform = service.create_platform(
        name="Shopify",
        kind="shop",
        operations=SHOP_OPERATION_MAP,
        webhook_secret="shop-secret",
        app_key="app-key",
    )
    shop = service.create_shop(
        name="Acme Store",
        owner_id=OWNER_ID,
        domain="acme.myshopify.com",
        access_token="shop-token",
        platform_id=platform.id,
    )
    db_session.commit()
    return shop


@pytest.fixture
def make_channel(db_session) -> Callable[..., Channel]:
    """Factory creating channels backed by the mock channel adapter."""
    service = PlatformService(db_session)

    def _make(name: str = "Supplier", operations: dict[str, str] | None = None) -> Channel:
        platform = service.create_platform(
            name=f"{name} platform",
            kind="channel",
            operations=CHANNEL_OPERATION_MAP if operations is None else operations,
            webhook_secret="channel-secret",
            metadata={"webhookFormat": "openfront"},
        )
        channel = service.create_channel(
            name=name,
            owner_id=OWNER_ID,
            domain=f"{name.lower()}.test",
            access_token="channel-token",
            platform_id=platform.id,
        )
        db_session.commit()
        return channel

    return _make


@pytest.fixture
def channel(make_channel) -> Channel:
    return make_channel("Supplier")


# ============================================================================
# Order Fixtures
# ============================================================================


def order_event(
    order_id: str = "1001",
    items: list[tuple[str, str, int]] | None = None,
    country: str = "US",
    total: str = "50.00",
    email: str = "buyer@example.com",
) -> OrderCreatedEvent:
    """Build a canonical order-created event from (product, variant, qty) tuples."""
    items = items if items is not None else [("prod-1", "var-1", 1)]
    return OrderCreatedEvent(
        platform="shopify",
        order_id=order_id,
        order_name=f"#{order_id}",
        email=email,
        shipping=ShippingAddress(
            first_name="Jane",
            last_name="Doe",
            address1="1 Main St",
            city="Austin",
            state="TX",
            zip="78701",
            country=country,
        ),
        total_price=Decimal(total),
        subtotal_price=Decimal(total),
        line_items=[
            NormalizedLineItem(
                name=f"Item {product_id}",
                price=Decimal("10.00"),
                quantity=quantity,
                product_id=product_id,
                variant_id=variant_id,
                line_item_id=f"li-{index}",
            )
            for index, (product_id, variant_id, quantity) in enumerate(items)
        ],
    )


@pytest.fixture
def order_service(db_session, executor) -> OrderService:
    return OrderService(db_session, executor, best_effort_timeout=2)


@pytest.fixture
def make_order(db_session, order_service, shop) -> Callable[..., Order]:
    """Factory persisting an order (no routing) for the default shop."""

    def _make(
        order_id: str = "1001",
        items: list[tuple[str, str, int]] | None = None,
        link_order: bool = True,
        match_order: bool = True,
        process_order: bool = True,
        **event_fields,
    ) -> Order:
        order = order_service.create_order(
            shop.id,
            order_event(order_id, items, **event_fields),
            link_order=link_order,
            match_order=match_order,
            process_order=process_order,
        )
        db_session.commit()
        return order

    return _make
