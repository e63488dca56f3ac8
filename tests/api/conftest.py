"""Pytest fixtures for API tests.

Provides a test client whose database session and adapter executor are
the shared in-memory session and mock-adapter executor from the root
conftest.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.api.main import app
from src.db.connection import get_db
from src.services.oauth_state_store import OAuthStateStore, get_oauth_state_store


@pytest.fixture
def oauth_store() -> OAuthStateStore:
    return OAuthStateStore(ttl_seconds=60)


@pytest.fixture
def client(
    db_session: Session, executor: AdapterExecutor, oauth_store: OAuthStateStore
) -> Generator[TestClient, None, None]:
    """Create a TestClient with overridden database and adapter dependencies.

    Args:
        db_session: Test database session fixture.
        executor: Executor wired to the mock adapters.
        oauth_store: Fresh OAuth state store.

    Yields:
        TestClient configured for testing.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_adapter_executor] = lambda: executor
    app.dependency_overrides[get_oauth_state_store] = lambda: oauth_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def order_payload(shop_id: str, order_id: str = "A-100", **overrides) -> dict:
    """JSON body for POST /api/v1/orders."""
    payload = {
        "shop_id": shop_id,
        "order_id": order_id,
        "order_name": f"#{order_id}",
        "email": "buyer@example.com",
        "shipping": {
            "first_name": "Jane",
            "last_name": "Doe",
            "address1": "1 Main St",
            "city": "Austin",
            "state": "TX",
            "zip": "78701",
            "country": "US",
        },
        "total_price": "25.00",
        "line_items": [
            {"name": "Mug", "price": "12.50", "quantity": 2, "product_id": "prod-1", "variant_id": "var-1"}
        ],
    }
    payload.update(overrides)
    return payload
