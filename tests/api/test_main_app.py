"""Tests for the application object: health, info and error mapping."""

import pytest
from starlette.requests import Request

from src.api.main import (
    _domain_status,
    adapter_error_handler,
    orderrelay_error_handler,
    state_transition_handler,
)
from src.errors import OrderRelayError
from src.errors.domain import (
    ConflictError,
    DomainError,
    DuplicateMatchError,
    LinkFilterError,
    NoMatchFoundError,
    NotFoundError,
    PartialMatchError,
    ValidationError,
)
from src.services.errors import AdapterExecutionError, AdapterHttpError, AdapterNotFoundError
from src.services.order_status import InvalidStateTransition, OrderStatus


def _request() -> Request:
    return Request({"type": "http", "method": "POST", "path": "/test", "headers": [], "query_string": b""})


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert isinstance(data["adapters"], list)
    assert data["uptime_seconds"] >= 0


def test_api_info(client):
    assert client.get("/api").json()["name"] == "OrderRelay API"


@pytest.mark.parametrize(
    "exc,status",
    [
        (NotFoundError("Order", "x"), 404),
        (ConflictError("taken"), 409),
        (DuplicateMatchError(), 409),
        (ValidationError("bad"), 400),
        (LinkFilterError("unknown field 'x'"), 400),
        (NoMatchFoundError(), 422),
        (PartialMatchError([("p", "", 1)]), 422),
        (DomainError("boom"), 500),
    ],
)
def test_domain_status(exc, status):
    assert _domain_status(exc) == status


class TestAdapterErrors:
    async def test_missing_adapter_is_500(self):
        response = await adapter_error_handler(
            _request(), AdapterNotFoundError("createPurchaseFunction")
        )

        assert response.status_code == 500
        assert b"E-3001" in response.body

    @pytest.mark.parametrize(
        "exc,code",
        [
            (AdapterHttpError("getProductFunction", "https://x.test", 503, "down"), b"E-3002"),
            (AdapterExecutionError("getProductFunction", "mock", RuntimeError("boom")), b"E-3003"),
        ],
    )
    async def test_failed_call_is_502(self, exc, code):
        response = await adapter_error_handler(_request(), exc)

        assert response.status_code == 502
        assert code in response.body


async def test_state_transition_is_409():
    response = await state_transition_handler(
        _request(), InvalidStateTransition(OrderStatus.COMPLETE, OrderStatus.PENDING, [])
    )

    assert response.status_code == 409


async def test_orderrelay_error_is_400():
    response = await orderrelay_error_handler(
        _request(), OrderRelayError.from_code("E-3004", count=2)
    )

    assert response.status_code == 400
    assert b"Placement failed for 2 cart item(s)." in response.body
