"""Unit tests for src/errors/registry.py.

Tests verify:
- Routing, adapter and webhook error codes are registered with correct categories
- Every code the services raise has a registry entry
"""

import pytest

from src.errors.domain import (
    DuplicateMatchError,
    LinkFilterError,
    NoMatchFoundError,
    NotFoundError,
    PartialMatchError,
)
from src.errors.registry import ERROR_REGISTRY, ErrorCategory, get_error, get_errors_by_category
from src.services.errors import (
    AdapterExecutionError,
    AdapterHttpError,
    AdapterNotFoundError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from src.services.order_status import InvalidStateTransition


@pytest.mark.parametrize(
    "code,category,title",
    [
        ("E-1001", ErrorCategory.ROUTING, "No Match Found"),
        ("E-1002", ErrorCategory.ROUTING, "Partial Match"),
        ("E-1003", ErrorCategory.ROUTING, "No Link Matched"),
        ("E-1004", ErrorCategory.ROUTING, "Duplicate Match"),
        ("E-2001", ErrorCategory.VALIDATION, "Invalid Webhook Payload"),
        ("E-2002", ErrorCategory.VALIDATION, "Invalid Link Filter"),
        ("E-3001", ErrorCategory.ADAPTER, "Adapter Not Found"),
        ("E-3004", ErrorCategory.ADAPTER, "Order Placement Error"),
        ("E-4002", ErrorCategory.SYSTEM, "Invalid State Transition"),
        ("E-5001", ErrorCategory.SECURITY, "Missing Webhook Signature"),
        ("E-5002", ErrorCategory.SECURITY, "Invalid Webhook Signature"),
    ],
)
def test_error_codes_registered(code, category, title):
    """All OrderRelay error codes must be registered."""
    error = get_error(code)
    assert error is not None, f"{code} not found in registry"
    assert error.category == category
    assert error.title == title


def test_codes_match_their_keys():
    for key, error in ERROR_REGISTRY.items():
        assert key == error.code


def test_unknown_code():
    assert get_error("E-9999") is None


def test_adapter_transport_errors_are_retryable():
    retryable = {e.code for e in get_errors_by_category(ErrorCategory.ADAPTER) if e.is_retryable}
    assert retryable == {"E-3002", "E-3003"}


@pytest.mark.parametrize(
    "error",
    [
        NoMatchFoundError(),
        PartialMatchError([("a", "", 1)]),
        DuplicateMatchError("m-1"),
        LinkFilterError("bad"),
        NotFoundError("Order", "x"),
        AdapterNotFoundError("createPurchaseFunction"),
        AdapterHttpError("createPurchaseFunction", "https://x", 500, ""),
        AdapterExecutionError("createPurchaseFunction", "mock", RuntimeError("x")),
        WebhookPayloadError("bad"),
        WebhookSignatureError("bad"),
        WebhookSignatureError("missing", missing=True),
    ],
)
def test_raised_codes_are_registered(error):
    assert get_error(error.code) is not None, f"{type(error).__name__} uses unregistered {error.code}"


def test_state_transition_code_registered():
    assert get_error(InvalidStateTransition.code) is not None
