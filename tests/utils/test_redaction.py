"""Tests for secret redaction in logs and stored errors."""

import pytest

from src.utils.redaction import REDACTED, is_sensitive_key, redact_secrets, sanitize_error_message


@pytest.mark.parametrize(
    "key", ["accessToken", "access_token", "appSecret", "X-Shopify-Hmac-Sha256", "code_verifier", "headers"]
)
def test_sensitive_keys(key):
    assert is_sensitive_key(key)


@pytest.mark.parametrize("key", ["domain", "product_id", "createPurchaseFunction", "name"])
def test_plain_keys(key):
    assert not is_sensitive_key(key)


def test_redacts_nested_structures():
    data = {
        "platformConfig": {"domain": "acme.test", "accessToken": "tok", "appKey": "k"},
        "cart_items": [{"product_id": "p", "api_key": "x"}],
    }

    result = redact_secrets(data)

    assert result["platformConfig"] == {"domain": "acme.test", "accessToken": REDACTED, "appKey": "k"}
    assert result["cart_items"] == [{"product_id": "p", "api_key": REDACTED}]
    assert data["platformConfig"]["accessToken"] == "tok"


def test_scalars_pass_through():
    assert redact_secrets("plain") == "plain"
    assert redact_secrets(3) == 3


class TestSanitizeErrorMessage:
    def test_scrubs_bearer_and_inline_tokens(self):
        message = 'HTTP 401 Bearer abc.def {"access_token": "tok123", "product": "p"}'

        cleaned = sanitize_error_message(message)

        assert "abc.def" not in cleaned
        assert "tok123" not in cleaned
        assert '"product": "p"' in cleaned

    def test_truncates(self):
        cleaned = sanitize_error_message("x" * 50, max_length=10)

        assert cleaned == "xxxxxxx..."

    def test_empty(self):
        assert sanitize_error_message(None) == ""
        assert sanitize_error_message("") == ""
