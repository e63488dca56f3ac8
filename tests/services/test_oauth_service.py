"""Tests for the delegated OAuth + PKCE flow."""

import base64
import hashlib

import pytest

from src.errors.domain import ValidationError
from src.services.errors import AdapterNotFoundError
from src.services.oauth_service import OAuthService, generate_pkce_pair
from src.services.oauth_state_store import OAuthStateStore
from tests.conftest import SHOP_OPERATION_MAP

CONFIG = {**SHOP_OPERATION_MAP, "domain": "acme.myshopify.com", "appKey": "app-key"}
REDIRECT = "https://relay.example.com/api/v1/oauth/callback"


@pytest.fixture
def service(executor) -> OAuthService:
    return OAuthService(executor, OAuthStateStore(ttl_seconds=60))


def test_pkce_pair_is_s256():
    verifier, challenge = generate_pkce_pair()

    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).rstrip(b"=")
    assert challenge == expected.decode()
    assert 43 <= len(verifier) <= 128


class TestBegin:
    async def test_returns_adapter_url(self, service, shop_adapter):
        start = await service.begin(CONFIG, REDIRECT)

        assert start.authorization_url == f"https://shop.test/authorize?state={start.state}"
        (call,) = shop_adapter.calls_for("oauth")
        assert call.arguments["callback_url"] == REDIRECT
        assert call.arguments["code_challenge"] == start.code_challenge
        assert call.arguments["code_challenge_method"] == "S256"
        assert service.store.get(start.state) is not None

    async def test_plain_string_result_accepted(self, service, shop_adapter):
        shop_adapter.configure_response("oauth", "https://shop.test/go")

        start = await service.begin(CONFIG, REDIRECT)

        assert start.authorization_url == "https://shop.test/go"

    async def test_missing_url_rejected(self, service, shop_adapter):
        shop_adapter.configure_response("oauth", {"ok": True})

        with pytest.raises(ValidationError, match="authorization URL"):
            await service.begin(CONFIG, REDIRECT)

    async def test_platform_without_oauth(self, service):
        with pytest.raises(AdapterNotFoundError):
            await service.begin({"domain": "x"}, REDIRECT)


class TestComplete:
    async def test_exchanges_code_with_verifier(self, service, shop_adapter):
        start = await service.begin(CONFIG, REDIRECT)
        stored_verifier = service.store.get(start.state).code_verifier

        result = await service.complete(start.state, "auth-code", shop="acme.myshopify.com")

        assert result == {"accessToken": "token-for-auth-code"}
        (call,) = shop_adapter.calls_for("oauth_callback")
        assert call.arguments["code_verifier"] == stored_verifier
        assert call.arguments["app_key"] == "app-key"
        assert call.arguments["redirect_uri"] == REDIRECT

    async def test_state_is_single_use(self, service):
        start = await service.begin(CONFIG, REDIRECT)
        await service.complete(start.state, "code")

        with pytest.raises(ValidationError, match="Unknown or expired"):
            await service.complete(start.state, "code")

    async def test_unknown_state(self, service):
        with pytest.raises(ValidationError):
            await service.complete("forged", "code")
