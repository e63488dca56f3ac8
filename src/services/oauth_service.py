"""OAuth authorization-code flow with PKCE, delegated to platform adapters.

``begin`` creates a state and PKCE pair, remembers them in the
OAuthStateStore and asks the platform's ``oAuthFunction`` for the
authorization URL. ``complete`` consumes the state and hands the code and
verifier to ``oAuthCallbackFunction``. What the platform returns (tokens)
is passed back to the caller untouched; persisting it is not done here.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any

from src.adapters.executor import AdapterExecutor
from src.adapters.operations import Operation
from src.errors.domain import ValidationError
from src.services.oauth_state_store import OAuthStateStore

logger = logging.getLogger(__name__)


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Return (code_verifier, S256 code_challenge)."""
    verifier = _b64url(secrets.token_bytes(32))
    challenge = _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    return verifier, challenge


@dataclass
class OAuthStart:
    state: str
    authorization_url: str
    code_challenge: str


@dataclass
class _PendingAuth:
    platform_config: dict[str, Any]
    redirect_uri: str
    code_verifier: str
    nonce: str


class OAuthService:
    """Begin and complete platform OAuth flows.

    Attributes:
        executor: Adapter executor for the platform's OAuth operations.
        store: Pending-state store shared across requests.
    """

    def __init__(self, executor: AdapterExecutor, store: OAuthStateStore) -> None:
        self.executor = executor
        self.store = store

    async def begin(self, platform_config: dict[str, Any], redirect_uri: str) -> OAuthStart:
        """Start a flow and return where to send the user.

        Raises:
            AdapterNotFoundError: The platform has no oAuthFunction.
            ValidationError: The adapter returned no authorization URL.
        """
        state = secrets.token_urlsafe(24)
        nonce = secrets.token_urlsafe(12)
        verifier, challenge = generate_pkce_pair()

        result = await self.executor.invoke(
            platform_config,
            Operation.OAUTH,
            {
                "callback_url": redirect_uri,
                "state": state,
                "code_challenge": challenge,
                "code_challenge_method": "S256",
            },
        )
        if isinstance(result, str):
            url = result
        elif isinstance(result, dict):
            url = result.get("authUrl") or result.get("authorization_url") or result.get("url") or ""
        else:
            url = ""
        if not url:
            raise ValidationError("OAuth adapter returned no authorization URL")

        self.store.put(
            state,
            _PendingAuth(
                platform_config=platform_config,
                redirect_uri=redirect_uri,
                code_verifier=verifier,
                nonce=nonce,
            ),
            alias=nonce,
        )
        logger.info("Started OAuth flow for %s", platform_config.get("domain") or "platform")
        return OAuthStart(state=state, authorization_url=url, code_challenge=challenge)

    async def complete(self, state: str, code: str, shop: str | None = None) -> Any:
        """Finish a flow started by ``begin``.

        Raises:
            ValidationError: Unknown, expired or already-used state.
        """
        pending = self.store.consume(state)
        if pending is None:
            logger.warning("OAuth callback with unknown or expired state")
            raise ValidationError("Unknown or expired OAuth state")

        config = pending.platform_config
        return await self.executor.invoke(
            config,
            Operation.OAUTH_CALLBACK,
            {
                "code": code,
                "state": state,
                "shop": shop,
                "app_key": config.get("appKey"),
                "redirect_uri": pending.redirect_uri,
                "code_verifier": pending.code_verifier,
            },
        )
