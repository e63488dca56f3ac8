"""OAuth handshake endpoints.

``/oauth/start`` asks the platform adapter for an authorization URL and
remembers the PKCE verifier under a one-time state. ``/oauth/callback``
consumes that state and exchanges the code through the adapter.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor, to_jsonable
from src.api.schemas import OAuthStartRequest, OAuthStartResponse
from src.db.connection import get_db
from src.services.oauth_service import OAuthService
from src.services.oauth_state_store import OAuthStateStore, get_oauth_state_store
from src.services.platform_service import PlatformService

router = APIRouter(prefix="/oauth", tags=["oauth"])


def _get_service(
    executor: AdapterExecutor = Depends(get_adapter_executor),
    store: OAuthStateStore = Depends(get_oauth_state_store),
) -> OAuthService:
    """Dependency injector for OAuthService."""
    return OAuthService(executor, store)


@router.post("/start", response_model=OAuthStartResponse)
async def start_oauth(
    data: OAuthStartRequest,
    service: OAuthService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> OAuthStartResponse:
    """Begin an authorization flow for a registered platform."""
    platforms = PlatformService(db)
    platform = platforms.get_platform(data.platform_id)
    start = await service.begin(platforms.platform_config(platform, data.domain), data.redirect_uri)
    return OAuthStartResponse(state=start.state, authorization_url=start.authorization_url)


@router.get("/callback")
async def oauth_callback(
    state: str,
    code: str,
    shop: str | None = None,
    service: OAuthService = Depends(_get_service),
) -> dict[str, Any]:
    """Finish a flow. The state is single-use and expires."""
    result = await service.complete(state, code, shop=shop)
    return {"status": "authorized", "result": to_jsonable(result)}
