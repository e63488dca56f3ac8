"""API routes for platform, shop and channel registration.

Secrets (webhook secret, app secret, access tokens) are write-only: they
are accepted on create and never returned.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import (
    ChannelCreate,
    EndpointResponse,
    PlatformCreate,
    PlatformResponse,
    ShopCreate,
)
from src.db.connection import get_db
from src.db.models import Platform
from src.services.platform_service import PlatformService

router = APIRouter(tags=["platforms"])


def _get_service(db: Session = Depends(get_db)) -> PlatformService:
    """Dependency injector for PlatformService."""
    return PlatformService(db)


def _platform_response(platform: Platform) -> PlatformResponse:
    return PlatformResponse(
        id=platform.id,
        name=platform.name,
        kind=platform.kind,
        operations=platform.operations,
        has_webhook_secret=bool(platform.webhook_secret),
        created_at=platform.created_at,
    )


@router.post("/platforms", response_model=PlatformResponse, status_code=201)
def create_platform(
    data: PlatformCreate,
    service: PlatformService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> PlatformResponse:
    """Register a platform with its adapter operation map."""
    platform = service.create_platform(
        name=data.name,
        kind=data.kind.value,
        operations=data.operations,
        metadata=data.metadata,
        webhook_secret=data.webhook_secret,
        app_key=data.app_key,
        app_secret=data.app_secret,
    )
    db.commit()
    return _platform_response(platform)


@router.get("/platforms", response_model=list[PlatformResponse])
def list_platforms(
    kind: str | None = None,
    service: PlatformService = Depends(_get_service),
) -> list[PlatformResponse]:
    return [_platform_response(p) for p in service.list_platforms(kind=kind)]


@router.get("/platforms/{platform_id}", response_model=PlatformResponse)
def get_platform(
    platform_id: str,
    service: PlatformService = Depends(_get_service),
) -> PlatformResponse:
    return _platform_response(service.get_platform(platform_id))


@router.post("/shops", response_model=EndpointResponse, status_code=201)
def create_shop(
    data: ShopCreate,
    service: PlatformService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> EndpointResponse:
    shop = service.create_shop(
        name=data.name,
        owner_id=data.owner_id,
        domain=data.domain,
        access_token=data.access_token,
        link_mode=data.link_mode.value,
        platform_id=data.platform_id,
        metadata=data.metadata,
    )
    db.commit()
    return EndpointResponse.model_validate(shop)


@router.get("/shops", response_model=list[EndpointResponse])
def list_shops(
    owner_id: str | None = None,
    service: PlatformService = Depends(_get_service),
) -> list[EndpointResponse]:
    return [EndpointResponse.model_validate(s) for s in service.list_shops(owner_id=owner_id)]


@router.get("/shops/{shop_id}", response_model=EndpointResponse)
def get_shop(
    shop_id: str,
    service: PlatformService = Depends(_get_service),
) -> EndpointResponse:
    return EndpointResponse.model_validate(service.get_shop(shop_id))


@router.post("/channels", response_model=EndpointResponse, status_code=201)
def create_channel(
    data: ChannelCreate,
    service: PlatformService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> EndpointResponse:
    channel = service.create_channel(
        name=data.name,
        owner_id=data.owner_id,
        domain=data.domain,
        access_token=data.access_token,
        platform_id=data.platform_id,
        metadata=data.metadata,
    )
    db.commit()
    return EndpointResponse.model_validate(channel)


@router.get("/channels", response_model=list[EndpointResponse])
def list_channels(
    owner_id: str | None = None,
    service: PlatformService = Depends(_get_service),
) -> list[EndpointResponse]:
    return [EndpointResponse.model_validate(c) for c in service.list_channels(owner_id=owner_id)]


@router.get("/channels/{channel_id}", response_model=EndpointResponse)
def get_channel(
    channel_id: str,
    service: PlatformService = Depends(_get_service),
) -> EndpointResponse:
    return EndpointResponse.model_validate(service.get_channel(channel_id))
