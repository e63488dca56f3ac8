"""API routes for saved matches.

Provides CRUD plus overwrite, count, preview and live-details endpoints.
All endpoints use the /api/v1/matches prefix.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.api.schemas import (
    ChannelItemIn,
    LiveDetailsResponse,
    MatchCreate,
    MatchListResponse,
    MatchPreviewRequest,
    MatchResponse,
    MatchUpdate,
    ShopItemIn,
)
from src.cli.config import get_settings
from src.db.connection import get_db
from src.services.match_service import ChannelItemSpec, MatchService, ShopItemSpec

router = APIRouter(prefix="/matches", tags=["matches"])


def _get_service(
    db: Session = Depends(get_db),
    executor: AdapterExecutor = Depends(get_adapter_executor),
) -> MatchService:
    """Dependency injector for MatchService."""
    return MatchService(
        db, executor, live_timeout=get_settings().adapters.best_effort_timeout_seconds
    )


def _inputs(items: list[ShopItemIn]) -> list[ShopItemSpec]:
    return [ShopItemSpec(**item.model_dump()) for item in items]


def _outputs(items: list[ChannelItemIn]) -> list[ChannelItemSpec]:
    return [ChannelItemSpec(**item.model_dump()) for item in items]


@router.post("", response_model=MatchResponse, status_code=201)
def create_match(
    data: MatchCreate,
    service: MatchService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> MatchResponse:
    """Create a match. 409 if the owner already has one for the same inputs."""
    match = service.create_match(data.owner_id, _inputs(data.inputs), _outputs(data.outputs))
    db.commit()
    return MatchResponse.model_validate(match)


@router.post("/overwrite", response_model=MatchResponse, status_code=201)
def overwrite_match(
    data: MatchCreate,
    service: MatchService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> MatchResponse:
    """Create a match, replacing any existing match with the same inputs."""
    match = service.overwrite_match(data.owner_id, _inputs(data.inputs), _outputs(data.outputs))
    db.commit()
    return MatchResponse.model_validate(match)


@router.get("", response_model=MatchListResponse)
def list_matches(
    owner_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
    service: MatchService = Depends(_get_service),
) -> MatchListResponse:
    matches = service.list_matches(owner_id=owner_id, limit=limit, offset=offset)
    return MatchListResponse(
        matches=[MatchResponse.model_validate(m) for m in matches],
        total=service.count_matches(owner_id=owner_id),
    )


@router.get("/count")
def count_matches(
    owner_id: str | None = None,
    service: MatchService = Depends(_get_service),
) -> dict:
    return {"count": service.count_matches(owner_id=owner_id)}


@router.post("/preview", response_model=LiveDetailsResponse)
async def preview_matches(
    data: MatchPreviewRequest,
    service: MatchService = Depends(_get_service),
) -> LiveDetailsResponse:
    """Resolve items against saved matches with live prices. Nothing is saved."""
    details = await service.preview(data.owner_id, [s.key() for s in _inputs(data.items)])
    return LiveDetailsResponse.model_validate(details)


@router.get("/{match_id}", response_model=MatchResponse)
def get_match(
    match_id: str,
    service: MatchService = Depends(_get_service),
) -> MatchResponse:
    return MatchResponse.model_validate(service.get_match(match_id))


@router.get("/{match_id}/live", response_model=LiveDetailsResponse)
async def get_live_details(
    match_id: str,
    service: MatchService = Depends(_get_service),
) -> LiveDetailsResponse:
    """Current price, stock and inventory-sync state for a saved match."""
    details = await service.fetch_live_external_details(service.get_match(match_id))
    return LiveDetailsResponse.model_validate(details)


@router.patch("/{match_id}", response_model=MatchResponse)
def update_match(
    match_id: str,
    data: MatchUpdate,
    service: MatchService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> MatchResponse:
    match = service.update_match(
        match_id,
        inputs=_inputs(data.inputs) if data.inputs is not None else None,
        outputs=_outputs(data.outputs) if data.outputs is not None else None,
    )
    db.commit()
    return MatchResponse.model_validate(match)


@router.delete("/{match_id}")
def delete_match(
    match_id: str,
    service: MatchService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_match(match_id)
    db.commit()
    return {"status": "deleted", "match_id": match_id}
