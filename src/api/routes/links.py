"""API routes for shop routing links.

Links are appended at the end of a shop's ranking; only their filters can
change afterwards.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import LinkCreate, LinkFiltersUpdate, LinkResponse
from src.db.connection import get_db
from src.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])


def _get_service(db: Session = Depends(get_db)) -> LinkService:
    """Dependency injector for LinkService."""
    return LinkService(db)


@router.post("", response_model=LinkResponse, status_code=201)
def create_link(
    data: LinkCreate,
    service: LinkService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> LinkResponse:
    """Create a link. 400 if the filter uses unknown fields or operators."""
    link = service.create_link(data.shop_id, data.channel_id, data.filters)
    db.commit()
    return LinkResponse.model_validate(link)


@router.get("", response_model=list[LinkResponse])
def list_links(
    shop_id: str,
    service: LinkService = Depends(_get_service),
) -> list[LinkResponse]:
    return [LinkResponse.model_validate(link) for link in service.list_links(shop_id)]


@router.patch("/{link_id}/filters", response_model=LinkResponse)
def update_link_filters(
    link_id: str,
    data: LinkFiltersUpdate,
    service: LinkService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> LinkResponse:
    link = service.update_filters(link_id, data.filters)
    db.commit()
    return LinkResponse.model_validate(link)


@router.delete("/{link_id}")
def delete_link(
    link_id: str,
    service: LinkService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_link(link_id)
    db.commit()
    return {"status": "deleted", "link_id": link_id}
