"""API routes for orders: creation, routing, placement and cancellation.

All endpoints use the /api/v1/orders prefix. Domain and adapter errors are
mapped to HTTP responses by the application's exception handlers.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.api.schemas import (
    BulkPlaceRequest,
    CartItemCreate,
    CartItemResponse,
    MatchResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusEnum,
    OrderSummaryResponse,
    PlacementResponse,
    TargetOutcomeResponse,
)
from src.db.connection import get_db
from src.services.order_service import OrderService
from src.services.placement_engine import PlacementResult
from src.webhooks.events import OrderCreatedEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _get_service(
    db: Session = Depends(get_db),
    executor: AdapterExecutor = Depends(get_adapter_executor),
) -> OrderService:
    """Dependency injector for OrderService."""
    return OrderService(db, executor)


def _placement_response(result: PlacementResult) -> PlacementResponse:
    return PlacementResponse(
        order_id=result.order_id,
        status=result.status,
        placed=result.placed,
        failed=result.failed,
        remaining=result.remaining,
        targets=[
            TargetOutcomeResponse(
                channel_id=t.channel_id,
                cart_item_ids=t.cart_item_ids,
                purchase_id=t.purchase_id,
                url=t.url,
                error=t.error,
            )
            for t in result.targets
        ],
        error=result.error,
        error_code=result.error_code,
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    data: OrderCreate,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> OrderResponse:
    """Create an order and run it through routing and placement.

    Args:
        data: Order fields, line items and processing intents.
        service: OrderService (injected).
        db: Database session (injected).

    Returns:
        The order after routing (and placement when process_order is set).
    """
    event = OrderCreatedEvent(
        platform="api",
        order_id=data.order_id,
        order_name=data.order_name,
        email=data.email,
        shipping=data.shipping,
        currency=data.currency,
        total_price=data.total_price,
        subtotal_price=data.subtotal_price,
        total_discounts=data.total_discounts,
        total_tax=data.total_tax,
        line_items=data.line_items,
    )
    order = service.create_order(
        data.shop_id,
        event,
        link_order=data.link_order,
        match_order=data.match_order,
        process_order=data.process_order,
    )
    db.commit()
    order = await service.on_order_created(order.id)
    db.commit()
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse)
def list_orders(
    status: OrderStatusEnum | None = None,
    shop_id: str | None = None,
    owner_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
    service: OrderService = Depends(_get_service),
) -> OrderListResponse:
    """List orders with optional status/shop/owner filters and pagination."""
    status_value = status.value if status else None
    orders = service.list_orders(
        status=status_value, shop_id=shop_id, owner_id=owner_id, limit=limit, offset=offset
    )
    total = service.count_orders(status=status_value, shop_id=shop_id, owner_id=owner_id)
    return OrderListResponse(
        orders=[OrderSummaryResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.post("/place", response_model=list[PlacementResponse])
async def place_orders(
    data: BulkPlaceRequest,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> list[PlacementResponse]:
    """Place several orders. Per-order failures are reported, not raised."""
    results = await service.place_many(data.order_ids)
    db.commit()
    return [_placement_response(r) for r in results]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    service: OrderService = Depends(_get_service),
) -> OrderResponse:
    return OrderResponse.model_validate(service.get_order(order_id))


@router.post("/{order_id}/place", response_model=PlacementResponse)
async def place_order(
    order_id: str,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> PlacementResponse:
    """Place (or retry) every unplaced cart item of one order."""
    result = await service.place(order_id)
    db.commit()
    return _placement_response(result)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> OrderResponse:
    order = service.cancel_order(order_id)
    db.commit()
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cart-items", response_model=CartItemResponse, status_code=201)
def add_cart_item(
    order_id: str,
    data: CartItemCreate,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> CartItemResponse:
    item = service.add_cart_item(order_id, **data.model_dump())
    db.commit()
    return CartItemResponse.model_validate(item)


@router.post("/{order_id}/match", response_model=MatchResponse, status_code=201)
def create_match_from_order(
    order_id: str,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> MatchResponse:
    """Save the order's current line items -> cart items routing as a match."""
    match = service.matches.create_match_from_order(service.get_order(order_id))
    db.commit()
    return MatchResponse.model_validate(match)


@router.post("/{order_id}/match-to-cart", response_model=OrderResponse)
async def match_to_cart(
    order_id: str,
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> OrderResponse:
    """Re-run link/match routing for a pending order without placing it.

    Cart items that were already placed are kept; routing never adds a
    second copy of them.
    """
    order = await service.reroute(order_id)
    db.commit()
    return OrderResponse.model_validate(order)
