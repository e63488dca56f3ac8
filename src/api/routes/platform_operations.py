"""API routes that call a shop's or channel's platform adapter directly.

Product search and lookup, storefront order search, product updates,
platform webhook management and manual purchase cancellation. Results
are the adapter's JSON, unchanged. Adapter failures surface through the
application's AdapterError handler (502, or 500 when unconfigured).
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.api.schemas import CartItemResponse, ProductUpdateRequest, WebhookCreateRequest
from src.db.connection import get_db
from src.db.models import PlatformKind
from src.services.order_service import OrderService
from src.services.platform_operations import PlatformOperationsService

router = APIRouter(tags=["platform operations"])


def _get_service(
    db: Session = Depends(get_db),
    executor: AdapterExecutor = Depends(get_adapter_executor),
) -> PlatformOperationsService:
    """Dependency injector for PlatformOperationsService."""
    return PlatformOperationsService(db, executor)


def _get_order_service(
    db: Session = Depends(get_db),
    executor: AdapterExecutor = Depends(get_adapter_executor),
) -> OrderService:
    return OrderService(db, executor)


# --- Shops ---


@router.get("/shops/{shop_id}/products")
async def search_shop_products(
    shop_id: str,
    search_entry: str = "",
    after: str | None = None,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.search_products(PlatformKind.shop, shop_id, search_entry, after)


@router.get("/shops/{shop_id}/products/{product_id}")
async def get_shop_product(
    shop_id: str,
    product_id: str,
    variant_id: str = "",
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.get_product(PlatformKind.shop, shop_id, product_id, variant_id)


@router.patch("/shops/{shop_id}/products/{product_id}")
async def update_shop_product(
    shop_id: str,
    product_id: str,
    data: ProductUpdateRequest,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    """Push a price and/or inventory change to the storefront."""
    return await service.update_product(
        shop_id, product_id, data.variant_id, price=data.price, inventory=data.inventory
    )


@router.get("/shops/{shop_id}/platform-orders")
async def search_shop_orders(
    shop_id: str,
    search_entry: str = "",
    after: str | None = None,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    """Search the storefront's own orders, e.g. to import one by hand."""
    return await service.search_orders(shop_id, search_entry, after)


@router.get("/shops/{shop_id}/webhooks")
async def get_shop_webhooks(
    shop_id: str,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.get_webhooks(PlatformKind.shop, shop_id)


@router.post("/shops/{shop_id}/webhooks", status_code=201)
async def create_shop_webhook(
    shop_id: str,
    data: WebhookCreateRequest,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.create_webhook(PlatformKind.shop, shop_id, data.endpoint, data.events)


@router.delete("/shops/{shop_id}/webhooks/{webhook_id}")
async def delete_shop_webhook(
    shop_id: str,
    webhook_id: str,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.delete_webhook(PlatformKind.shop, shop_id, webhook_id)


# --- Channels ---


@router.get("/channels/{channel_id}/products")
async def search_channel_products(
    channel_id: str,
    search_entry: str = "",
    after: str | None = None,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.search_products(PlatformKind.channel, channel_id, search_entry, after)


@router.get("/channels/{channel_id}/products/{product_id}")
async def get_channel_product(
    channel_id: str,
    product_id: str,
    variant_id: str = "",
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.get_product(PlatformKind.channel, channel_id, product_id, variant_id)


@router.get("/channels/{channel_id}/webhooks")
async def get_channel_webhooks(
    channel_id: str,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.get_webhooks(PlatformKind.channel, channel_id)


@router.post("/channels/{channel_id}/webhooks", status_code=201)
async def create_channel_webhook(
    channel_id: str,
    data: WebhookCreateRequest,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.create_webhook(
        PlatformKind.channel, channel_id, data.endpoint, data.events
    )


@router.delete("/channels/{channel_id}/webhooks/{webhook_id}")
async def delete_channel_webhook(
    channel_id: str,
    webhook_id: str,
    service: PlatformOperationsService = Depends(_get_service),
) -> Any:
    return await service.delete_webhook(PlatformKind.channel, channel_id, webhook_id)


@router.post(
    "/channels/{channel_id}/purchases/{purchase_id}/cancel",
    response_model=list[CartItemResponse],
)
async def cancel_purchase(
    channel_id: str,
    purchase_id: str,
    service: OrderService = Depends(_get_order_service),
    db: Session = Depends(get_db),
) -> list[CartItemResponse]:
    """Cancel a purchase on the channel and drop its cart items from their orders."""
    items = await service.cancel_purchase(channel_id, purchase_id)
    db.commit()
    return [CartItemResponse.model_validate(i) for i in items]
