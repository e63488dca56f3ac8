"""Inbound platform webhooks.

Each shop and channel has its own endpoint per event kind. The raw body
is verified against the platform's webhook secret before anything is
parsed; rejected deliveries never reach the order lifecycle.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.cli.config import get_settings
from src.db.connection import get_db
from src.db.models import Channel, Shop
from src.errors.domain import NotFoundError, ValidationError
from src.services.order_service import OrderService
from src.services.platform_service import webhook_format
from src.webhooks import WebhookKind, WebhookNormalizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SHOP_KINDS = (WebhookKind.order_created, WebhookKind.order_cancelled)
CHANNEL_KINDS = (WebhookKind.tracking_created, WebhookKind.order_cancelled)


def get_webhook_normalizer() -> WebhookNormalizer:
    """Dependency injector for the webhook normalizer."""
    return WebhookNormalizer(allow_unverified=get_settings().webhooks.allow_unverified)


def _get_service(
    db: Session = Depends(get_db),
    executor: AdapterExecutor = Depends(get_adapter_executor),
) -> OrderService:
    return OrderService(db, executor)


def _kind(value: str, allowed: tuple[WebhookKind, ...]) -> WebhookKind:
    try:
        kind = WebhookKind(value)
    except ValueError:
        kind = None
    if kind not in allowed:
        raise ValidationError(
            f"Unsupported webhook kind '{value}'. Expected one of: "
            + ", ".join(k.value for k in allowed)
        )
    return kind


def _format_and_secret(endpoint: Shop | Channel) -> tuple[str, str | None]:
    if endpoint.platform is None:
        raise ValidationError(f"{type(endpoint).__name__} {endpoint.id} has no platform configured")
    return webhook_format(endpoint.platform), endpoint.platform.webhook_secret


@router.post("/shops/{shop_id}/{kind}")
async def shop_webhook(
    shop_id: str,
    kind: str,
    request: Request,
    normalizer: WebhookNormalizer = Depends(get_webhook_normalizer),
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> dict:
    """Receive order-created or order-cancelled from a storefront.

    Returns:
        Dict with the handled event and the affected internal order id.
    """
    webhook_kind = _kind(kind, SHOP_KINDS)
    shop = db.get(Shop, shop_id)
    if shop is None:
        raise NotFoundError("Shop", shop_id)
    platform, secret = _format_and_secret(shop)

    event = normalizer.normalize(
        platform, webhook_kind, await request.body(), request.headers, secret
    )
    logger.info("Webhook %s from shop %s (%s)", webhook_kind.value, shop_id, platform)

    if webhook_kind is WebhookKind.order_created:
        order, created = await service.ingest_order_created(shop, event)
        db.commit()
        return {
            "status": "created" if created else "duplicate",
            "order_id": order.id,
            "order_status": order.status,
        }

    order = service.on_order_cancelled(shop, event)
    db.commit()
    if order is None:
        return {"status": "ignored", "order_id": None}
    return {"status": "cancelled", "order_id": order.id}


@router.post("/channels/{channel_id}/{kind}")
async def channel_webhook(
    channel_id: str,
    kind: str,
    request: Request,
    normalizer: WebhookNormalizer = Depends(get_webhook_normalizer),
    service: OrderService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> dict:
    """Receive tracking-created or order-cancelled (a purchase) from a channel."""
    webhook_kind = _kind(kind, CHANNEL_KINDS)
    channel = db.get(Channel, channel_id)
    if channel is None:
        raise NotFoundError("Channel", channel_id)
    platform, secret = _format_and_secret(channel)

    event = normalizer.normalize(
        platform, webhook_kind, await request.body(), request.headers, secret
    )
    logger.info("Webhook %s from channel %s (%s)", webhook_kind.value, channel_id, platform)

    if webhook_kind is WebhookKind.tracking_created:
        detail = await service.on_tracking_created(channel, event)
        db.commit()
        if detail is None:
            return {"status": "ignored", "tracking_detail_id": None}
        return {"status": "recorded", "tracking_detail_id": detail.id}

    items = await service.on_purchase_cancelled(channel, event)
    db.commit()
    return {"status": "cancelled" if items else "ignored", "cart_item_ids": [i.id for i in items]}
