"""Shopify webhook payloads -> canonical events.

Topics: ``orders/create``, ``orders/cancelled`` (storefront) and
``fulfillments/create`` (channel). Money fields are decimal strings.
"""

from typing import Any

from src.services.errors import WebhookPayloadError
from src.webhooks.base import PlatformWebhookNormalizer, as_id, to_money
from src.webhooks.events import (
    NormalizedLineItem,
    OrderCancelledEvent,
    OrderCreatedEvent,
    ShippingAddress,
    TrackedLineItem,
    TrackingCreatedEvent,
)


class ShopifyWebhookNormalizer(PlatformWebhookNormalizer):
    """Normalizer for Shopify Admin webhooks."""

    platform_name = "shopify"
    signature_header = "x-shopify-hmac-sha256"
    signature_encoding = "base64"

    def parse_order_created(self, payload: dict[str, Any]) -> OrderCreatedEvent:
        order_id = as_id(payload.get("id"))
        if not order_id:
            raise WebhookPayloadError("Order payload has no id", platform=self.platform_name)

        address = payload.get("shipping_address") or {}
        total = payload.get("total_price")
        line_items = [
            NormalizedLineItem(
                name=item.get("title") or item.get("name") or "",
                price=to_money(item.get("price")),
                quantity=int(item.get("quantity") or 0),
                product_id=as_id(item.get("product_id")),
                variant_id=as_id(item.get("variant_id")),
                sku=item.get("sku") or "",
                line_item_id=as_id(item.get("id")),
            )
            for item in payload.get("line_items") or []
        ]

        return OrderCreatedEvent(
            platform=self.platform_name,
            order_id=order_id,
            order_name=payload.get("name") or "",
            email=payload.get("email") or "",
            shipping=ShippingAddress(
                first_name=address.get("first_name") or "",
                last_name=address.get("last_name") or "",
                address1=address.get("address1") or "",
                address2=address.get("address2") or "",
                city=address.get("city") or "",
                state=address.get("province_code") or "",
                zip=address.get("zip") or "",
                country=(address.get("country_code") or "").upper(),
                phone=address.get("phone") or "",
            ),
            currency=(payload.get("currency") or "USD").upper(),
            total_price=to_money(total),
            subtotal_price=to_money(payload.get("subtotal_price") or total),
            total_discounts=to_money(payload.get("total_discounts")),
            total_tax=to_money(payload.get("total_tax")),
            line_items=line_items,
        )

    def parse_order_cancelled(self, payload: dict[str, Any]) -> OrderCancelledEvent:
        order_id = as_id(payload.get("id"))
        if not order_id:
            raise WebhookPayloadError("Cancellation payload has no id", platform=self.platform_name)
        return OrderCancelledEvent(
            platform=self.platform_name,
            order_id=order_id,
            order_name=payload.get("name") or "",
            reason=payload.get("cancel_reason") or "",
            cancelled_at=payload.get("cancelled_at"),
        )

    def parse_tracking_created(self, payload: dict[str, Any]) -> TrackingCreatedEvent:
        purchase_id = as_id(payload.get("order_id"))
        tracking_number = payload.get("tracking_number") or next(
            iter(payload.get("tracking_numbers") or []), ""
        )
        if not purchase_id or not tracking_number:
            raise WebhookPayloadError(
                "Fulfillment payload needs order_id and tracking_number",
                platform=self.platform_name,
            )
        tracking_url = payload.get("tracking_url") or next(
            iter(payload.get("tracking_urls") or []), ""
        )
        return TrackingCreatedEvent(
            platform=self.platform_name,
            purchase_id=purchase_id,
            tracking_company=payload.get("tracking_company") or "",
            tracking_number=str(tracking_number),
            tracking_url=tracking_url or "",
            line_items=[
                TrackedLineItem(
                    line_item_id=as_id(item.get("id")),
                    product_id=as_id(item.get("product_id")),
                    variant_id=as_id(item.get("variant_id")),
                    quantity=int(item.get("quantity") or 0),
                )
                for item in payload.get("line_items") or []
            ],
        )
