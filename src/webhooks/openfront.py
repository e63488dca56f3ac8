"""OpenFront webhook payloads -> canonical events.

Deliveries are ``{"event": "...", "data": {...}}``. Line item and order
totals come in cents; subtotal, discount and tax arrive preformatted
(``"$1,234.50"``).
"""

from typing import Any

from src.services.errors import WebhookPayloadError
from src.webhooks.base import PlatformWebhookNormalizer, as_id, cents_to_money, to_money
from src.webhooks.events import (
    NormalizedLineItem,
    OrderCancelledEvent,
    OrderCreatedEvent,
    ShippingAddress,
    TrackingCreatedEvent,
)


def _data(payload: dict[str, Any]) -> dict[str, Any]:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise WebhookPayloadError("Payload has no data object", platform="openfront")
    return data


class OpenFrontWebhookNormalizer(PlatformWebhookNormalizer):
    """Normalizer for OpenFront webhooks."""

    platform_name = "openfront"
    signature_header = "x-openfront-webhook-signature"
    signature_encoding = "hex"

    def parse_order_created(self, payload: dict[str, Any]) -> OrderCreatedEvent:
        order = _data(payload)
        order_id = as_id(order.get("id"))
        if not order_id:
            raise WebhookPayloadError("Order payload has no id", platform=self.platform_name)

        address = order.get("shippingAddress") or {}
        country = (address.get("country") or {}).get("iso2") or ""
        line_items = []
        for item in order.get("lineItems") or []:
            variant = item.get("productVariant") or {}
            product = variant.get("product") or {}
            line_items.append(
                NormalizedLineItem(
                    name=item.get("title") or product.get("title") or "",
                    image=item.get("thumbnail"),
                    price=cents_to_money((item.get("moneyAmount") or {}).get("amount")),
                    quantity=int(item.get("quantity") or 0),
                    product_id=as_id(product.get("id")),
                    variant_id=as_id(variant.get("id")),
                    sku=variant.get("sku") or item.get("sku") or "",
                    line_item_id=as_id(item.get("id")),
                )
            )

        display_id = order.get("displayId")
        return OrderCreatedEvent(
            platform=self.platform_name,
            order_id=order_id,
            order_name=f"#{display_id}" if display_id else "",
            email=order.get("email") or "",
            shipping=ShippingAddress(
                first_name=address.get("firstName") or "",
                last_name=address.get("lastName") or "",
                address1=address.get("address1") or "",
                address2=address.get("address2") or "",
                city=address.get("city") or "",
                state=address.get("province") or "",
                zip=address.get("postalCode") or "",
                country=country.upper(),
                phone=address.get("phone") or "",
            ),
            currency=((order.get("currency") or {}).get("code") or "USD").upper(),
            total_price=cents_to_money(order.get("rawTotal")),
            subtotal_price=to_money(order.get("subtotal")),
            total_discounts=to_money(order.get("discount")),
            total_tax=to_money(order.get("tax")),
            line_items=line_items,
        )

    def parse_order_cancelled(self, payload: dict[str, Any]) -> OrderCancelledEvent:
        order = _data(payload)
        order_id = as_id(order.get("id"))
        if not order_id:
            raise WebhookPayloadError("Cancellation payload has no id", platform=self.platform_name)
        display_id = order.get("displayId") or order.get("orderNumber")
        return OrderCancelledEvent(
            platform=self.platform_name,
            order_id=order_id,
            order_name=f"#{display_id}" if display_id else "",
            reason=order.get("cancellationReason") or "",
            cancelled_at=order.get("canceledAt") or order.get("cancelledAt"),
        )

    def parse_tracking_created(self, payload: dict[str, Any]) -> TrackingCreatedEvent:
        data = _data(payload)
        order = data.get("order") or {}
        purchase_id = as_id(order.get("id"))

        # order.fulfilled carries shipping labels; fulfillment updates carry
        # the tracking fields directly on data.
        fulfillment = data.get("fulfillment") or {}
        labels = fulfillment.get("shippingLabels") or []
        label = labels[0] if labels else {}
        tracking_number = label.get("trackingNumber") or data.get("trackingNumber") or ""
        tracking_company = label.get("carrier") or data.get("trackingCompany") or ""
        tracking_url = label.get("url") or data.get("trackingUrl") or ""

        if not purchase_id or not tracking_number:
            raise WebhookPayloadError(
                "Fulfillment payload needs order id and tracking number",
                platform=self.platform_name,
            )
        return TrackingCreatedEvent(
            platform=self.platform_name,
            purchase_id=purchase_id,
            tracking_company=tracking_company,
            tracking_number=str(tracking_number),
            tracking_url=tracking_url,
        )
