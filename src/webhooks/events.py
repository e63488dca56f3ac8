"""Canonical webhook events.

Every platform normalizer produces one of these shapes, so the order
lifecycle controller never sees platform-specific payloads.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class WebhookKind(str, Enum):
    """Which canonical event a webhook delivery is expected to carry."""

    order_created = "order-created"
    order_cancelled = "order-cancelled"
    tracking_created = "tracking-created"


class ShippingAddress(BaseModel):
    """Buyer shipping fields as stored on an Order."""

    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = Field("", description="State/province code")
    zip: str = ""
    country: str = Field("", description="ISO 3166-1 alpha-2 code, uppercase")
    phone: str = ""


class NormalizedLineItem(BaseModel):
    """One purchased line from a storefront order."""

    name: str = ""
    image: str | None = None
    price: Decimal = Decimal("0.00")
    quantity: int = Field(1, ge=0)
    product_id: str
    variant_id: str = ""
    sku: str = ""
    line_item_id: str = ""


class OrderCreatedEvent(BaseModel):
    """A storefront received a new order."""

    platform: str
    order_id: str
    order_name: str = ""
    email: str = ""
    shipping: ShippingAddress = ShippingAddress()
    currency: str = "USD"
    total_price: Decimal = Decimal("0.00")
    subtotal_price: Decimal = Decimal("0.00")
    total_discounts: Decimal = Decimal("0.00")
    total_tax: Decimal = Decimal("0.00")
    line_items: list[NormalizedLineItem] = []


class OrderCancelledEvent(BaseModel):
    """An order (storefront side) or purchase (channel side) was cancelled.

    ``order_id`` is the platform's identifier: a storefront order id for
    shop webhooks, a purchase id for channel webhooks.
    """

    platform: str
    order_id: str
    order_name: str = ""
    reason: str = ""
    cancelled_at: str | None = None


class TrackedLineItem(BaseModel):
    """Line reference reported alongside a shipment."""

    line_item_id: str = ""
    product_id: str = ""
    variant_id: str = ""
    quantity: int = 0


class TrackingCreatedEvent(BaseModel):
    """A channel shipped a purchase."""

    platform: str
    purchase_id: str
    tracking_company: str = ""
    tracking_number: str
    tracking_url: str = ""
    line_items: list[TrackedLineItem] = []


WebhookEvent = OrderCreatedEvent | OrderCancelledEvent | TrackingCreatedEvent
