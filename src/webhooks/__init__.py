"""Webhook normalization: platform payloads -> canonical events."""

from src.webhooks.base import PlatformWebhookNormalizer
from src.webhooks.events import (
    NormalizedLineItem,
    OrderCancelledEvent,
    OrderCreatedEvent,
    ShippingAddress,
    TrackedLineItem,
    TrackingCreatedEvent,
    WebhookEvent,
    WebhookKind,
)
from src.webhooks.normalizer import WebhookNormalizer
from src.webhooks.openfront import OpenFrontWebhookNormalizer
from src.webhooks.shopify import ShopifyWebhookNormalizer
from src.webhooks.signatures import compute_signature, verify_signature

__all__ = [
    "NormalizedLineItem",
    "OpenFrontWebhookNormalizer",
    "OrderCancelledEvent",
    "OrderCreatedEvent",
    "PlatformWebhookNormalizer",
    "ShippingAddress",
    "ShopifyWebhookNormalizer",
    "TrackedLineItem",
    "TrackingCreatedEvent",
    "WebhookEvent",
    "WebhookKind",
    "WebhookNormalizer",
    "compute_signature",
    "verify_signature",
]
