"""Abstract base class for platform webhook normalizers.

Each platform (Shopify, OpenFront) implements this interface to turn its
webhook payloads into canonical events.
"""

import re
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from src.services.errors import WebhookPayloadError
from src.webhooks.events import (
    OrderCancelledEvent,
    OrderCreatedEvent,
    TrackingCreatedEvent,
    WebhookEvent,
    WebhookKind,
)
from src.webhooks.signatures import SignatureEncoding

_CENT = Decimal("0.01")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def to_money(value: Any) -> Decimal:
    """Convert a decimal-currency value (number or string) to 2dp Decimal.

    Formatted strings such as ``"$1,234.50"`` are accepted. Empty or
    missing values become 0.00.
    """
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, str):
        value = _NON_NUMERIC.sub("", value) or "0"
    try:
        return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise WebhookPayloadError(f"Invalid money amount: {value!r}") from e


def cents_to_money(value: Any) -> Decimal:
    """Convert integer subunits (cents) to 2dp decimal currency."""
    if value is None or value == "":
        return Decimal("0.00")
    try:
        return (Decimal(str(value)) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise WebhookPayloadError(f"Invalid cent amount: {value!r}") from e


def as_id(value: Any) -> str:
    """Platform ids arrive as ints or strings; store them as strings."""
    if value is None:
        return ""
    return str(value)


class PlatformWebhookNormalizer(ABC):
    """Abstract base class for platform webhook normalizers.

    Concrete implementations declare how the platform signs deliveries and
    parse each canonical event kind from the decoded JSON payload.

    Example implementation:
        class AcmeWebhookNormalizer(PlatformWebhookNormalizer):
            platform_name = "acme"
            signature_header = "x-acme-signature"
            signature_encoding = "hex"
            ...
    """

    platform_name: str
    signature_header: str
    signature_encoding: SignatureEncoding = "base64"

    def parse(self, kind: WebhookKind, payload: dict[str, Any]) -> WebhookEvent:
        """Dispatch to the parser for ``kind``."""
        if kind == WebhookKind.order_created:
            return self.parse_order_created(payload)
        if kind == WebhookKind.order_cancelled:
            return self.parse_order_cancelled(payload)
        return self.parse_tracking_created(payload)

    @abstractmethod
    def parse_order_created(self, payload: dict[str, Any]) -> OrderCreatedEvent:
        ...

    @abstractmethod
    def parse_order_cancelled(self, payload: dict[str, Any]) -> OrderCancelledEvent:
        ...

    @abstractmethod
    def parse_tracking_created(self, payload: dict[str, Any]) -> TrackingCreatedEvent:
        ...
