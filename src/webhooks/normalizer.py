"""Webhook normalizer: verify, decode and map deliveries to canonical events.

The normalizer owns no persistence. Routes hand it the raw request body
and headers; it either returns a canonical event or raises a
WebhookError subclass, in which case nothing downstream runs.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from src.services.errors import WebhookPayloadError, WebhookSignatureError
from src.webhooks.base import PlatformWebhookNormalizer
from src.webhooks.events import WebhookEvent, WebhookKind
from src.webhooks.openfront import OpenFrontWebhookNormalizer
from src.webhooks.shopify import ShopifyWebhookNormalizer
from src.webhooks.signatures import verify_signature

logger = logging.getLogger(__name__)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup over any mapping."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class WebhookNormalizer:
    """Dispatches deliveries to the registered platform normalizer.

    Attributes:
        allow_unverified: Accept deliveries for platforms with no secret
            configured. Deliveries that carry a bad signature are always
            rejected.
    """

    def __init__(
        self,
        normalizers: list[PlatformWebhookNormalizer] | None = None,
        allow_unverified: bool = False,
    ) -> None:
        self._normalizers: dict[str, PlatformWebhookNormalizer] = {}
        self.allow_unverified = allow_unverified
        for normalizer in normalizers or [ShopifyWebhookNormalizer(), OpenFrontWebhookNormalizer()]:
            self.register(normalizer)

    def register(self, normalizer: PlatformWebhookNormalizer) -> None:
        self._normalizers[normalizer.platform_name.lower()] = normalizer

    @property
    def platforms(self) -> list[str]:
        return sorted(self._normalizers)

    def get(self, platform: str) -> PlatformWebhookNormalizer:
        normalizer = self._normalizers.get(platform.lower())
        if normalizer is None:
            raise WebhookPayloadError(
                f"Unsupported webhook platform '{platform}'", platform=platform
            )
        return normalizer

    def verify(
        self,
        platform: str,
        raw_body: bytes,
        headers: Mapping[str, str],
        secret: str | None,
    ) -> None:
        """Reject the delivery unless its HMAC signature checks out.

        Raises:
            WebhookSignatureError: Header missing, secret missing (and
                unverified deliveries not allowed), or digest mismatch.
        """
        normalizer = self.get(platform)
        signature = _header(headers, normalizer.signature_header)

        if not secret:
            if self.allow_unverified:
                logger.warning("Accepting unverified %s webhook (no secret configured)", platform)
                return
            logger.error("Rejected %s webhook: no webhook secret configured", platform)
            raise WebhookSignatureError(
                "Webhook secret is not configured", platform=platform
            )

        if not signature:
            logger.error("Rejected %s webhook: missing %s header", platform, normalizer.signature_header)
            raise WebhookSignatureError("Missing webhook HMAC", platform=platform, missing=True)

        if not verify_signature(secret, raw_body, signature, normalizer.signature_encoding):
            logger.error("Rejected %s webhook: invalid signature", platform)
            raise WebhookSignatureError("Invalid webhook signature", platform=platform)

    def normalize(
        self,
        platform: str,
        kind: WebhookKind | str,
        raw_body: bytes,
        headers: Mapping[str, str],
        secret: str | None = None,
    ) -> WebhookEvent:
        """Verify and parse one delivery.

        Args:
            platform: Platform family, e.g. 'shopify' or 'openfront'.
            kind: Which canonical event the endpoint receives.
            raw_body: Exact request bytes.
            headers: Request headers (any case).
            secret: Shared secret for signature verification.

        Returns:
            OrderCreatedEvent, OrderCancelledEvent or TrackingCreatedEvent.

        Raises:
            WebhookSignatureError: Signature rejected.
            WebhookPayloadError: Body is not JSON or lacks required fields.
        """
        kind = WebhookKind(kind)
        self.verify(platform, raw_body, headers, secret)

        try:
            payload: Any = json.loads(raw_body or b"")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookPayloadError(f"Body is not valid JSON: {e}", platform=platform) from e
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Body must be a JSON object", platform=platform)

        try:
            event = self.get(platform).parse(kind, payload)
        except (TypeError, ValueError) as e:
            # pydantic ValidationError is a ValueError
            raise WebhookPayloadError(f"Malformed {kind.value} payload: {e}", platform=platform) from e

        logger.info("Normalized %s %s webhook", platform, kind.value)
        return event
