"""Pass-through calls to a shop's or channel's platform adapter.

Product search and lookup, storefront order search, product updates and
platform webhook management are not part of routing or placement. This
service resolves the endpoint, checks the operation belongs to its side,
and hands the call to the AdapterExecutor. Adapter results are returned
as-is.
"""

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.adapters.operations import CHANNEL_OPERATIONS, SHOP_OPERATIONS, Operation
from src.db.models import Channel, PlatformKind, Shop
from src.errors.domain import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class PlatformOperationsService:
    """Invoke catalog, order-search and webhook operations on one endpoint.

    Attributes:
        db: SQLAlchemy session for endpoint lookups.
        executor: Adapter executor the calls go through.
        timeout: Seconds per call; None uses the executor default.
    """

    def __init__(
        self,
        db: Session,
        executor: AdapterExecutor | None = None,
        timeout: float | None = None,
    ) -> None:
        self.db = db
        self.executor = executor or get_adapter_executor()
        self.timeout = timeout

    def get_endpoint(self, kind: PlatformKind | str, endpoint_id: str) -> Shop | Channel:
        kind = PlatformKind(kind)
        model = Shop if kind == PlatformKind.shop else Channel
        endpoint = self.db.get(model, endpoint_id)
        if endpoint is None:
            raise NotFoundError(model.__name__, endpoint_id)
        return endpoint

    async def _invoke(
        self,
        kind: PlatformKind | str,
        endpoint_id: str,
        operation: Operation,
        args: dict[str, Any] | None = None,
    ) -> Any:
        kind = PlatformKind(kind)
        allowed = SHOP_OPERATIONS if kind == PlatformKind.shop else CHANNEL_OPERATIONS
        if operation not in allowed:
            raise ValidationError(f"Operation '{operation.value}' is not available on a {kind.value}")
        endpoint = self.get_endpoint(kind, endpoint_id)
        logger.info("Running %s on %s %s", operation.value, kind.value, endpoint.id)
        return await self.executor.invoke(
            endpoint.platform_config(), operation, args or {}, timeout=self.timeout
        )

    async def search_products(
        self,
        kind: PlatformKind | str,
        endpoint_id: str,
        search_entry: str = "",
        after: str | None = None,
    ) -> Any:
        return await self._invoke(
            kind, endpoint_id, Operation.SEARCH_PRODUCTS,
            {"search_entry": search_entry, "after": after},
        )

    async def get_product(
        self,
        kind: PlatformKind | str,
        endpoint_id: str,
        product_id: str,
        variant_id: str = "",
    ) -> Any:
        return await self._invoke(
            kind, endpoint_id, Operation.GET_PRODUCT,
            {"product_id": product_id, "variant_id": variant_id},
        )

    async def search_orders(
        self,
        shop_id: str,
        search_entry: str = "",
        after: str | None = None,
    ) -> Any:
        """Search the storefront's own order list (not OrderRelay orders)."""
        return await self._invoke(
            PlatformKind.shop, shop_id, Operation.SEARCH_ORDERS,
            {"search_entry": search_entry, "after": after},
        )

    async def update_product(
        self,
        shop_id: str,
        product_id: str,
        variant_id: str = "",
        price: Decimal | None = None,
        inventory: int | None = None,
    ) -> Any:
        """Push a price and/or inventory change to a storefront product.

        Raises:
            ValidationError: Neither price nor inventory given.
        """
        if price is None and inventory is None:
            raise ValidationError("Nothing to update: give a price, an inventory change, or both")
        return await self._invoke(
            PlatformKind.shop, shop_id, Operation.UPDATE_PRODUCT,
            {
                "product_id": product_id,
                "variant_id": variant_id,
                "price": price,
                "inventory": inventory,
            },
        )

    async def create_webhook(
        self,
        kind: PlatformKind | str,
        endpoint_id: str,
        endpoint: str,
        events: list[str],
    ) -> Any:
        if not events:
            raise ValidationError("At least one webhook event is required")
        return await self._invoke(
            kind, endpoint_id, Operation.CREATE_WEBHOOK,
            {"endpoint": endpoint, "events": list(events)},
        )

    async def delete_webhook(
        self, kind: PlatformKind | str, endpoint_id: str, webhook_id: str
    ) -> Any:
        return await self._invoke(
            kind, endpoint_id, Operation.DELETE_WEBHOOK, {"webhook_id": webhook_id}
        )

    async def get_webhooks(self, kind: PlatformKind | str, endpoint_id: str) -> Any:
        return await self._invoke(kind, endpoint_id, Operation.GET_WEBHOOKS)
