"""Purchase placement pipeline.

Groups an order's unplaced, non-cancelled cart items by channel and asks
each channel's adapter to create one purchase for its group. Outcomes are
written per cart item: a purchase id and url on success, an
``ORDER_PLACEMENT_ERROR:`` message otherwise. One channel failing never
aborts its siblings.

Re-running placement on the same order only retries items that are still
unplaced, so it is safe for operators or schedulers to call repeatedly.
Runs for the same order are serialized through OrderLockRegistry.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor
from src.adapters.operations import Operation
from src.cli.config import get_settings
from src.db.models import CartItem, Channel, Order, OrderStatus
from src.errors.domain import DomainError, NotFoundError
from src.services.errors import AdapterNotFoundError
from src.services.order_locks import OrderLockRegistry, get_order_locks
from src.services.order_status import InvalidStateTransition, ensure_transition
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

PLACEMENT_ERROR_PREFIX = "ORDER_PLACEMENT_ERROR: "
AMBIGUOUS_PLACEMENT_MESSAGE = "Error on order placement. Order may have been placed."
NO_PURCHASE_ID_MESSAGE = "Adapter returned no purchase id"


@dataclass
class TargetOutcome:
    """Result of one create-purchase call."""

    channel_id: str
    cart_item_ids: list[str]
    purchase_id: str = ""
    url: str = ""
    error: str = ""

    @property
    def success(self) -> bool:
        return bool(self.purchase_id)


@dataclass
class PlacementResult:
    """Summary of one placement run for one order."""

    order_id: str
    status: str = ""
    targets: list[TargetOutcome] = field(default_factory=list)
    remaining: int = 0
    error: str = ""
    error_code: str | None = None

    @property
    def placed(self) -> int:
        return sum(len(t.cart_item_ids) for t in self.targets if t.success)

    @property
    def failed(self) -> int:
        return sum(len(t.cart_item_ids) for t in self.targets if not t.success)


def cart_item_payload(item: CartItem) -> dict[str, Any]:
    """Cart item fields sent to adapter operations."""
    return {
        "id": item.id,
        "name": item.name,
        "image": item.image,
        "price": str(item.price) if item.price is not None else None,
        "quantity": item.quantity,
        "product_id": item.product_id,
        "variant_id": item.variant_id,
        "sku": item.sku,
        "line_item_id": item.line_item_id,
        "purchase_id": item.purchase_id,
        "url": item.url,
        "channel_id": item.channel_id,
    }


def _result_field(result: Any, *names: str) -> str:
    if not isinstance(result, dict):
        return ""
    for name in names:
        value = result.get(name)
        if value:
            return str(value)
    return ""


class PlacementEngine:
    """Places purchases for orders through channel adapters.

    Per-channel calls for one order run concurrently (bounded by a
    semaphore); database writes are serialized through a lock and
    committed per channel so a crash never forgets a placed purchase.

    Attributes:
        db: SQLAlchemy session
        executor: Adapter executor
        locks: Per-order lock registry
    """

    def __init__(
        self,
        db: Session,
        executor: AdapterExecutor,
        locks: OrderLockRegistry | None = None,
        concurrency: int | None = None,
        best_effort_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.db = db
        self.executor = executor
        self.locks = locks if locks is not None else get_order_locks()
        self.concurrency = (
            max(1, concurrency)
            if concurrency is not None
            else self._resolve_concurrency(settings.adapters.placement_concurrency)
        )
        self.best_effort_timeout = (
            best_effort_timeout
            if best_effort_timeout is not None
            else settings.adapters.best_effort_timeout_seconds
        )

    @staticmethod
    def _resolve_concurrency(default: int) -> int:
        """Resolve per-order placement concurrency from env with safe fallback."""
        raw = os.environ.get("ORDERRELAY_PLACEMENT_CONCURRENCY")
        if raw is None:
            return max(1, default)
        try:
            value = int(raw)
        except ValueError:
            logger.warning(
                "Invalid ORDERRELAY_PLACEMENT_CONCURRENCY=%r, defaulting to %d", raw, default
            )
            return max(1, default)
        return max(1, value)

    async def place_order(self, order_id: str) -> PlacementResult:
        """Place every unplaced, non-cancelled cart item of an order.

        Args:
            order_id: Internal order id.

        Returns:
            PlacementResult with per-channel outcomes and the final status.

        Raises:
            NotFoundError: Unknown order.
            AdapterNotFoundError: A channel has no usable create-purchase
                adapter. Raised before any adapter is called.
        """
        async with self.locks.get(order_id):
            return await self._place_locked(order_id)

    async def place_orders(self, order_ids: list[str]) -> list[PlacementResult]:
        """Place several orders one after another.

        Failures that stop one order (unknown id, misconfigured adapter)
        are recorded on its result and do not stop the others.
        """
        results: list[PlacementResult] = []
        for order_id in order_ids:
            try:
                results.append(await self.place_order(order_id))
            except (DomainError, AdapterNotFoundError, InvalidStateTransition) as e:
                logger.error("Placement for order %s failed: %s", order_id, e)
                results.append(
                    PlacementResult(order_id=order_id, error=str(e), error_code=e.code)
                )
        return results

    async def _place_locked(self, order_id: str) -> PlacementResult:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        # Routed cart items must survive a failed placement attempt.
        self.db.commit()
        self.db.refresh(order)

        result = PlacementResult(order_id=order.id, status=order.status)
        if order.status == OrderStatus.CANCELLED.value:
            logger.info("Order %s is cancelled; nothing to place", order.id)
            return result

        groups: dict[str, list[CartItem]] = {}
        for item in order.cart_items:
            if not item.is_placed and not item.is_cancelled:
                groups.setdefault(item.channel_id, []).append(item)

        # Resolve every target first: a misconfigured channel fails the
        # request before any purchase is attempted.
        configs: dict[str, dict[str, Any]] = {}
        for channel_id in groups:
            channel = self.db.get(Channel, channel_id)
            if channel is None:
                raise NotFoundError("Channel", channel_id)
            configs[channel_id] = channel.platform_config()
            self.executor.resolve_target(configs[channel_id], Operation.CREATE_PURCHASE)

        shipping = order.shipping_projection()
        semaphore = asyncio.Semaphore(self.concurrency)
        db_lock = asyncio.Lock()

        async def _place_target(channel_id: str, items: list[CartItem]) -> TargetOutcome:
            outcome = TargetOutcome(channel_id=channel_id, cart_item_ids=[i.id for i in items])
            async with semaphore:
                try:
                    response = await self.executor.invoke(
                        configs[channel_id],
                        Operation.CREATE_PURCHASE,
                        {
                            "cart_items": [cart_item_payload(i) for i in items],
                            "shipping": shipping,
                            "notes": "",
                        },
                    )
                except Exception as e:
                    # The remote side may have acted; never retry here.
                    logger.error(
                        "Placement failed for order %s on channel %s: %s [%s]",
                        order.id, channel_id, e, type(e).__name__,
                    )
                    outcome.error = PLACEMENT_ERROR_PREFIX + sanitize_error_message(
                        str(e) or AMBIGUOUS_PLACEMENT_MESSAGE
                    )
                else:
                    outcome.purchase_id = _result_field(response, "purchaseId", "purchase_id")
                    outcome.url = _result_field(response, "url")
                    app_error = _result_field(response, "error")
                    if outcome.purchase_id:
                        if app_error:
                            logger.warning(
                                "Channel %s returned purchase %s with error %r; keeping purchase",
                                channel_id, outcome.purchase_id, app_error,
                            )
                    else:
                        outcome.error = PLACEMENT_ERROR_PREFIX + sanitize_error_message(
                            app_error or NO_PURCHASE_ID_MESSAGE
                        )

            async with db_lock:
                for item in items:
                    if outcome.success:
                        item.purchase_id = outcome.purchase_id
                        item.url = outcome.url
                        item.error = ""
                    else:
                        item.error = outcome.error
                self.db.commit()
            return outcome

        result.targets = list(
            await asyncio.gather(*(_place_target(cid, items) for cid, items in groups.items()))
        )
        for target in result.targets:
            logger.info(
                "Order %s channel %s: %s",
                order.id,
                target.channel_id,
                f"purchase {target.purchase_id}" if target.success else target.error,
            )

        await self._settle(order, result)
        return result

    async def _settle(self, order: Order, result: PlacementResult) -> None:
        """Recount unplaced items and move the order between PENDING and AWAITING."""
        self.db.flush()
        self.db.refresh(order)
        active = [i for i in order.cart_items if not i.is_cancelled]
        result.remaining = sum(1 for i in active if not i.is_placed)

        if not active:
            result.status = order.status
            return

        current = OrderStatus(order.status)
        if result.remaining == 0:
            if current == OrderStatus.PENDING:
                ensure_transition(current, OrderStatus.AWAITING)
                order.status = OrderStatus.AWAITING.value
                order.error = ""
                self.db.commit()
                logger.info("Order %s -> AWAITING", order.id)
            if result.placed:
                await self._add_cart_to_platform_order(order, active)
        elif current == OrderStatus.AWAITING:
            ensure_transition(current, OrderStatus.PENDING)
            order.status = OrderStatus.PENDING.value
            self.db.commit()
            logger.info("Order %s -> PENDING (%d unplaced)", order.id, result.remaining)
        result.status = order.status

    async def _add_cart_to_platform_order(self, order: Order, items: list[CartItem]) -> None:
        """Best-effort: report the placed cart back to the shop platform."""
        config = order.shop.platform_config()
        try:
            self.executor.resolve_target(config, Operation.ADD_CART_TO_PLATFORM_ORDER)
        except AdapterNotFoundError:
            logger.debug("Shop %s has no add-cart-to-order adapter", order.shop_id)
            return
        try:
            await self.executor.invoke(
                config,
                Operation.ADD_CART_TO_PLATFORM_ORDER,
                {
                    "cart_items": [cart_item_payload(i) for i in items],
                    "order_id": order.order_id,
                },
                timeout=self.best_effort_timeout,
            )
        except Exception as e:
            logger.warning(
                "Add cart to platform order failed for order %s (non-critical): %s",
                order.id, e,
            )
