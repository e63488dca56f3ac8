"""Order lifecycle controller.

Decides how a new order is routed (links first, then saved matches, then
a manually assembled cart), triggers placement, and applies webhook
events: storefront cancellations, channel purchase cancellations and
tracking numbers. Pending orders can be routed again on request; cart
items already on the order are never duplicated by that.

Routing and the channel webhook updates run under the order's lock from
the placement engine's OrderLockRegistry. Placement takes that lock
itself, so it is never called while the lock is held.

State machine (see order_status.VALID_TRANSITIONS):
    PENDING -> AWAITING   all active cart items placed
    AWAITING -> COMPLETE  every active cart item has tracking
    any -> CANCELLED      cancellation (terminal)
"""

import logging
from collections import Counter
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor, get_adapter_executor
from src.adapters.operations import Operation
from src.cli.config import get_settings
from src.db.models import (
    CartItem,
    CartItemStatus,
    Channel,
    LineItem,
    Order,
    OrderStatus,
    Shop,
    TrackingDetail,
)
from src.errors.domain import MatchError, NotFoundError, ValidationError
from src.services.errors import AdapterNotFoundError
from src.services.link_service import LinkService
from src.services.match_service import MatchService
from src.services.order_status import ensure_transition
from src.services.placement_engine import PlacementEngine, PlacementResult
from src.webhooks.events import (
    OrderCancelledEvent,
    OrderCreatedEvent,
    TrackingCreatedEvent,
)

logger = logging.getLogger(__name__)

NO_LINK_MATCHED = "No matching link found for this order"


def _cart_fingerprint(item: CartItem) -> tuple[str, str, str, int]:
    return (item.channel_id, item.product_id, item.variant_id or "", item.quantity)


class OrderService:
    """Service for order CRUD and lifecycle transitions.

    Attributes:
        db: SQLAlchemy session for database operations.
        executor: Adapter executor shared by routing and placement.
        matches: Match resolver.
        links: Link resolver.
        placement: Purchase placement pipeline.
        locks: Per-order lock registry shared with placement.
        best_effort_timeout: Seconds allowed for add-tracking calls.
    """

    def __init__(
        self,
        db: Session,
        executor: AdapterExecutor | None = None,
        placement: PlacementEngine | None = None,
        best_effort_timeout: float | None = None,
    ) -> None:
        self.db = db
        self.executor = executor if executor is not None else get_adapter_executor()
        if best_effort_timeout is None:
            best_effort_timeout = get_settings().adapters.best_effort_timeout_seconds
        self.best_effort_timeout = best_effort_timeout
        self.matches = MatchService(db, self.executor, live_timeout=best_effort_timeout)
        self.links = LinkService(db)
        self.placement = (
            placement
            if placement is not None
            else PlacementEngine(db, self.executor, best_effort_timeout=best_effort_timeout)
        )
        self.locks = self.placement.locks

    # =========================================================================
    # Order CRUD
    # =========================================================================

    def create_order(
        self,
        shop_id: str,
        event: OrderCreatedEvent,
        link_order: bool = True,
        match_order: bool = True,
        process_order: bool = True,
    ) -> Order:
        """Persist an order and its line items. Routing happens in on_order_created.

        Raises:
            NotFoundError: Unknown shop.
        """
        shop = self.db.get(Shop, shop_id)
        if shop is None:
            raise NotFoundError("Shop", shop_id)

        shipping = event.shipping
        order = Order(
            order_id=event.order_id,
            order_name=event.order_name,
            email=event.email,
            first_name=shipping.first_name,
            last_name=shipping.last_name,
            address1=shipping.address1,
            address2=shipping.address2,
            city=shipping.city,
            state=shipping.state,
            zip=shipping.zip,
            country=shipping.country,
            phone=shipping.phone,
            currency=event.currency,
            total_price=event.total_price,
            subtotal_price=event.subtotal_price,
            total_discounts=event.total_discounts,
            total_tax=event.total_tax,
            link_order=link_order,
            match_order=match_order,
            process_order=process_order,
            status=OrderStatus.PENDING.value,
            shop_id=shop.id,
            owner_id=shop.owner_id,
        )
        order.line_items = [
            LineItem(
                name=item.name,
                image=item.image,
                price=item.price,
                quantity=item.quantity,
                product_id=item.product_id,
                variant_id=item.variant_id,
                sku=item.sku,
                line_item_id=item.line_item_id,
            )
            for item in event.line_items
        ]
        self.db.add(order)
        self.db.flush()
        logger.info(
            "Created order %s (%s) for shop %s with %d line items",
            order.id, order.order_name or order.order_id, shop.id, len(order.line_items),
        )
        return order

    def get_order(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def find_by_external_id(self, shop_id: str, external_order_id: str) -> Order | None:
        return self.db.execute(
            select(Order).where(Order.shop_id == shop_id, Order.order_id == external_order_id)
        ).scalars().first()

    def list_orders(
        self,
        status: OrderStatus | str | None = None,
        shop_id: str | None = None,
        owner_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc())
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status).value)
        if shop_id is not None:
            stmt = stmt.where(Order.shop_id == shop_id)
        if owner_id is not None:
            stmt = stmt.where(Order.owner_id == owner_id)
        return list(self.db.execute(stmt.limit(limit).offset(offset)).scalars().all())

    def count_orders(
        self,
        status: OrderStatus | str | None = None,
        shop_id: str | None = None,
        owner_id: str | None = None,
    ) -> int:
        stmt = select(func.count(Order.id))
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status).value)
        if shop_id is not None:
            stmt = stmt.where(Order.shop_id == shop_id)
        if owner_id is not None:
            stmt = stmt.where(Order.owner_id == owner_id)
        return self.db.execute(stmt).scalar_one()

    def add_cart_item(
        self,
        order_id: str,
        channel_id: str,
        product_id: str,
        variant_id: str = "",
        quantity: int = 1,
        price: Decimal | None = None,
        name: str = "",
        image: str | None = None,
        sku: str = "",
        line_item_id: str = "",
    ) -> CartItem:
        """Manually allocate an item to a channel (manual cart assembly)."""
        order = self.get_order(order_id)
        if order.status in (OrderStatus.CANCELLED.value, OrderStatus.COMPLETE.value):
            raise ValidationError(f"Cannot add cart items to a {order.status} order")
        if self.db.get(Channel, channel_id) is None:
            raise NotFoundError("Channel", channel_id)
        if quantity < 1:
            raise ValidationError(f"Quantity must be at least 1 (got {quantity})")

        item = CartItem(
            channel_id=channel_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            price=price,
            name=name,
            image=image,
            sku=sku,
            line_item_id=line_item_id,
            owner_id=order.owner_id,
        )
        order.cart_items.append(item)
        self.db.flush()
        return item

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def on_order_created(self, order_id: str) -> Order:
        """Route a new order and place it when asked to.

        Links win when enabled and configured. Otherwise saved matches are
        used. Otherwise an already-assembled cart is placed directly.
        Routing failures are recorded on ``order.error``; the order stays
        PENDING for an operator to reroute.
        """
        order = self.get_order(order_id)
        if order.status != OrderStatus.PENDING.value:
            logger.info("Order %s is %s; skipping routing", order.id, order.status)
            return order

        async with self.locks.get(order.id):
            if self._routes_automatically(order):
                ready = await self._route(order)
            else:
                ready = bool(self._unplaced(order))

        if ready and order.process_order:
            await self.place(order.id)
        self.db.refresh(order)
        return order

    async def reroute(self, order_id: str) -> Order:
        """Run link or match routing again for a PENDING order.

        Cart items already on the order (placed or not) are kept. Routed
        items identical to one of them are dropped, so nothing is bought
        twice. Placement is left to the caller.

        Raises:
            NotFoundError: Unknown order.
            ValidationError: The order is not PENDING, or has link and
                match routing disabled.
        """
        order = self.get_order(order_id)
        if order.status != OrderStatus.PENDING.value:
            raise ValidationError(
                f"Only PENDING orders can be rerouted (order {order.id} is {order.status})"
            )
        if not self._routes_automatically(order):
            raise ValidationError(f"Order {order.id} has link and match routing disabled")

        async with self.locks.get(order.id):
            existing = Counter(
                _cart_fingerprint(i) for i in order.cart_items if not i.is_cancelled
            )
            before = {i.id for i in order.cart_items}
            if await self._route(order):
                for item in [i for i in order.cart_items if i.id not in before]:
                    fingerprint = _cart_fingerprint(item)
                    if existing[fingerprint]:
                        existing[fingerprint] -= 1
                        order.cart_items.remove(item)
                self.db.flush()
        logger.info("Rerouted order %s (%d cart items)", order.id, len(order.cart_items))
        return order

    @staticmethod
    def _routes_automatically(order: Order) -> bool:
        return bool(order.link_order and order.shop.links) or order.match_order

    async def _route(self, order: Order) -> bool:
        """Create cart items from links, or else from saved matches.

        Returns:
            False when routing failed; the reason is on ``order.error``.
        """
        if order.link_order and order.shop.links:
            links = self.links.resolve(order)
            if not links:
                order.error = NO_LINK_MATCHED
                self.db.flush()
                logger.info("Order %s: %s", order.id, NO_LINK_MATCHED)
                return False
            self.links.materialize_cart_items(order, links)
        else:
            try:
                await self.matches.materialize_cart_items(order)
            except MatchError as e:
                order.error = str(e)
                self.db.flush()
                logger.info("Order %s left PENDING: %s", order.id, e)
                return False
        order.error = ""
        self.db.flush()
        return True

    async def place(self, order_id: str) -> PlacementResult:
        return await self.placement.place_order(order_id)

    async def place_many(self, order_ids: list[str]) -> list[PlacementResult]:
        return await self.placement.place_orders(order_ids)

    @staticmethod
    def _unplaced(order: Order) -> list[CartItem]:
        return [i for i in order.cart_items if not i.is_placed and not i.is_cancelled]

    async def ingest_order_created(self, shop: Shop, event: OrderCreatedEvent) -> tuple[Order, bool]:
        """Create and route an order from a storefront webhook.

        Redelivered webhooks for an order already stored for the shop
        return the existing order untouched.

        Returns:
            (order, created) where created is False for duplicates.
        """
        existing = self.find_by_external_id(shop.id, event.order_id)
        if existing is not None:
            logger.info("Order %s already ingested for shop %s", event.order_id, shop.id)
            return existing, False
        order = self.create_order(shop.id, event)
        return await self.on_order_created(order.id), True

    def cancel_order(self, order_id: str) -> Order:
        """Cancel an order and every cart item on it. Idempotent.

        Raises:
            NotFoundError: Unknown order.
        """
        order = self.get_order(order_id)
        if order.status != OrderStatus.CANCELLED.value:
            ensure_transition(order.status, OrderStatus.CANCELLED)
            order.status = OrderStatus.CANCELLED.value
        for item in order.cart_items:
            item.status = CartItemStatus.CANCELLED.value
        self.db.flush()
        logger.info("Order %s -> CANCELLED", order.id)
        return order

    def on_order_cancelled(self, shop: Shop, event: OrderCancelledEvent) -> Order | None:
        """Apply a storefront cancellation webhook."""
        order = self.find_by_external_id(shop.id, event.order_id)
        if order is None:
            logger.warning(
                "Cancellation for unknown order %s on shop %s ignored", event.order_id, shop.id
            )
            return None
        return self.cancel_order(order.id)

    def _cart_items_for_purchase(self, channel: Channel, purchase_id: str) -> list[CartItem]:
        return list(
            self.db.execute(
                select(CartItem).where(
                    CartItem.channel_id == channel.id,
                    CartItem.purchase_id == purchase_id,
                )
            ).scalars().all()
        )

    @staticmethod
    def _by_order(items: list[CartItem]) -> dict[str, list[CartItem]]:
        grouped: dict[str, list[CartItem]] = {}
        for item in items:
            grouped.setdefault(item.order_id, []).append(item)
        return grouped

    async def on_purchase_cancelled(
        self, channel: Channel, event: OrderCancelledEvent
    ) -> list[CartItem]:
        """Apply a channel-side cancellation of one purchase.

        The purchase's cart items become CANCELLED and drop out of the
        completion requirement of their orders.
        """
        items = self._cart_items_for_purchase(channel, event.order_id)
        if not items:
            logger.warning(
                "Cancellation for unknown purchase %s on channel %s ignored",
                event.order_id, channel.id,
            )
            return []
        for order_id, order_items in self._by_order(items).items():
            async with self.locks.get(order_id):
                for item in order_items:
                    item.status = CartItemStatus.CANCELLED.value
                self.db.flush()
                self.recompute_completion(order_items[0].order)
        logger.info("Purchase %s cancelled on channel %s (%d items)", event.order_id, channel.id, len(items))
        return items

    async def cancel_purchase(self, channel_id: str, purchase_id: str) -> list[CartItem]:
        """Cancel a purchase on the channel, then apply it locally.

        The channel's ``cancelPurchaseFunction`` runs first; local state
        only changes once the platform accepted the cancellation.

        Raises:
            NotFoundError: Unknown channel or no cart items carry the purchase.
            AdapterNotFoundError: The channel has no cancel-purchase adapter.
        """
        channel = self.db.get(Channel, channel_id)
        if channel is None:
            raise NotFoundError("Channel", channel_id)
        if not self._cart_items_for_purchase(channel, purchase_id):
            raise NotFoundError("Purchase", purchase_id)
        await self.executor.invoke(
            channel.platform_config(),
            Operation.CANCEL_PURCHASE,
            {"purchase_id": purchase_id},
        )
        return await self.on_purchase_cancelled(
            channel,
            OrderCancelledEvent(platform="api", order_id=purchase_id),
        )

    async def on_tracking_created(
        self, channel: Channel, event: TrackingCreatedEvent
    ) -> TrackingDetail | None:
        """Record a shipment, tell the storefront (best-effort), and recompute completion."""
        items = [
            i for i in self._cart_items_for_purchase(channel, event.purchase_id)
            if not i.is_cancelled
        ]
        if not items:
            logger.warning(
                "Tracking for unknown purchase %s on channel %s ignored",
                event.purchase_id, channel.id,
            )
            return None

        detail = self.db.execute(
            select(TrackingDetail).where(
                TrackingDetail.purchase_id == event.purchase_id,
                TrackingDetail.tracking_number == event.tracking_number,
            )
        ).scalars().first()
        if detail is None:
            detail = TrackingDetail(
                tracking_company=event.tracking_company,
                tracking_number=event.tracking_number,
                tracking_url=event.tracking_url,
                purchase_id=event.purchase_id,
                owner_id=channel.owner_id,
            )
            self.db.add(detail)
        for order_id, order_items in self._by_order(items).items():
            order = order_items[0].order
            async with self.locks.get(order_id):
                for item in order_items:
                    if item not in detail.cart_items:
                        detail.cart_items.append(item)
                self.db.flush()
            await self._add_tracking(order, event)
            async with self.locks.get(order_id):
                self.recompute_completion(order)
        logger.info(
            "Tracking %s recorded for purchase %s (%d items)",
            event.tracking_number, event.purchase_id, len(items),
        )
        return detail

    async def _add_tracking(self, order: Order, event: TrackingCreatedEvent) -> None:
        """Best-effort: push tracking to the storefront order."""
        config = order.shop.platform_config()
        try:
            self.executor.resolve_target(config, Operation.ADD_TRACKING)
        except AdapterNotFoundError:
            logger.debug("Shop %s has no add-tracking adapter", order.shop_id)
            return
        args: dict[str, Any] = {
            "order": {"id": order.id, "order_id": order.order_id, "order_name": order.order_name},
            "tracking_company": event.tracking_company,
            "tracking_number": event.tracking_number,
        }
        try:
            await self.executor.invoke(
                config, Operation.ADD_TRACKING, args, timeout=self.best_effort_timeout
            )
        except Exception as e:
            logger.warning("Add tracking failed for order %s (non-critical): %s", order.id, e)

    def recompute_completion(self, order: Order) -> bool:
        """Move an AWAITING order to COMPLETE once every active item has tracking.

        Callers hold the order's lock.

        Returns:
            True if the order is now COMPLETE.
        """
        self.db.refresh(order)
        if order.status != OrderStatus.AWAITING.value:
            return order.status == OrderStatus.COMPLETE.value
        active = [i for i in order.cart_items if not i.is_cancelled]
        if not active or not all(i.tracking_details for i in active):
            return False
        ensure_transition(order.status, OrderStatus.COMPLETE)
        order.status = OrderStatus.COMPLETE.value
        self.db.flush()
        logger.info("Order %s -> COMPLETE", order.id)
        return True
