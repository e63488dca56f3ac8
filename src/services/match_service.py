"""Match resolver: saved item-set recipes from shop line items to channel items.

A Match maps a multiset of shop-side (product_id, variant_id, quantity)
tuples to a set of channel-side items with a saved price. Resolution tries
an exact match on the full input multiset first; orders with several line
items then fall back to single-tuple matches, one per line item. The
fallback is all-or-nothing: any uncovered tuple fails the whole resolve.

Example:
    service = MatchService(db, executor)
    cart_items = await service.materialize_cart_items(order)
    db.commit()
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.adapters.executor import AdapterExecutor
from src.adapters.operations import Operation
from src.db.models import (
    CartItem,
    Channel,
    ChannelItem,
    Match,
    Order,
    Shop,
    ShopItem,
)
from src.errors.domain import (
    DuplicateMatchError,
    NoMatchFoundError,
    NotFoundError,
    PartialMatchError,
    ValidationError,
)
from src.services.errors import AdapterError

logger = logging.getLogger(__name__)

ItemTuple = tuple[str, str, int]


@dataclass
class ShopItemSpec:
    """Shop-side input of a match."""

    product_id: str
    variant_id: str = ""
    quantity: int = 1
    shop_id: str | None = None

    def key(self) -> ItemTuple:
        return (self.product_id, self.variant_id or "", self.quantity)


@dataclass
class ChannelItemSpec:
    """Channel-side output of a match."""

    product_id: str
    channel_id: str
    variant_id: str = ""
    quantity: int = 1
    price: Decimal | None = None


@dataclass
class LiveOutput:
    """Current external state of one match output."""

    channel_item_id: str
    channel_id: str
    product_id: str
    variant_id: str
    quantity: int
    saved_price: Decimal | None
    current_price: Decimal | None = None
    price_changed: bool = False
    title: str = ""
    image: str | None = None
    inventory: int | None = None
    error: str = ""


@dataclass
class InventorySync:
    """Stock comparison for single-input single-output matches."""

    source_quantity: int | None
    target_quantity: int | None
    sync_needed: bool


@dataclass
class LiveDetails:
    match_id: str | None
    outputs: list[LiveOutput] = field(default_factory=list)
    inventory_sync: InventorySync | None = None


def merge_tuples(tuples: Iterable[ItemTuple]) -> list[ItemTuple]:
    """Fold repeated (product, variant) pairs into one tuple with the summed quantity."""
    merged: dict[tuple[str, str], int] = {}
    for product_id, variant_id, quantity in tuples:
        key = (product_id, variant_id or "")
        merged[key] = merged.get(key, 0) + int(quantity)
    return [(p, v, q) for (p, v), q in merged.items()]


def input_key(tuples: Iterable[ItemTuple]) -> tuple[ItemTuple, ...]:
    """Order-insensitive key for a set of input tuples, repeats folded."""
    return tuple(sorted(merge_tuples(tuples)))


def match_key(match: Match) -> tuple[ItemTuple, ...]:
    return input_key(item.fingerprint() for item in match.inputs)


def order_tuples(order: Order) -> list[ItemTuple]:
    return [(li.product_id, li.variant_id or "", li.quantity) for li in order.line_items]


def price_change_message(saved: Decimal, current: Decimal) -> str:
    return f"PRICE_CHANGE: Price changed: {saved} → {current}. Verify before placing order."


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _product_from_result(result: Any) -> dict[str, Any]:
    """Adapters answer either ``{"product": {...}}`` or the product itself."""
    if not isinstance(result, dict):
        return {}
    product = result.get("product", result)
    return product if isinstance(product, dict) else {}


class MatchService:
    """Service for match CRUD and match-based order routing.

    Attributes:
        db: SQLAlchemy session for database operations.
        executor: Adapter executor used for live product lookups.
        live_timeout: Seconds allowed per live product lookup.
    """

    def __init__(
        self,
        db: Session,
        executor: AdapterExecutor | None = None,
        live_timeout: float | None = None,
    ) -> None:
        self.db = db
        self.executor = executor
        self.live_timeout = live_timeout

    # =========================================================================
    # Fingerprints
    # =========================================================================

    def find_or_create_shop_item(self, owner_id: str, spec: ShopItemSpec) -> ShopItem:
        """Reuse an existing ShopItem for the tuple, or create one.

        Two concurrent callers may both create a row; reuse is an
        optimisation, so that race is tolerated.
        """
        item = self.db.execute(
            select(ShopItem).where(
                ShopItem.owner_id == owner_id,
                ShopItem.product_id == spec.product_id,
                ShopItem.variant_id == (spec.variant_id or ""),
                ShopItem.quantity == spec.quantity,
                ShopItem.shop_id.is_(None) if spec.shop_id is None else ShopItem.shop_id == spec.shop_id,
            )
        ).scalars().first()
        if item is None:
            item = ShopItem(
                owner_id=owner_id,
                product_id=spec.product_id,
                variant_id=spec.variant_id or "",
                quantity=spec.quantity,
                shop_id=spec.shop_id,
            )
            self.db.add(item)
            self.db.flush()
        return item

    def find_or_create_channel_item(self, owner_id: str, spec: ChannelItemSpec) -> ChannelItem:
        """Reuse an existing ChannelItem for the tuple, or create one.

        A supplied price replaces the saved price on a reused item.
        """
        item = self.db.execute(
            select(ChannelItem).where(
                ChannelItem.owner_id == owner_id,
                ChannelItem.product_id == spec.product_id,
                ChannelItem.variant_id == (spec.variant_id or ""),
                ChannelItem.quantity == spec.quantity,
                ChannelItem.channel_id == spec.channel_id,
            )
        ).scalars().first()
        if item is None:
            item = ChannelItem(
                owner_id=owner_id,
                product_id=spec.product_id,
                variant_id=spec.variant_id or "",
                quantity=spec.quantity,
                channel_id=spec.channel_id,
                price=spec.price,
            )
            self.db.add(item)
            self.db.flush()
        elif spec.price is not None and item.price != spec.price:
            item.price = spec.price
        return item

    # =========================================================================
    # Match CRUD
    # =========================================================================

    def _validate(
        self, inputs: Sequence[ShopItemSpec], outputs: Sequence[ChannelItemSpec]
    ) -> None:
        if not inputs:
            raise ValidationError("A match needs at least one input item")
        if not outputs:
            raise ValidationError("A match needs at least one output item")
        for spec in [*inputs, *outputs]:
            if not spec.product_id:
                raise ValidationError("Match items need a product_id")
            if spec.quantity < 1:
                raise ValidationError(f"Quantity must be at least 1 (got {spec.quantity})")
        for spec in outputs:
            if self.db.get(Channel, spec.channel_id) is None:
                raise NotFoundError("Channel", spec.channel_id)
        for spec in inputs:
            if spec.shop_id and self.db.get(Shop, spec.shop_id) is None:
                raise NotFoundError("Shop", spec.shop_id)

    def find_by_inputs(
        self, owner_id: str, tuples: Iterable[ItemTuple], exclude_id: str | None = None
    ) -> Match | None:
        """Find the owner's match whose input multiset equals ``tuples``."""
        wanted = input_key(tuples)
        if not wanted:
            return None
        first_product = wanted[0][0]
        candidates = self.db.execute(
            select(Match)
            .join(Match.inputs)
            .where(Match.owner_id == owner_id, ShopItem.product_id == first_product)
            .distinct()
        ).scalars().all()
        for match in candidates:
            if match.id != exclude_id and len(match.inputs) == len(wanted) and match_key(match) == wanted:
                return match
        return None

    def _check_duplicate(
        self, owner_id: str, inputs: Sequence[ShopItemSpec], exclude_id: str | None = None
    ) -> None:
        existing = self.find_by_inputs(owner_id, (s.key() for s in inputs), exclude_id=exclude_id)
        if existing is not None:
            raise DuplicateMatchError(existing.id)

    def create_match(
        self,
        owner_id: str,
        inputs: Sequence[ShopItemSpec],
        outputs: Sequence[ChannelItemSpec],
    ) -> Match:
        """Create a match.

        Raises:
            DuplicateMatchError: The owner already has a match for this input set.
            ValidationError: Empty inputs/outputs or bad quantities.
            NotFoundError: A referenced shop or channel does not exist.
        """
        self._validate(inputs, outputs)
        inputs = self._merge_inputs(inputs)
        outputs = self._merge_outputs(outputs)
        self._check_duplicate(owner_id, inputs)
        match = Match(
            owner_id=owner_id,
            inputs=[self.find_or_create_shop_item(owner_id, s) for s in inputs],
            outputs=[self.find_or_create_channel_item(owner_id, s) for s in outputs],
        )
        self.db.add(match)
        self.db.flush()
        logger.info("Created match %s (%d -> %d items)", match.id, len(inputs), len(outputs))
        return match

    @staticmethod
    def _merge_inputs(inputs: Sequence[ShopItemSpec]) -> list[ShopItemSpec]:
        """One spec per (product, variant); repeats add their quantities."""
        merged: dict[tuple[str, str], ShopItemSpec] = {}
        for spec in inputs:
            key = (spec.product_id, spec.variant_id or "")
            if key in merged:
                merged[key] = replace(merged[key], quantity=merged[key].quantity + spec.quantity)
            else:
                merged[key] = spec
        return list(merged.values())

    @staticmethod
    def _merge_outputs(outputs: Sequence[ChannelItemSpec]) -> list[ChannelItemSpec]:
        """One spec per (product, variant, channel); the last given price wins."""
        merged: dict[tuple[str, str, str], ChannelItemSpec] = {}
        for spec in outputs:
            key = (spec.product_id, spec.variant_id or "", spec.channel_id)
            if key in merged:
                previous = merged[key]
                merged[key] = replace(
                    previous,
                    quantity=previous.quantity + spec.quantity,
                    price=spec.price if spec.price is not None else previous.price,
                )
            else:
                merged[key] = spec
        return list(merged.values())

    def update_match(
        self,
        match_id: str,
        inputs: Sequence[ShopItemSpec] | None = None,
        outputs: Sequence[ChannelItemSpec] | None = None,
    ) -> Match:
        """Replace a match's inputs and/or outputs.

        The duplicate check ignores the match being updated.
        """
        match = self.get_match(match_id)
        new_inputs = inputs if inputs is not None else [
            ShopItemSpec(i.product_id, i.variant_id, i.quantity, i.shop_id) for i in match.inputs
        ]
        new_outputs = outputs if outputs is not None else [
            ChannelItemSpec(o.product_id, o.channel_id, o.variant_id, o.quantity, o.price)
            for o in match.outputs
        ]
        self._validate(new_inputs, new_outputs)
        if inputs is not None:
            inputs = self._merge_inputs(inputs)
            self._check_duplicate(match.owner_id, inputs, exclude_id=match.id)
            match.inputs = [self.find_or_create_shop_item(match.owner_id, s) for s in inputs]
        if outputs is not None:
            match.outputs = [
                self.find_or_create_channel_item(match.owner_id, s)
                for s in self._merge_outputs(outputs)
            ]
        self.db.flush()
        return match

    def delete_match(self, match_id: str) -> None:
        match = self.get_match(match_id)
        self.db.delete(match)
        self.db.flush()
        logger.info("Deleted match %s", match_id)

    def get_match(self, match_id: str) -> Match:
        match = self.db.get(Match, match_id)
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    def list_matches(
        self, owner_id: str | None = None, limit: int = 50, offset: int = 0
    ) -> list[Match]:
        stmt = select(Match).order_by(Match.created_at.desc())
        if owner_id is not None:
            stmt = stmt.where(Match.owner_id == owner_id)
        return list(self.db.execute(stmt.limit(limit).offset(offset)).scalars().all())

    def count_matches(self, owner_id: str | None = None) -> int:
        stmt = select(func.count(Match.id))
        if owner_id is not None:
            stmt = stmt.where(Match.owner_id == owner_id)
        return self.db.execute(stmt).scalar_one()

    def overwrite_match(
        self,
        owner_id: str,
        inputs: Sequence[ShopItemSpec],
        outputs: Sequence[ChannelItemSpec],
    ) -> Match:
        """Create a match, replacing any match with the same input set."""
        self._validate(inputs, outputs)
        existing = self.find_by_inputs(owner_id, (s.key() for s in inputs))
        if existing is not None:
            logger.info("Overwriting match %s", existing.id)
            self.db.delete(existing)
            self.db.flush()
        return self.create_match(owner_id, inputs, outputs)

    def create_match_from_order(self, order: Order) -> Match:
        """Save the order's current routing (line items -> cart items) as a match."""
        active = [ci for ci in order.cart_items if not ci.is_cancelled]
        if not order.line_items:
            raise ValidationError(f"Order {order.id} has no line items")
        if not active:
            raise ValidationError(f"Order {order.id} has no cart items to save as a match")
        inputs = [
            ShopItemSpec(li.product_id, li.variant_id, li.quantity, order.shop_id)
            for li in order.line_items
        ]
        outputs = [
            ChannelItemSpec(ci.product_id, ci.channel_id, ci.variant_id, ci.quantity, ci.price)
            for ci in active
        ]
        return self.overwrite_match(order.owner_id, inputs, outputs)

    # =========================================================================
    # Resolution
    # =========================================================================

    def _single_tuple_match(self, owner_id: str, item: ItemTuple) -> Match | None:
        product_id, variant_id, quantity = item
        candidates = self.db.execute(
            select(Match)
            .join(Match.inputs)
            .where(
                Match.owner_id == owner_id,
                ShopItem.product_id == product_id,
                ShopItem.variant_id == variant_id,
                ShopItem.quantity == quantity,
            )
            .distinct()
        ).scalars().all()
        for match in candidates:
            if len(match.inputs) == 1:
                return match
        return None

    def resolve(self, owner_id: str, tuples: Sequence[ItemTuple]) -> list[ChannelItem]:
        """Resolve input tuples to the channel items that fulfil them.

        Raises:
            NoMatchFoundError: Nothing covers the input (single tuple, or empty).
            PartialMatchError: Per-tuple fallback left some tuples uncovered.
        """
        tuples = merge_tuples(tuples)
        if not tuples:
            raise NoMatchFoundError()

        exact = self.find_by_inputs(owner_id, tuples)
        if exact is not None:
            logger.debug("Exact match %s for %d tuples", exact.id, len(tuples))
            return list(exact.outputs)

        if len(tuples) == 1:
            raise NoMatchFoundError()

        # Per-tuple fallback: each line item routed by its own single-input match.
        outputs: list[ChannelItem] = []
        unmatched: list[ItemTuple] = []
        for item in tuples:
            match = self._single_tuple_match(owner_id, item)
            if match is None:
                unmatched.append(item)
            else:
                outputs.extend(match.outputs)
        if unmatched:
            raise PartialMatchError(unmatched)
        return outputs

    async def _live_output(self, item: ChannelItem) -> LiveOutput:
        live = LiveOutput(
            channel_item_id=item.id,
            channel_id=item.channel_id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=item.quantity,
            saved_price=item.price,
        )
        if self.executor is None:
            return live
        config = item.channel.platform_config()
        try:
            result = await self.executor.invoke(
                config,
                Operation.GET_PRODUCT,
                {"product_id": item.product_id, "variant_id": item.variant_id},
                timeout=self.live_timeout,
            )
        except (AdapterError, httpx.HTTPError, TimeoutError) as e:
            logger.warning(
                "Live product lookup failed for %s/%s on channel %s: %s",
                item.product_id,
                item.variant_id,
                item.channel_id,
                e,
            )
            live.error = str(e) or type(e).__name__
            return live

        product = _product_from_result(result)
        live.current_price = _to_decimal(product.get("price"))
        live.title = product.get("title") or product.get("name") or ""
        live.image = product.get("image")
        live.inventory = _to_int(product.get("inventory"))
        live.price_changed = (
            live.saved_price is not None
            and live.current_price is not None
            and live.saved_price != live.current_price
        )
        return live

    async def fetch_live_outputs(self, items: Sequence[ChannelItem]) -> list[LiveOutput]:
        return list(await asyncio.gather(*(self._live_output(item) for item in items)))

    async def fetch_live_external_details(self, match: Match) -> LiveDetails:
        """Fetch current price/stock for each output of a saved match.

        For a single-input single-output match whose input is tied to a
        shop, the shop-side stock is fetched too so the caller can decide
        whether inventory needs syncing.
        """
        details = LiveDetails(
            match_id=match.id, outputs=await self.fetch_live_outputs(match.outputs)
        )
        if len(match.inputs) == 1 and len(match.outputs) == 1:
            source = match.inputs[0]
            target_quantity = details.outputs[0].inventory
            source_quantity = None
            if source.shop is not None and self.executor is not None:
                try:
                    result = await self.executor.invoke(
                        source.shop.platform_config(),
                        Operation.GET_PRODUCT,
                        {"product_id": source.product_id, "variant_id": source.variant_id},
                        timeout=self.live_timeout,
                    )
                    source_quantity = _to_int(_product_from_result(result).get("inventory"))
                except (AdapterError, httpx.HTTPError, TimeoutError) as e:
                    logger.warning("Live shop product lookup failed for match %s: %s", match.id, e)
            details.inventory_sync = InventorySync(
                source_quantity=source_quantity,
                target_quantity=target_quantity,
                sync_needed=(
                    source_quantity is not None
                    and target_quantity is not None
                    and source_quantity != target_quantity
                ),
            )
        return details

    async def preview(self, owner_id: str, tuples: Sequence[ItemTuple]) -> LiveDetails:
        """Resolve tuples and fetch live details without persisting anything."""
        outputs = self.resolve(owner_id, tuples)
        return LiveDetails(match_id=None, outputs=await self.fetch_live_outputs(outputs))

    async def materialize_cart_items(self, order: Order) -> list[CartItem]:
        """Resolve the order's line items and create its cart items.

        Live prices replace saved ones; a differing live price is recorded
        as a PRICE_CHANGE warning on the cart item. Resolution errors
        propagate before any cart item is created.
        """
        outputs = self.resolve(order.owner_id, order_tuples(order))
        live_outputs = await self.fetch_live_outputs(outputs)

        created: list[CartItem] = []
        for live in live_outputs:
            price = live.current_price if live.current_price is not None else live.saved_price
            error = ""
            if live.price_changed:
                error = price_change_message(live.saved_price, live.current_price)
            cart_item = CartItem(
                order_id=order.id,
                channel_id=live.channel_id,
                name=live.title,
                image=live.image,
                price=price,
                quantity=live.quantity,
                product_id=live.product_id,
                variant_id=live.variant_id,
                error=error,
                owner_id=order.owner_id,
            )
            order.cart_items.append(cart_item)
            created.append(cart_item)
        self.db.flush()
        logger.info("Matched order %s to %d cart items", order.id, len(created))
        return created
