"""Link resolver: ranked routing rules from a shop to channels.

Sequential shops route the whole order to the first link (lowest rank)
whose filter matches. Simultaneous shops copy the order's line items to
every matching link's channel.
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.db.models import CartItem, Channel, Link, LinkMode, Order, Shop
from src.errors.domain import NotFoundError, ValidationError
from src.services.link_filters import evaluate_filter, validate_filter

logger = logging.getLogger(__name__)


class LinkService:
    """Service for link CRUD and link-based order routing.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_link(
        self,
        shop_id: str,
        channel_id: str,
        filters: dict[str, Any] | None = None,
        owner_id: str | None = None,
    ) -> Link:
        """Append a link to the shop's ranking.

        The rank is one past the shop's current highest rank and never
        changes afterwards.

        Raises:
            NotFoundError: Shop or channel does not exist.
            LinkFilterError: The filter references unknown fields/operators.
        """
        shop = self.db.get(Shop, shop_id)
        if shop is None:
            raise NotFoundError("Shop", shop_id)
        if self.db.get(Channel, channel_id) is None:
            raise NotFoundError("Channel", channel_id)
        validate_filter(filters or {})

        max_rank = self.db.execute(
            select(func.max(Link.rank)).where(Link.shop_id == shop_id)
        ).scalar()
        link = Link(
            channel_id=channel_id,
            rank=(max_rank or 0) + 1,
            owner_id=owner_id or shop.owner_id,
        )
        link.filters = filters or {}
        shop.links.append(link)
        self.db.flush()
        logger.info("Created link %s (shop=%s rank=%d)", link.id, shop_id, link.rank)
        return link

    def list_links(self, shop_id: str) -> list[Link]:
        return list(
            self.db.execute(
                select(Link).where(Link.shop_id == shop_id).order_by(Link.rank.asc())
            ).scalars().all()
        )

    def get_link(self, link_id: str) -> Link:
        link = self.db.get(Link, link_id)
        if link is None:
            raise NotFoundError("Link", link_id)
        return link

    def update_filters(self, link_id: str, filters: dict[str, Any] | None) -> Link:
        link = self.get_link(link_id)
        validate_filter(filters or {})
        link.filters = filters or {}
        self.db.flush()
        return link

    def delete_link(self, link_id: str) -> None:
        link = self.get_link(link_id)
        self.db.delete(link)
        self.db.flush()

    def resolve(self, order: Order) -> list[Link]:
        """Return the links that receive ``order``, in rank order.

        Sequential mode returns at most one link; simultaneous mode every
        link whose filter matches. An empty list means nothing matched.
        """
        shop = order.shop
        links = sorted(shop.links, key=lambda link: link.rank)
        sequential = shop.link_mode != LinkMode.simultaneous.value

        matched: list[Link] = []
        for link in links:
            if evaluate_filter(link.filters, order):
                matched.append(link)
                if sequential:
                    break
        logger.debug(
            "Order %s matched links %s (%s)",
            order.id,
            [link.rank for link in matched],
            shop.link_mode,
        )
        return matched

    def materialize_cart_items(self, order: Order, links: list[Link]) -> list[CartItem]:
        """Copy every line item to each link's channel as a cart item."""
        if not links:
            raise ValidationError(f"No links given for order {order.id}")
        created: list[CartItem] = []
        for link in links:
            for line_item in order.line_items:
                cart_item = CartItem(
                    order_id=order.id,
                    channel_id=link.channel_id,
                    name=line_item.name,
                    image=line_item.image,
                    price=line_item.price,
                    quantity=line_item.quantity,
                    product_id=line_item.product_id,
                    variant_id=line_item.variant_id,
                    sku=line_item.sku,
                    line_item_id=line_item.line_item_id,
                    owner_id=order.owner_id,
                )
                order.cart_items.append(cart_item)
                created.append(cart_item)
        self.db.flush()
        logger.info(
            "Linked order %s to %d channel(s), %d cart items",
            order.id,
            len({link.channel_id for link in links}),
            len(created),
        )
        return created
