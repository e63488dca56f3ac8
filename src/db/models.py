"""SQLAlchemy ORM models for the OrderRelay state database.

This module defines storefronts (shops), fulfillment targets (channels),
their platform adapter configuration, orders with their line items and
cart items, the reusable match and link routing rules, and tracking
details. Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


# Enums matching the database schema constraints


class OrderStatus(str, Enum):
    """Status values for storefront orders.

    Lifecycle: PENDING -> AWAITING -> COMPLETE
               any -> CANCELLED (terminal)
    """

    PENDING = "PENDING"
    AWAITING = "AWAITING"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class CartItemStatus(str, Enum):
    """Status values for cart items (one line item routed to one channel)."""

    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class LinkMode(str, Enum):
    """How a shop walks its ranked links."""

    sequential = "sequential"
    simultaneous = "simultaneous"


class PlatformKind(str, Enum):
    """Which side of the routing a platform configuration serves."""

    shop = "shop"
    channel = "channel"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Association tables

match_inputs = Table(
    "match_inputs",
    Base.metadata,
    Column("match_id", String(36), ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True),
    Column("shop_item_id", String(36), ForeignKey("shop_items.id", ondelete="CASCADE"), primary_key=True),
)

match_outputs = Table(
    "match_outputs",
    Base.metadata,
    Column("match_id", String(36), ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True),
    Column("channel_item_id", String(36), ForeignKey("channel_items.id", ondelete="CASCADE"), primary_key=True),
)

tracking_detail_cart_items = Table(
    "tracking_detail_cart_items",
    Base.metadata,
    Column(
        "tracking_detail_id",
        String(36),
        ForeignKey("tracking_details.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("cart_item_id", String(36), ForeignKey("cart_items.id", ondelete="CASCADE"), primary_key=True),
)


def _load_json(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return value if isinstance(value, dict) else {}


# Models


class Platform(Base):
    """Adapter configuration shared by shops or channels of one platform.

    ``operations_json`` maps an adapter operation name (for example
    ``createPurchaseFunction``) to either an HTTP(S) URL or the symbolic
    name of an adapter registered in-process.

    Attributes:
        id: UUID primary key
        name: Display name (e.g. "Shopify")
        kind: 'shop' or 'channel'
        operations_json: JSON object of operation name -> adapter reference
        metadata_json: Extra keys merged into the adapter platform config
        webhook_secret: Shared secret used to verify signed webhooks
        app_key: OAuth client id
        app_secret: OAuth client secret
    """

    __tablename__ = "platforms"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    operations_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    webhook_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    app_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    app_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    @property
    def operations(self) -> dict[str, str]:
        """Parse operations_json into a dict."""
        return _load_json(self.operations_json)

    @operations.setter
    def operations(self, value: dict[str, str]) -> None:
        self.operations_json = json.dumps(value or {}, sort_keys=True)

    @property
    def extra(self) -> dict[str, Any]:
        """Parse metadata_json into a dict."""
        return _load_json(self.metadata_json)

    @extra.setter
    def extra(self, value: dict[str, Any]) -> None:
        self.metadata_json = json.dumps(value or {}, sort_keys=True)

    def __repr__(self) -> str:
        return f"<Platform(id={self.id!r}, name={self.name!r}, kind={self.kind!r})>"


class _Endpoint:
    """Fields and helpers shared by Shop and Channel."""

    def platform_config(self) -> dict[str, Any]:
        """Project this endpoint into the adapter ``platformConfig`` dict."""
        platform = self.platform  # type: ignore[attr-defined]
        config: dict[str, Any] = {}
        if platform is not None:
            config.update(platform.operations)
            config.update(platform.extra)
            if platform.app_key:
                config["appKey"] = platform.app_key
        config.update(_load_json(self.metadata_json))  # type: ignore[attr-defined]
        config["domain"] = self.domain  # type: ignore[attr-defined]
        config["accessToken"] = self.access_token  # type: ignore[attr-defined]
        return config


class Shop(_Endpoint, Base):
    """Storefront where sales originate.

    Attributes:
        id: UUID primary key
        name: Display name
        domain: Platform domain (e.g. "acme.myshopify.com")
        access_token: Current platform access token
        link_mode: 'sequential' or 'simultaneous'
        owner_id: Opaque identity of the owning account
        platform_id: Adapter configuration for this shop
    """

    __tablename__ = "shops"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    access_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    link_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LinkMode.sequential.value
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    platform_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("platforms.id", ondelete="SET NULL"), nullable=True
    )
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    platform: Mapped[Optional["Platform"]] = relationship("Platform")
    links: Mapped[list["Link"]] = relationship(
        "Link",
        back_populates="shop",
        cascade="all, delete-orphan",
        order_by="Link.rank",
    )
    orders: Mapped[list["Order"]] = relationship("Order", back_populates="shop")

    __table_args__ = (Index("idx_shops_owner", "owner_id"),)

    def __repr__(self) -> str:
        return f"<Shop(id={self.id!r}, name={self.name!r}, link_mode={self.link_mode!r})>"


class Channel(_Endpoint, Base):
    """Fulfillment target that receives purchases."""

    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    access_token: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    platform_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("platforms.id", ondelete="SET NULL"), nullable=True
    )
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    platform: Mapped[Optional["Platform"]] = relationship("Platform")

    __table_args__ = (Index("idx_channels_owner", "owner_id"),)

    def __repr__(self) -> str:
        return f"<Channel(id={self.id!r}, name={self.name!r})>"


class Order(Base):
    """A sale received on a shop.

    Attributes:
        id: UUID primary key
        order_id: Platform order identifier (unique per shop)
        order_name: Human-facing order name (e.g. "#1001")
        first_name..phone: Shipping projection fields
        total_price, subtotal_price, total_discounts, total_tax: Decimal totals
        link_order: Route through the shop's links on creation
        match_order: Route through saved matches on creation
        process_order: Place purchases after routing
        status: PENDING, AWAITING, COMPLETE or CANCELLED
        error: Diagnostic message when routing or placement needs attention
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    order_id: Mapped[str] = mapped_column(String(255), nullable=False)
    order_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Shipping
    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address1: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    address2: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    zip: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(2), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Totals
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    subtotal_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    total_discounts: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    total_tax: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Processing intents
    link_order: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    match_order: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    process_order: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value
    )
    error: Mapped[str] = mapped_column(Text, nullable=False, default="")

    shop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    shop: Mapped["Shop"] = relationship("Shop", back_populates="orders")
    line_items: Mapped[list["LineItem"]] = relationship(
        "LineItem", back_populates="order", cascade="all, delete-orphan"
    )
    cart_items: Mapped[list["CartItem"]] = relationship(
        "CartItem", back_populates="order", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_shop_order_id", "shop_id", "order_id"),
        Index("idx_orders_owner", "owner_id"),
    )

    def shipping_projection(self) -> dict[str, str]:
        """Shipping fields sent to create-purchase adapter operations."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address1": self.address1,
            "address2": self.address2,
            "city": self.city,
            "province": self.state,
            "zip": self.zip,
            "country": self.country,
            "phone": self.phone,
            "email": self.email,
            "currency": self.currency,
        }

    def __repr__(self) -> str:
        return f"<Order(id={self.id!r}, order_id={self.order_id!r}, status={self.status!r})>"


class LineItem(Base):
    """Immutable snapshot of what the buyer ordered."""

    __tablename__ = "line_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sku: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    line_item_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    order: Mapped["Order"] = relationship("Order", back_populates="line_items")

    __table_args__ = (Index("idx_line_items_order", "order_id"),)

    def __repr__(self) -> str:
        return (
            f"<LineItem(product_id={self.product_id!r}, "
            f"variant_id={self.variant_id!r}, quantity={self.quantity!r})>"
        )


class CartItem(Base):
    """One line item's allocation to one channel, and its placement outcome.

    Attributes:
        url: Purchase URL on the channel after placement
        purchase_id: Channel purchase identifier after placement
        error: Placement error or price-change warning (empty when none)
        status: PENDING or CANCELLED
    """

    __tablename__ = "cart_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    channel_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sku: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    line_item_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Placement outcome
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    purchase_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    error: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CartItemStatus.PENDING.value
    )

    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    order: Mapped["Order"] = relationship("Order", back_populates="cart_items")
    channel: Mapped["Channel"] = relationship("Channel")
    tracking_details: Mapped[list["TrackingDetail"]] = relationship(
        "TrackingDetail",
        secondary=tracking_detail_cart_items,
        back_populates="cart_items",
    )

    __table_args__ = (
        Index("idx_cart_items_order", "order_id"),
        Index("idx_cart_items_purchase", "purchase_id"),
    )

    @property
    def is_placed(self) -> bool:
        """True once the channel has acknowledged a purchase for this item."""
        return bool(self.purchase_id or self.url)

    @property
    def is_cancelled(self) -> bool:
        return self.status == CartItemStatus.CANCELLED.value

    def __repr__(self) -> str:
        return (
            f"<CartItem(id={self.id!r}, channel_id={self.channel_id!r}, "
            f"purchase_id={self.purchase_id!r}, status={self.status!r})>"
        )


class ShopItem(Base):
    """Reusable fingerprint of a shop-side (product, variant, quantity) tuple."""

    __tablename__ = "shop_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    shop_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=True
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    shop: Mapped[Optional["Shop"]] = relationship("Shop")

    # Lookup index only: concurrent creators may race to near-duplicates.
    __table_args__ = (
        Index(
            "idx_shop_items_fingerprint",
            "owner_id", "product_id", "variant_id", "quantity", "shop_id",
        ),
    )

    def fingerprint(self) -> tuple[str, str, int]:
        return (self.product_id, self.variant_id, self.quantity)

    def __repr__(self) -> str:
        return f"<ShopItem(product_id={self.product_id!r}, variant_id={self.variant_id!r})>"


class ChannelItem(Base):
    """Reusable fingerprint of a channel-side tuple, with its saved price."""

    __tablename__ = "channel_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    channel_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    channel: Mapped["Channel"] = relationship("Channel")

    __table_args__ = (
        Index(
            "idx_channel_items_fingerprint",
            "owner_id", "product_id", "variant_id", "quantity", "channel_id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ChannelItem(product_id={self.product_id!r}, "
            f"variant_id={self.variant_id!r}, channel_id={self.channel_id!r})>"
        )


class Match(Base):
    """Saved mapping from a set of shop items to a set of channel items."""

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    inputs: Mapped[list["ShopItem"]] = relationship(
        "ShopItem", secondary=match_inputs
    )
    outputs: Mapped[list["ChannelItem"]] = relationship(
        "ChannelItem", secondary=match_outputs
    )

    __table_args__ = (Index("idx_matches_owner", "owner_id"),)

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id!r}, inputs={len(self.inputs)}, "
            f"outputs={len(self.outputs)})>"
        )


class Link(Base):
    """Ranked routing rule sending a shop's orders to one channel.

    ``rank`` is assigned on creation and never reordered; lower ranks are
    evaluated first. ``filters_json`` holds the where-clause predicate.
    """

    __tablename__ = "links"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    filters_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    shop_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shops.id", ondelete="CASCADE"), nullable=False
    )
    channel_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    shop: Mapped["Shop"] = relationship("Shop", back_populates="links")
    channel: Mapped["Channel"] = relationship("Channel")

    __table_args__ = (Index("idx_links_shop_rank", "shop_id", "rank"),)

    @property
    def filters(self) -> dict[str, Any]:
        """Parse filters_json into a where-clause dict."""
        return _load_json(self.filters_json)

    @filters.setter
    def filters(self, value: dict[str, Any]) -> None:
        self.filters_json = json.dumps(value or {}, sort_keys=True)

    def __repr__(self) -> str:
        return f"<Link(id={self.id!r}, rank={self.rank!r}, channel_id={self.channel_id!r})>"


class TrackingDetail(Base):
    """Tracking number reported by a channel for one or more cart items."""

    __tablename__ = "tracking_details"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    tracking_company: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    tracking_number: Mapped[str] = mapped_column(String(255), nullable=False)
    tracking_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    purchase_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    cart_items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        secondary=tracking_detail_cart_items,
        back_populates="tracking_details",
    )

    __table_args__ = (Index("idx_tracking_details_purchase", "purchase_id"),)

    def __repr__(self) -> str:
        return (
            f"<TrackingDetail(tracking_number={self.tracking_number!r}, "
            f"purchase_id={self.purchase_id!r})>"
        )
