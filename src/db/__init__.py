"""Database module for OrderRelay state management and persistence."""

from src.db.connection import (
    SessionLocal,
    async_engine,
    async_init_db,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from src.db.models import (
    CartItem,
    CartItemStatus,
    Channel,
    ChannelItem,
    LineItem,
    Link,
    LinkMode,
    Match,
    Order,
    OrderStatus,
    Platform,
    PlatformKind,
    Shop,
    ShopItem,
    TrackingDetail,
)

__all__ = [
    # Models
    "Platform",
    "Shop",
    "Channel",
    "Order",
    "LineItem",
    "CartItem",
    "ShopItem",
    "ChannelItem",
    "Match",
    "Link",
    "TrackingDetail",
    # Enums
    "OrderStatus",
    "CartItemStatus",
    "LinkMode",
    "PlatformKind",
    # Connection
    "engine",
    "async_engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "async_init_db",
]
