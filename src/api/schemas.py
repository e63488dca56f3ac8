"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the OrderRelay REST API:
platforms, shops and channels, orders and their cart items, matches,
links, OAuth and error responses.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.webhooks.events import NormalizedLineItem, ShippingAddress

# Enums for API validation


class OrderStatusEnum(str, Enum):
    """Valid order status values for API filters."""

    PENDING = "PENDING"
    AWAITING = "AWAITING"
    COMPLETE = "COMPLETE"
    CANCELLED = "CANCELLED"


class LinkModeEnum(str, Enum):
    sequential = "sequential"
    simultaneous = "simultaneous"


class PlatformKindEnum(str, Enum):
    shop = "shop"
    channel = "channel"


# Platform / shop / channel schemas


class PlatformCreate(BaseModel):
    """Request schema for registering a platform configuration."""

    name: str = Field(..., min_length=1, max_length=255)
    kind: PlatformKindEnum
    operations: dict[str, str] = Field(
        default_factory=dict,
        description="Operation name -> HTTP(S) URL or registered adapter name",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    webhook_secret: str | None = None
    app_key: str | None = None
    app_secret: str | None = None


class PlatformResponse(BaseModel):
    """Platform configuration. Secrets are never returned."""

    id: str
    name: str
    kind: str
    operations: dict[str, str]
    has_webhook_secret: bool
    created_at: str


class ShopCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    domain: str = ""
    access_token: str = ""
    link_mode: LinkModeEnum = LinkModeEnum.sequential
    owner_id: str = Field(..., min_length=1)
    platform_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    domain: str = ""
    access_token: str = ""
    owner_id: str = Field(..., min_length=1)
    platform_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class EndpointResponse(BaseModel):
    """Shop or channel. The access token is never returned."""

    id: str
    name: str
    domain: str
    owner_id: str
    platform_id: str | None = None
    link_mode: str | None = None
    created_at: str

    model_config = ConfigDict(from_attributes=True)


# Order schemas


class OrderCreate(BaseModel):
    """Request schema for creating an order manually."""

    shop_id: str
    order_id: str = Field(..., min_length=1)
    order_name: str = ""
    email: str = ""
    shipping: ShippingAddress = ShippingAddress()
    currency: str = "USD"
    total_price: Decimal = Decimal("0.00")
    subtotal_price: Decimal = Decimal("0.00")
    total_discounts: Decimal = Decimal("0.00")
    total_tax: Decimal = Decimal("0.00")
    line_items: list[NormalizedLineItem] = Field(default_factory=list)
    link_order: bool = True
    match_order: bool = True
    process_order: bool = True


class CartItemCreate(BaseModel):
    channel_id: str
    product_id: str = Field(..., min_length=1)
    variant_id: str = ""
    quantity: int = Field(1, ge=1)
    price: Decimal | None = None
    name: str = ""
    image: str | None = None
    sku: str = ""
    line_item_id: str = ""


class LineItemResponse(BaseModel):
    id: str
    name: str
    image: str | None = None
    price: Decimal | None = None
    quantity: int
    product_id: str
    variant_id: str
    sku: str
    line_item_id: str

    model_config = ConfigDict(from_attributes=True)


class TrackingDetailResponse(BaseModel):
    id: str
    tracking_company: str
    tracking_number: str
    tracking_url: str
    purchase_id: str

    model_config = ConfigDict(from_attributes=True)


class CartItemResponse(BaseModel):
    id: str
    channel_id: str
    name: str
    image: str | None = None
    price: Decimal | None = None
    quantity: int
    product_id: str
    variant_id: str
    sku: str
    url: str
    purchase_id: str
    error: str
    status: str
    tracking_details: list[TrackingDetailResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: str
    order_id: str
    order_name: str
    email: str
    first_name: str
    last_name: str
    address1: str
    address2: str
    city: str
    state: str
    zip: str
    country: str
    phone: str
    currency: str
    total_price: Decimal | None = None
    subtotal_price: Decimal | None = None
    total_discounts: Decimal | None = None
    total_tax: Decimal | None = None
    link_order: bool
    match_order: bool
    process_order: bool
    status: str
    error: str
    shop_id: str
    created_at: str
    updated_at: str
    line_items: list[LineItemResponse] = []
    cart_items: list[CartItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderSummaryResponse(BaseModel):
    id: str
    order_id: str
    order_name: str
    status: str
    error: str
    shop_id: str
    created_at: str

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    total: int


class BulkPlaceRequest(BaseModel):
    order_ids: list[str] = Field(..., min_length=1)


class TargetOutcomeResponse(BaseModel):
    channel_id: str
    cart_item_ids: list[str]
    purchase_id: str
    url: str
    error: str


class PlacementResponse(BaseModel):
    order_id: str
    status: str
    placed: int
    failed: int
    remaining: int
    targets: list[TargetOutcomeResponse] = []
    error: str = ""
    error_code: str | None = None


# Platform operation schemas


class ProductUpdateRequest(BaseModel):
    variant_id: str = ""
    price: Decimal | None = None
    inventory: int | None = None


class WebhookCreateRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)
    events: list[str] = Field(..., min_length=1)


# Match schemas


class ShopItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    variant_id: str = ""
    quantity: int = Field(1, ge=1)
    shop_id: str | None = None


class ChannelItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    variant_id: str = ""
    quantity: int = Field(1, ge=1)
    channel_id: str
    price: Decimal | None = None


class MatchCreate(BaseModel):
    owner_id: str = Field(..., min_length=1)
    inputs: list[ShopItemIn] = Field(..., min_length=1)
    outputs: list[ChannelItemIn] = Field(..., min_length=1)


class MatchUpdate(BaseModel):
    inputs: list[ShopItemIn] | None = None
    outputs: list[ChannelItemIn] | None = None


class MatchPreviewRequest(BaseModel):
    owner_id: str = Field(..., min_length=1)
    items: list[ShopItemIn] = Field(..., min_length=1)


class ShopItemResponse(BaseModel):
    id: str
    product_id: str
    variant_id: str
    quantity: int
    shop_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ChannelItemResponse(BaseModel):
    id: str
    product_id: str
    variant_id: str
    quantity: int
    price: Decimal | None = None
    channel_id: str

    model_config = ConfigDict(from_attributes=True)


class MatchResponse(BaseModel):
    id: str
    owner_id: str
    inputs: list[ShopItemResponse]
    outputs: list[ChannelItemResponse]
    created_at: str
    updated_at: str

    model_config = ConfigDict(from_attributes=True)


class MatchListResponse(BaseModel):
    matches: list[MatchResponse]
    total: int


class LiveOutputResponse(BaseModel):
    channel_item_id: str
    channel_id: str
    product_id: str
    variant_id: str
    quantity: int
    saved_price: Decimal | None = None
    current_price: Decimal | None = None
    price_changed: bool
    title: str
    image: str | None = None
    inventory: int | None = None
    error: str

    model_config = ConfigDict(from_attributes=True)


class InventorySyncResponse(BaseModel):
    source_quantity: int | None = None
    target_quantity: int | None = None
    sync_needed: bool

    model_config = ConfigDict(from_attributes=True)


class LiveDetailsResponse(BaseModel):
    match_id: str | None = None
    outputs: list[LiveOutputResponse]
    inventory_sync: InventorySyncResponse | None = None

    model_config = ConfigDict(from_attributes=True)


# Link schemas


class LinkCreate(BaseModel):
    shop_id: str
    channel_id: str
    filters: dict[str, Any] = Field(default_factory=dict)


class LinkFiltersUpdate(BaseModel):
    filters: dict[str, Any] = Field(default_factory=dict)


class LinkResponse(BaseModel):
    id: str
    rank: int
    shop_id: str
    channel_id: str
    filters: dict[str, Any]
    created_at: str

    model_config = ConfigDict(from_attributes=True)


# OAuth schemas


class OAuthStartRequest(BaseModel):
    platform_id: str
    redirect_uri: str = Field(..., min_length=1)
    domain: str = ""


class OAuthStartResponse(BaseModel):
    state: str
    authorization_url: str

    model_config = ConfigDict(from_attributes=True)


# Error response schema


class ErrorResponse(BaseModel):
    """Standard error response."""

    error_code: str
    message: str
    remediation: str | None = None
