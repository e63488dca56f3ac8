"""Platform, shop and channel registration.

Platforms carry the adapter operation map and webhook secret; shops and
channels are the concrete endpoints (domain + access token) that use them.
"""

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.adapters.operations import CHANNEL_OPERATIONS, SHOP_OPERATIONS
from src.db.models import Channel, LinkMode, Platform, PlatformKind, Shop
from src.errors.domain import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class PlatformService:
    """CRUD for platforms and the shops/channels attached to them.

    Attributes:
        db: SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_platform(
        self,
        name: str,
        kind: PlatformKind | str,
        operations: dict[str, str] | None = None,
        metadata: dict[str, Any] | None = None,
        webhook_secret: str | None = None,
        app_key: str | None = None,
        app_secret: str | None = None,
    ) -> Platform:
        """Register a platform configuration.

        Raises:
            ValidationError: Unknown kind, or an operation that does not
                belong to that side of the routing.
        """
        try:
            kind = PlatformKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown platform kind '{kind}'") from None

        allowed = SHOP_OPERATIONS if kind == PlatformKind.shop else CHANNEL_OPERATIONS
        allowed_names = {op.value for op in allowed}
        for op_name, reference in (operations or {}).items():
            if op_name not in allowed_names:
                raise ValidationError(f"Operation '{op_name}' is not valid for a {kind.value} platform")
            if not reference:
                raise ValidationError(f"Operation '{op_name}' has an empty adapter reference")

        platform = Platform(
            name=name,
            kind=kind.value,
            webhook_secret=webhook_secret,
            app_key=app_key,
            app_secret=app_secret,
        )
        platform.operations = operations or {}
        platform.extra = metadata or {}
        self.db.add(platform)
        self.db.flush()
        logger.info("Registered %s platform %s (%s)", kind.value, platform.id, name)
        return platform

    def get_platform(self, platform_id: str) -> Platform:
        platform = self.db.get(Platform, platform_id)
        if platform is None:
            raise NotFoundError("Platform", platform_id)
        return platform

    def list_platforms(self, kind: PlatformKind | str | None = None) -> list[Platform]:
        stmt = select(Platform).order_by(Platform.created_at.asc())
        if kind is not None:
            stmt = stmt.where(Platform.kind == PlatformKind(kind).value)
        return list(self.db.execute(stmt).scalars().all())

    def platform_config(self, platform: Platform, domain: str = "") -> dict[str, Any]:
        """Adapter config for calls made before any shop/channel exists (OAuth)."""
        config: dict[str, Any] = {**platform.operations, **platform.extra, "domain": domain}
        if platform.app_key:
            config["appKey"] = platform.app_key
        return config

    def _check_platform(self, platform_id: str | None, kind: PlatformKind) -> None:
        if platform_id is None:
            return
        platform = self.get_platform(platform_id)
        if platform.kind != kind.value:
            raise ValidationError(
                f"Platform {platform_id} is a {platform.kind} platform, not a {kind.value} platform"
            )

    def create_shop(
        self,
        name: str,
        owner_id: str,
        domain: str = "",
        access_token: str = "",
        link_mode: LinkMode | str = LinkMode.sequential,
        platform_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Shop:
        self._check_platform(platform_id, PlatformKind.shop)
        shop = Shop(
            name=name,
            owner_id=owner_id,
            domain=domain,
            access_token=access_token,
            link_mode=LinkMode(link_mode).value,
            platform_id=platform_id,
        )
        shop.metadata_json = json.dumps(metadata or {}, sort_keys=True)
        self.db.add(shop)
        self.db.flush()
        return shop

    def get_shop(self, shop_id: str) -> Shop:
        shop = self.db.get(Shop, shop_id)
        if shop is None:
            raise NotFoundError("Shop", shop_id)
        return shop

    def list_shops(self, owner_id: str | None = None) -> list[Shop]:
        stmt = select(Shop).order_by(Shop.created_at.asc())
        if owner_id is not None:
            stmt = stmt.where(Shop.owner_id == owner_id)
        return list(self.db.execute(stmt).scalars().all())

    def create_channel(
        self,
        name: str,
        owner_id: str,
        domain: str = "",
        access_token: str = "",
        platform_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Channel:
        self._check_platform(platform_id, PlatformKind.channel)
        channel = Channel(
            name=name,
            owner_id=owner_id,
            domain=domain,
            access_token=access_token,
            platform_id=platform_id,
        )
        channel.metadata_json = json.dumps(metadata or {}, sort_keys=True)
        self.db.add(channel)
        self.db.flush()
        return channel

    def get_channel(self, channel_id: str) -> Channel:
        channel = self.db.get(Channel, channel_id)
        if channel is None:
            raise NotFoundError("Channel", channel_id)
        return channel

    def list_channels(self, owner_id: str | None = None) -> list[Channel]:
        stmt = select(Channel).order_by(Channel.created_at.asc())
        if owner_id is not None:
            stmt = stmt.where(Channel.owner_id == owner_id)
        return list(self.db.execute(stmt).scalars().all())


def webhook_format(platform: Platform) -> str:
    """Which webhook normalizer a platform's deliveries use.

    ``metadata.webhookFormat`` overrides the lowercased platform name.
    """
    return str(platform.extra.get("webhookFormat") or platform.name).lower()

