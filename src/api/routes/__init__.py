"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import (
    links,
    matches,
    oauth,
    orders,
    platform_operations,
    platforms,
    webhooks,
)

__all__ = [
    "links",
    "matches",
    "oauth",
    "orders",
    "platform_operations",
    "platforms",
    "webhooks",
]
