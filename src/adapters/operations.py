"""Adapter operation names.

The values are the keys a platform configuration uses to point an
operation at either an HTTP(S) URL or a registered adapter name. In-process
adapter objects implement the snake_case ``attr`` of each operation.
"""

import re
from enum import Enum


class Operation(str, Enum):
    """Every operation the engine can ask a platform adapter to perform."""

    # Shared
    SEARCH_PRODUCTS = "searchProductsFunction"
    GET_PRODUCT = "getProductFunction"
    CREATE_WEBHOOK = "createWebhookFunction"
    DELETE_WEBHOOK = "deleteWebhookFunction"
    GET_WEBHOOKS = "getWebhooksFunction"
    OAUTH = "oAuthFunction"
    OAUTH_CALLBACK = "oAuthCallbackFunction"

    # Channel (fulfillment) side
    CREATE_PURCHASE = "createPurchaseFunction"
    CANCEL_PURCHASE = "cancelPurchaseFunction"
    CREATE_TRACKING_WEBHOOK_HANDLER = "createTrackingWebhookHandler"
    CANCEL_PURCHASE_WEBHOOK_HANDLER = "cancelPurchaseWebhookHandler"

    # Shop (storefront) side
    SEARCH_ORDERS = "searchOrdersFunction"
    UPDATE_PRODUCT = "updateProductFunction"
    ADD_TRACKING = "addTrackingFunction"
    ADD_CART_TO_PLATFORM_ORDER = "addCartToPlatformOrderFunction"
    CREATE_ORDER_WEBHOOK_HANDLER = "createOrderWebhookHandler"
    CANCEL_ORDER_WEBHOOK_HANDLER = "cancelOrderWebhookHandler"

    @property
    def attr(self) -> str:
        """Python attribute name, e.g. ``createPurchaseFunction`` -> ``create_purchase``."""
        name = re.sub(r"Function$", "", self.value)
        name = name.replace("oAuth", "oauth")
        return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


CHANNEL_OPERATIONS: frozenset[Operation] = frozenset({
    Operation.SEARCH_PRODUCTS,
    Operation.GET_PRODUCT,
    Operation.CREATE_PURCHASE,
    Operation.CANCEL_PURCHASE,
    Operation.CREATE_WEBHOOK,
    Operation.DELETE_WEBHOOK,
    Operation.GET_WEBHOOKS,
    Operation.OAUTH,
    Operation.OAUTH_CALLBACK,
    Operation.CREATE_TRACKING_WEBHOOK_HANDLER,
    Operation.CANCEL_PURCHASE_WEBHOOK_HANDLER,
})

SHOP_OPERATIONS: frozenset[Operation] = frozenset({
    Operation.SEARCH_PRODUCTS,
    Operation.GET_PRODUCT,
    Operation.SEARCH_ORDERS,
    Operation.UPDATE_PRODUCT,
    Operation.CREATE_WEBHOOK,
    Operation.DELETE_WEBHOOK,
    Operation.GET_WEBHOOKS,
    Operation.OAUTH,
    Operation.OAUTH_CALLBACK,
    Operation.CREATE_ORDER_WEBHOOK_HANDLER,
    Operation.CANCEL_ORDER_WEBHOOK_HANDLER,
    Operation.ADD_TRACKING,
    Operation.ADD_CART_TO_PLATFORM_ORDER,
})
