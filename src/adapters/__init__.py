"""Platform adapter contract, registry and executor."""

from src.adapters.executor import AdapterExecutor, AdapterTarget, get_adapter_executor
from src.adapters.operations import CHANNEL_OPERATIONS, SHOP_OPERATIONS, Operation
from src.adapters.registry import (
    AdapterRegistry,
    get_adapter_registry,
    load_adapter_modules,
)

__all__ = [
    "AdapterExecutor",
    "AdapterTarget",
    "AdapterRegistry",
    "Operation",
    "CHANNEL_OPERATIONS",
    "SHOP_OPERATIONS",
    "get_adapter_executor",
    "get_adapter_registry",
    "load_adapter_modules",
]
