"""Explicit registry of in-process platform adapters.

A platform configuration refers to an in-process adapter by symbolic name
(e.g. ``"shopify"``). Adapters are registered at startup, either directly
or by importing the modules listed in ``adapters.modules``; nothing is
discovered from the filesystem.

An adapter is either a mapping of operation name to callable::

    registry.register("manual", {"createPurchaseFunction": create_purchase})

or any object exposing snake_case methods (``create_purchase``,
``get_product``, ...). Every adapter function is called as
``fn(platform_config, **args)`` and may be sync or async.
"""

import importlib
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from src.adapters.operations import Operation
from src.services.errors import AdapterNotFoundError

logger = logging.getLogger(__name__)

AdapterFunction = Callable[..., Any]


class AdapterRegistry:
    """Thread-safe mapping of adapter name to its operation implementations."""

    def __init__(self) -> None:
        self._adapters: dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, adapter: Mapping[str, AdapterFunction] | object) -> None:
        """Register (or replace) the adapter published under ``name``."""
        if not name:
            raise ValueError("Adapter name must be non-empty")
        with self._lock:
            if name in self._adapters:
                logger.warning("Replacing registered adapter %r", name)
            self._adapters[name] = adapter
        logger.info("Registered adapter %r", name)

    def unregister(self, name: str) -> bool:
        """Remove an adapter. Returns False if it was not registered."""
        with self._lock:
            return self._adapters.pop(name, None) is not None

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._adapters)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._adapters

    def resolve(self, name: str, operation: Operation | str) -> AdapterFunction:
        """Return the callable implementing ``operation`` in adapter ``name``.

        Raises:
            AdapterNotFoundError: If the adapter or the operation is missing.
        """
        op_name = operation.value if isinstance(operation, Operation) else operation
        with self._lock:
            adapter = self._adapters.get(name)
        if adapter is None:
            raise AdapterNotFoundError(op_name, name)

        if isinstance(adapter, Mapping):
            fn = adapter.get(op_name)
        else:
            try:
                attr = Operation(op_name).attr
            except ValueError:
                attr = op_name
            fn = getattr(adapter, attr, None)

        if fn is None or not callable(fn):
            raise AdapterNotFoundError(op_name, name)
        return fn


def load_adapter_modules(registry: AdapterRegistry, module_paths: list[str]) -> list[str]:
    """Import adapter modules and let each register itself.

    Each module must expose ``register(registry)``.

    Args:
        registry: Registry to populate.
        module_paths: Dotted module paths (e.g. ``"acme_adapters.shopify"``).

    Returns:
        The module paths that were loaded.

    Raises:
        ImportError: If a module cannot be imported.
        AttributeError: If a module has no ``register`` function.
    """
    loaded: list[str] = []
    for path in module_paths:
        module = importlib.import_module(path)
        register = getattr(module, "register", None)
        if register is None:
            raise AttributeError(f"Adapter module {path!r} has no register(registry) function")
        register(registry)
        loaded.append(path)
        logger.info("Loaded adapter module %s", path)
    return loaded


_default_registry = AdapterRegistry()


def get_adapter_registry() -> AdapterRegistry:
    """Return the process-wide registry populated at startup."""
    return _default_registry
