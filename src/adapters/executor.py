"""Uniform invocation of adapter operations.

``platform_config[operation]`` is either an HTTP(S) URL or the symbolic
name of an adapter in the ``AdapterRegistry``. The rest of the engine calls
``invoke`` and never branches on which one it is.

URL targets receive ``POST <url>`` with JSON body
``{"platformConfig": platform_config, **args}`` and must answer 2xx with a
JSON body. Argument keys go over the wire in camelCase (``cart_items`` ->
``cartItems``, nested keys too); ``platformConfig`` is sent as stored.
In-process targets are called as ``fn(platform_config, **args)`` with the
snake_case keys.

Example:
    executor = AdapterExecutor(get_adapter_registry())
    result = await executor.invoke(
        channel.platform_config(),
        Operation.GET_PRODUCT,
        {"product_id": "123", "variant_id": "456"},
        timeout=30,
    )
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from src.adapters.operations import Operation
from src.adapters.registry import AdapterFunction, AdapterRegistry, get_adapter_registry
from src.services.errors import (
    AdapterError,
    AdapterExecutionError,
    AdapterHttpError,
    AdapterNotFoundError,
)
from src.utils.redaction import redact_secrets

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_jsonable(value: Any) -> Any:
    """Round-trip through JSON so Decimals and tuples become wire types."""
    return json.loads(json.dumps(value, default=_json_default))


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camelize_keys(value: Any) -> Any:
    """Rename dict keys to camelCase at every depth. Values are left alone."""
    if isinstance(value, dict):
        return {camel_case(str(k)): camelize_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize_keys(v) for v in value]
    return value


def is_url(reference: str) -> bool:
    return reference.startswith(("http://", "https://"))


@dataclass(frozen=True)
class AdapterTarget:
    """Where one operation of one platform config resolves to."""

    operation: str
    reference: str
    function: AdapterFunction | None = None

    @property
    def is_http(self) -> bool:
        return self.function is None


class AdapterExecutor:
    """Invoke adapter operations against registered modules or HTTP endpoints.

    No retries happen here. ``timeout`` (per call, or the executor default)
    bounds the wait; a timeout surfaces as ``TimeoutError`` or an
    ``httpx.TimeoutException`` and leaves the remote outcome unknown.

    Attributes:
        _registry: In-process adapter registry
        _client: Optional shared httpx.AsyncClient
        _default_timeout: Seconds applied when invoke() gets no timeout
    """

    def __init__(
        self,
        registry: AdapterRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self._registry = registry if registry is not None else get_adapter_registry()
        self._client = client
        self._default_timeout = default_timeout

    @property
    def registry(self) -> AdapterRegistry:
        return self._registry

    def resolve_target(
        self, platform_config: dict[str, Any], operation: Operation | str
    ) -> AdapterTarget:
        """Resolve an operation without invoking it.

        Raises:
            AdapterNotFoundError: If the config has no reference for the
                operation, or names an adapter/operation not registered.
        """
        op_name = operation.value if isinstance(operation, Operation) else operation
        reference = platform_config.get(op_name)
        if not reference or not isinstance(reference, str):
            raise AdapterNotFoundError(op_name)
        if is_url(reference):
            return AdapterTarget(operation=op_name, reference=reference)
        return AdapterTarget(
            operation=op_name,
            reference=reference,
            function=self._registry.resolve(reference, op_name),
        )

    async def invoke(
        self,
        platform_config: dict[str, Any],
        operation: Operation | str,
        args: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Run one adapter operation and return its JSON-like result.

        Args:
            platform_config: Projection of the shop/channel and its platform.
            operation: Operation name to run.
            args: Operation arguments (snake_case keys).
            timeout: Seconds to wait; defaults to the executor's default.

        Returns:
            The adapter's result (dict for most operations).

        Raises:
            AdapterNotFoundError: Misconfiguration; nothing was invoked.
            AdapterHttpError: URL target answered non-2xx.
            AdapterExecutionError: In-process function raised.
        """
        target = self.resolve_target(platform_config, operation)
        call_args = dict(args or {})
        effective_timeout = timeout if timeout is not None else self._default_timeout

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Invoking %s via %s args=%s",
                target.operation,
                target.reference,
                redact_secrets(to_jsonable(call_args)),
            )

        if target.is_http:
            call = self._post(target, platform_config, call_args, effective_timeout)
        else:
            call = self._call(target, platform_config, call_args)

        if effective_timeout:
            return await asyncio.wait_for(call, timeout=effective_timeout)
        return await call

    async def _post(
        self,
        target: AdapterTarget,
        platform_config: dict[str, Any],
        args: dict[str, Any],
        timeout: float | None,
    ) -> Any:
        body = to_jsonable({"platformConfig": platform_config, **camelize_keys(args)})
        if self._client is not None:
            response = await self._client.post(target.reference, json=body, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(target.reference, json=body)

        if not response.is_success:
            logger.warning(
                "Adapter endpoint %s returned %d for %s",
                target.reference,
                response.status_code,
                target.operation,
            )
            raise AdapterHttpError(
                target.operation, target.reference, response.status_code, response.text
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise AdapterExecutionError(target.operation, target.reference, e) from e

    async def _call(
        self,
        target: AdapterTarget,
        platform_config: dict[str, Any],
        args: dict[str, Any],
    ) -> Any:
        assert target.function is not None
        try:
            result = target.function(platform_config, **args)
            if inspect.isawaitable(result):
                result = await result
        except AdapterError:
            raise
        except Exception as e:
            logger.warning(
                "Adapter %s raised in %s: %s", target.reference, target.operation, e
            )
            raise AdapterExecutionError(target.operation, target.reference, e) from e
        return result


_default_executor: AdapterExecutor | None = None


def get_adapter_executor() -> AdapterExecutor:
    """Return the process-wide executor (FastAPI dependency)."""
    global _default_executor
    if _default_executor is None:
        from src.cli.config import get_settings

        _default_executor = AdapterExecutor(
            get_adapter_registry(),
            default_timeout=get_settings().adapters.http_timeout_seconds,
        )
    return _default_executor
