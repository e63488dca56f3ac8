"""Shared service-layer error types.

Adapter and webhook errors used across the executor, the webhook
normalizer, placement and the API layer. Centralised here to avoid
circular imports between service modules.
"""


class AdapterError(Exception):
    """Base class for adapter invocation failures.

    Attributes:
        code: OrderRelay error code (E-XXXX format)
        operation: Adapter operation name (e.g. createPurchaseFunction)
        target: URL or registered adapter name the operation resolved to
    """

    code = "E-3003"

    def __init__(self, message: str, operation: str = "", target: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.target = target

    def __str__(self) -> str:
        return self.message


class AdapterNotFoundError(AdapterError):
    """No adapter is configured or registered for the operation."""

    code = "E-3001"

    def __init__(self, operation: str, target: str = "") -> None:
        if target:
            message = f"Function {operation} not found in adapter {target}"
        else:
            message = f"Platform configuration has no {operation}"
        super().__init__(message, operation=operation, target=target)


class AdapterHttpError(AdapterError):
    """Remote adapter endpoint answered with a non-2xx status.

    Attributes:
        status: HTTP status code
        body: Response body text (truncated)
    """

    code = "E-3002"

    def __init__(self, operation: str, target: str, status: int, body: str) -> None:
        self.status = status
        self.body = body[:2000]
        super().__init__(
            f"HTTP request failed: {status} {self.body}".strip(),
            operation=operation,
            target=target,
        )


class AdapterExecutionError(AdapterError):
    """An in-process adapter function raised.

    Attributes:
        cause: The original exception
    """

    code = "E-3003"

    def __init__(self, operation: str, target: str, cause: BaseException) -> None:
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(
            f"Error executing {operation} for platform {target}: {detail}",
            operation=operation,
            target=target,
        )


class WebhookError(Exception):
    """Base class for rejected webhook deliveries."""

    code = "E-2001"

    def __init__(self, message: str, platform: str = "") -> None:
        super().__init__(message)
        self.platform = platform


class WebhookSignatureError(WebhookError):
    """Missing or invalid signature. The event must not be processed."""

    code = "E-5002"

    def __init__(self, message: str, platform: str = "", missing: bool = False) -> None:
        super().__init__(message, platform=platform)
        self.missing = missing
        if missing:
            self.code = "E-5001"


class WebhookPayloadError(WebhookError):
    """Payload could not be parsed into a canonical event."""
