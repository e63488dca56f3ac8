"""FastAPI application for the OrderRelay API.

Provides the main application instance with routers and exception
handlers configured. Adapter modules listed in the configuration are
imported at startup so in-process adapters can be resolved by name.
"""

import logging
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import Any

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.responses import JSONResponse

from src.adapters.registry import get_adapter_registry, load_adapter_modules
from src.api.routes import (
    links,
    matches,
    oauth,
    orders,
    platform_operations,
    platforms,
    webhooks,
)
from src.cli.config import get_settings
from src.db.connection import async_init_db, close_async_db
from src.errors import OrderRelayError, get_error
from src.errors.domain import (
    ConflictError,
    DomainError,
    MatchError,
    NotFoundError,
    ValidationError,
)
from src.services.errors import (
    AdapterError,
    AdapterNotFoundError,
    WebhookError,
    WebhookSignatureError,
)
from src.services.order_status import InvalidStateTransition

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: create tables and load adapter modules."""
    global _startup_time

    _startup_time = _time.time()
    await async_init_db()

    settings = get_settings()
    if settings.adapters.modules:
        loaded = load_adapter_modules(get_adapter_registry(), settings.adapters.modules)
        logger.info("Loaded %d adapter module(s)", len(loaded))
    if settings.webhooks.allow_unverified:
        logger.warning(
            "Unsigned webhooks are accepted for platforms without a webhook secret. "
            "Do not use this setting in production."
        )

    yield

    await close_async_db()


app = FastAPI(
    title="OrderRelay API",
    description="Order routing between storefronts and fulfillment channels",
    version="0.1.0",
    lifespan=lifespan,
)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    error_def = get_error(code)
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": code,
            "message": message,
            "remediation": error_def.remediation if error_def else None,
        },
    )


def _domain_status(exc: DomainError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, MatchError):
        return 422
    return 500


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map typed domain errors to 4xx responses.

    Args:
        request: The incoming request.
        exc: The domain exception.

    Returns:
        JSONResponse with error details.
    """
    return _error_response(_domain_status(exc), exc.code, str(exc))


@app.exception_handler(InvalidStateTransition)
async def state_transition_handler(
    request: Request, exc: InvalidStateTransition
) -> JSONResponse:
    return _error_response(409, exc.code, str(exc))


@app.exception_handler(WebhookError)
async def webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
    """Signature problems are 401; malformed payloads are 400."""
    status_code = 401 if isinstance(exc, WebhookSignatureError) else 400
    return _error_response(status_code, exc.code, str(exc))


@app.exception_handler(AdapterError)
async def adapter_error_handler(request: Request, exc: AdapterError) -> JSONResponse:
    """Missing adapters are a configuration problem (500); failed calls are 502."""
    status_code = 500 if isinstance(exc, AdapterNotFoundError) else 502
    logger.error("Adapter error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(status_code, exc.code, exc.message)


@app.exception_handler(OrderRelayError)
async def orderrelay_error_handler(request: Request, exc: OrderRelayError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error_code": exc.code,
            "message": exc.message,
            "remediation": exc.remediation,
            "details": exc.details if exc.details else None,
        },
    )


# Include routers
app.include_router(platforms.router, prefix="/api/v1")
app.include_router(platform_operations.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(matches.router, prefix="/api/v1")
app.include_router(links.router, prefix="/api/v1")
app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(oauth.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        Dictionary with status, version, uptime and registered adapters.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    try:
        version = _pkg_version("orderrelay")
    except PackageNotFoundError:
        version = "unknown"
    return {
        "status": "healthy",
        "version": version,
        "uptime_seconds": uptime,
        "adapters": get_adapter_registry().names(),
    }


@app.get("/api")
def api_root() -> dict:
    """API information endpoint."""
    return {"name": "OrderRelay API", "version": "0.1.0", "docs": "/docs"}
