"""OrderRelay CLI.

Runs the API server and operates on the local database in-process.

Usage:
    orderrelay serve                 Start the API server
    orderrelay db init               Create database tables
    orderrelay orders list           List orders
    orderrelay orders place ID...    Place (or retry) orders
    orderrelay orders reroute ID     Re-run routing for a pending order
    orderrelay adapters list         Show registered in-process adapters
"""

import asyncio
import logging
import os
from typing import Optional

import typer
from rich.console import Console

from src.cli.config import ENV_PREFIX, get_settings
from src.cli.output import format_adapter_table, format_order_table, format_placement_results
from src.errors import OrderRelayError, format_error_summary, get_error
from src.services.placement_engine import PlacementResult

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="orderrelay",
    help="Order routing between storefronts and fulfillment channels",
    no_args_is_help=True,
)
db_app = typer.Typer(help="Database management")
config_app = typer.Typer(help="Configuration management")
orders_app = typer.Typer(help="Inspect and operate on orders")
adapters_app = typer.Typer(help="Adapter registry")

app.add_typer(db_app, name="db")
app.add_typer(config_app, name="config")
app.add_typer(orders_app, name="orders")
app.add_typer(adapters_app, name="adapters")

console = Console()


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to orderrelay.yaml config file"
    ),
):
    """OrderRelay CLI."""
    if config:
        # The API process and get_settings() both read the path from the env.
        os.environ[f"{ENV_PREFIX}CONFIG_PATH"] = config
        get_settings.cache_clear()


def _load_adapters() -> list[str]:
    from src.adapters.registry import get_adapter_registry, load_adapter_modules

    registry = get_adapter_registry()
    modules = [m for m in get_settings().adapters.modules if m not in registry.names()]
    load_adapter_modules(registry, modules)
    return registry.names()


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the OrderRelay API server."""
    import uvicorn

    settings = get_settings()
    final_host = host or settings.server.host
    final_port = port or settings.server.port
    console.print(f"[bold]Starting OrderRelay on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        log_level=settings.server.log_level,
    )


@app.command()
def version():
    """Show OrderRelay version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("orderrelay")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]OrderRelay[/bold] v{v}")


# --- Database ---


@db_app.command("init")
def db_init():
    """Create all tables (idempotent)."""
    from src.db.connection import get_database_url, init_db

    init_db()
    console.print(f"[green]Database ready:[/green] {get_database_url()}")


# --- Config ---


@config_app.command("show")
def config_show():
    """Display resolved configuration."""
    settings = get_settings()

    console.print("[bold]Server:[/bold]")
    console.print(f"  host: {settings.server.host}")
    console.print(f"  port: {settings.server.port}")
    console.print(f"  log_level: {settings.server.log_level}")

    console.print("\n[bold]Adapters:[/bold]")
    console.print(f"  http_timeout_seconds: {settings.adapters.http_timeout_seconds}")
    console.print(f"  best_effort_timeout_seconds: {settings.adapters.best_effort_timeout_seconds}")
    console.print(f"  placement_concurrency: {settings.adapters.placement_concurrency}")
    console.print(f"  modules: {', '.join(settings.adapters.modules) or '(none)'}")

    console.print("\n[bold]Webhooks:[/bold]")
    console.print(f"  allow_unverified: {settings.webhooks.allow_unverified}")

    console.print("\n[bold]OAuth:[/bold]")
    console.print(f"  state_ttl_seconds: {settings.oauth.state_ttl_seconds}")


# --- Orders ---


@orders_app.command("list")
def orders_list(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    shop_id: Optional[str] = typer.Option(None, "--shop", help="Filter by shop id"),
    limit: int = typer.Option(50, "--limit", help="Maximum orders to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List orders, newest first."""
    from src.db.connection import get_db_context
    from src.services.order_service import OrderService

    with get_db_context() as db:
        service = OrderService(db)
        orders = service.list_orders(status=status, shop_id=shop_id, limit=limit)
        console.print(format_order_table(orders, as_json=json_output))


def _placement_errors(results: list[PlacementResult]) -> list[OrderRelayError]:
    errors: list[OrderRelayError] = []
    for result in results:
        if result.error_code:
            error_def = get_error(result.error_code)
            errors.append(
                OrderRelayError(
                    code=result.error_code,
                    message=result.error,
                    remediation=error_def.remediation if error_def else "Check the server logs.",
                    order_ids=[result.order_id],
                )
            )
        elif result.failed:
            errors.append(
                OrderRelayError.from_code(
                    "E-3004", order_ids=[result.order_id], count=result.failed
                )
            )
    return errors


@orders_app.command("place")
def orders_place(
    order_ids: list[str] = typer.Argument(..., help="Order IDs to place"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Place (or retry) the unplaced cart items of one or more orders."""
    from src.db.connection import get_db_context
    from src.services.order_service import OrderService

    _load_adapters()

    async def _run() -> list[PlacementResult]:
        with get_db_context() as db:
            return await OrderService(db).place_many(order_ids)

    results = asyncio.run(_run())
    console.print(format_placement_results(results, as_json=json_output))

    errors = _placement_errors(results)
    if errors:
        console.print(f"[red]{format_error_summary(errors)}[/red]")
        raise typer.Exit(1)


@orders_app.command("cancel")
def orders_cancel(
    order_id: str = typer.Argument(help="Order ID to cancel"),
):
    """Cancel an order and all of its cart items."""
    from src.db.connection import get_db_context
    from src.errors.domain import NotFoundError
    from src.services.order_service import OrderService

    try:
        with get_db_context() as db:
            OrderService(db).cancel_order(order_id)
    except NotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[yellow]Order {order_id} cancelled.[/yellow]")


@orders_app.command("reroute")
def orders_reroute(
    order_id: str = typer.Argument(help="Order ID to route again"),
):
    """Re-run link/match routing for a pending order. Does not place it."""
    from src.db.connection import get_db_context
    from src.errors.domain import NotFoundError, ValidationError
    from src.services.order_service import OrderService

    _load_adapters()

    async def _run():
        with get_db_context() as db:
            order = await OrderService(db).reroute(order_id)
            return order.error, len(order.cart_items)

    try:
        error, count = asyncio.run(_run())
    except (NotFoundError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    if error:
        console.print(f"[red]Order {order_id} not routed:[/red] {error}")
        raise typer.Exit(1)
    console.print(f"[green]Order {order_id} routed to {count} cart item(s).[/green]")


# --- Adapters ---


@adapters_app.command("list")
def adapters_list():
    """List in-process adapters after loading configured modules."""
    console.print(format_adapter_table(_load_adapters()))


if __name__ == "__main__":
    app()
