"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import json

from rich.console import Console
from rich.table import Table

from src.db.models import Order
from src.services.placement_engine import PlacementResult

console = Console()

# Order status colors
STATUS_COLORS = {
    "PENDING": "yellow",
    "AWAITING": "blue",
    "COMPLETE": "green",
    "CANCELLED": "dim",
}


def _render(table: Table) -> str:
    with console.capture() as capture:
        console.print(table)
    return capture.get()


def format_money(value) -> str:
    """Format a Decimal amount, or a dash placeholder for None."""
    if value is None:
        return "—"
    return f"${value:,.2f}"


def format_order_table(orders: list[Order], as_json: bool = False) -> str:
    """Format a list of orders as a Rich table or JSON.

    Args:
        orders: Orders to display.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(
            [
                {
                    "id": o.id,
                    "order_id": o.order_id,
                    "order_name": o.order_name,
                    "status": o.status,
                    "error": o.error,
                    "total_price": str(o.total_price) if o.total_price is not None else None,
                    "created_at": o.created_at,
                }
                for o in orders
            ],
            indent=2,
        )

    if not orders:
        return "No orders found."

    table = Table(title="Orders", show_lines=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Order", style="white")
    table.add_column("Status")
    table.add_column("Total", justify="right")
    table.add_column("Error", style="red")
    table.add_column("Created")

    for order in orders:
        color = STATUS_COLORS.get(order.status, "white")
        table.add_row(
            order.id[:12],
            order.order_name or order.order_id,
            f"[{color}]{order.status}[/{color}]",
            format_money(order.total_price),
            order.error or "",
            order.created_at[:19] if order.created_at else "—",
        )
    return _render(table)


def format_placement_results(results: list[PlacementResult], as_json: bool = False) -> str:
    """Format placement outcomes, one row per order."""
    if as_json:
        return json.dumps(
            [
                {
                    "order_id": r.order_id,
                    "status": r.status,
                    "placed": r.placed,
                    "failed": r.failed,
                    "remaining": r.remaining,
                    "error": r.error,
                }
                for r in results
            ],
            indent=2,
        )

    table = Table(title="Placement", show_lines=True)
    table.add_column("Order", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Placed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Remaining", justify="right")

    for result in results:
        color = STATUS_COLORS.get(result.status, "white")
        table.add_row(
            result.order_id[:12],
            f"[{color}]{result.status}[/{color}]",
            str(result.placed),
            str(result.failed),
            str(result.remaining),
        )
    return _render(table)


def format_adapter_table(names: list[str]) -> str:
    if not names:
        return "No adapters registered."
    table = Table(title="Adapters")
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(name)
    return _render(table)
