"""Tests for CLI output formatting."""

import json
from decimal import Decimal

from src.cli.output import (
    format_adapter_table,
    format_money,
    format_order_table,
    format_placement_results,
)
from src.services.placement_engine import PlacementResult, TargetOutcome


class TestFormatMoney:
    def test_formats_decimal(self):
        assert format_money(Decimal("1250.5")) == "$1,250.50"
        assert format_money(Decimal("0")) == "$0.00"

    def test_none_returns_dash(self):
        assert format_money(None) == "—"


class TestFormatOrderTable:
    """Tests for order list rendering."""

    def test_renders_orders_as_text(self, make_order):
        order = make_order("3001")

        output = format_order_table([order], as_json=False)

        assert order.id[:12] in output
        assert "#3001" in output
        assert "PENDING" in output

    def test_renders_orders_as_json(self, make_order):
        order = make_order("3001", total="75.00")

        parsed = json.loads(format_order_table([order], as_json=True))

        assert parsed[0]["id"] == order.id
        assert parsed[0]["total_price"] == "75.00"
        assert parsed[0]["status"] == "PENDING"

    def test_empty(self):
        assert format_order_table([]) == "No orders found."


class TestFormatPlacementResults:
    def test_counts(self):
        result = PlacementResult(
            order_id="order-1",
            status="AWAITING",
            targets=[
                TargetOutcome(channel_id="c1", cart_item_ids=["a", "b"], purchase_id="P-1"),
                TargetOutcome(channel_id="c2", cart_item_ids=["c"], error="ORDER_PLACEMENT_ERROR: x"),
            ],
            remaining=1,
        )

        parsed = json.loads(format_placement_results([result], as_json=True))

        assert parsed == [
            {
                "order_id": "order-1",
                "status": "AWAITING",
                "placed": 2,
                "failed": 1,
                "remaining": 1,
                "error": "",
            }
        ]
        assert "AWAITING" in format_placement_results([result])


def test_adapter_table():
    assert format_adapter_table([]) == "No adapters registered."
    assert "mock-shop" in format_adapter_table(["mock-shop"])
