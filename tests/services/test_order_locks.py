"""Tests for per-order placement locks."""

import asyncio
import gc

from src.services.order_locks import OrderLockRegistry


def test_same_order_same_lock():
    locks = OrderLockRegistry()
    assert locks.get("a") is locks.get("a")


def test_different_orders_different_locks():
    locks = OrderLockRegistry()
    assert locks.get("a") is not locks.get("b")


def test_unreferenced_locks_are_dropped():
    locks = OrderLockRegistry()
    lock = locks.get("a")
    assert len(locks) == 1

    del lock
    gc.collect()

    assert len(locks) == 0


async def test_serializes_same_order():
    locks = OrderLockRegistry()
    events: list[str] = []

    async def critical(name: str) -> None:
        async with locks.get("order-1"):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(critical("first"), critical("second"))

    assert events == ["first-start", "first-end", "second-start", "second-end"]


async def test_different_orders_interleave():
    locks = OrderLockRegistry()
    events: list[str] = []

    async def critical(order_id: str) -> None:
        async with locks.get(order_id):
            events.append(f"{order_id}-start")
            await asyncio.sleep(0.01)
            events.append(f"{order_id}-end")

    await asyncio.gather(critical("a"), critical("b"))

    assert events[:2] == ["a-start", "b-start"]
