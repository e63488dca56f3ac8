"""Per-order critical sections.

Placement and completion recounts for one order must not interleave;
different orders proceed independently. Locks are created on demand and
dropped once nobody holds a reference.
"""

import asyncio
import threading
import weakref


class OrderLockRegistry:
    """Hands out one asyncio.Lock per order id."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def get(self, order_id: str) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(order_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[order_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


_default_locks = OrderLockRegistry()


def get_order_locks() -> OrderLockRegistry:
    return _default_locks
