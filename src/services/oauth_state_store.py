"""TTL-bounded store for in-flight OAuth state.

Holds PKCE verifiers and redirect context between the authorization
redirect and the callback. Entries are consumed once, may be reached
through a secondary alias (e.g. a nonce embedded in the state), and
expire after ``ttl_seconds``.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class _Entry:
    value: Any
    expires_at: float


class OAuthStateStore:
    """Thread-safe key/value store with expiry and consume-once reads.

    Attributes:
        ttl_seconds: Lifetime of each entry.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._aliases: dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: Any, alias: str | None = None) -> None:
        """Store ``value`` under ``key`` (and ``alias``), replacing any previous entry."""
        with self._lock:
            self._purge_locked()
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + self.ttl_seconds)
            if alias and alias != key:
                self._aliases[alias] = key

    def _resolve_locked(self, key: str) -> str | None:
        if key in self._entries:
            return key
        return self._aliases.get(key)

    def _live_locked(self, key: str) -> tuple[str, _Entry] | None:
        real_key = self._resolve_locked(key)
        if real_key is None:
            return None
        entry = self._entries.get(real_key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._remove_locked(real_key)
            return None
        return real_key, entry

    def _remove_locked(self, key: str) -> None:
        self._entries.pop(key, None)
        for alias in [a for a, target in self._aliases.items() if target == key]:
            del self._aliases[alias]

    def get(self, key: str) -> Any | None:
        """Read without consuming. Expired or unknown keys return None."""
        with self._lock:
            found = self._live_locked(key)
            return found[1].value if found else None

    def consume(self, key: str) -> Any | None:
        """Read and remove an entry (and its aliases). Second reads return None."""
        with self._lock:
            found = self._live_locked(key)
            if found is None:
                return None
            real_key, entry = found
            self._remove_locked(real_key)
            return entry.value

    def discard(self, key: str) -> None:
        with self._lock:
            real_key = self._resolve_locked(key)
            if real_key is not None:
                self._remove_locked(real_key)

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            self._remove_locked(key)
        return len(expired)

    def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        with self._lock:
            return self._purge_locked()

    def __len__(self) -> int:
        with self._lock:
            self._purge_locked()
            return len(self._entries)


_default_store: OAuthStateStore | None = None


def get_oauth_state_store() -> OAuthStateStore:
    """Return the process-wide store (FastAPI dependency)."""
    global _default_store
    if _default_store is None:
        from src.cli.config import get_settings

        _default_store = OAuthStateStore(ttl_seconds=get_settings().oauth.state_ttl_seconds)
    return _default_store
