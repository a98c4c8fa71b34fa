"""Time-based cache with a capacity bound.

Entries expire ``ttl`` seconds after they are written. Expired entries
are dropped lazily on read and by a periodic sweep that runs at most
once per ``check_period`` on writes. When ``max_entries`` is reached the
least recently used entry is evicted.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Thread-safe TTL cache with LRU eviction.

    Values are stored by reference, not copied.
    """

    def __init__(
        self,
        ttl: float,
        max_entries: int,
        check_period: float = 600.0,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self._ttl = ttl
        self._max_entries = max_entries
        self._check_period = check_period
        self._timer = timer
        self._entries: OrderedDict[str, tuple[V, float]] = OrderedDict()
        self._lock = threading.Lock()
        self._last_sweep = timer()

    def get(self, key: str) -> V | None:
        """Return the live value for ``key``, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if expires_at <= self._timer():
                del self._entries[key]
                return None

            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: V) -> None:
        """Store ``value`` under ``key``, overwriting any existing entry."""
        with self._lock:
            now = self._timer()
            if now - self._last_sweep >= self._check_period:
                self._sweep(now)

            self._entries[key] = (value, now + self._ttl)
            self._entries.move_to_end(key)

            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Drop expired entries now.

        Returns:
            Number of entries removed
        """
        with self._lock:
            return self._sweep(self._timer())

    def _sweep(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries
