"""
In-memory TTL caches for expensive catalog loads.

Only successful loads are cached. Concurrent callers of a cold or expired
entry share a single in-flight load instead of each hitting the network.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float


class AsyncTTLCache(Generic[T]):
    """
    Keyed cache of awaited results with a fixed time-to-live.

    Args:
        ttl_seconds: How long a loaded value stays fresh
        name: Label used in log events
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: dict[Hashable, _Entry[T]] = {}
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def peek(self, key: Hashable = None) -> T | None:
        """Return a fresh cached value without loading, or None."""
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return entry.value

    async def get_or_load(
        self,
        loader: Callable[[], Awaitable[T]],
        key: Hashable = None,
        cache_if: Callable[[T], bool] | None = None,
    ) -> T:
        """
        Return the cached value for key, loading it if missing or stale.

        Exceptions from the loader propagate and nothing is cached. A loaded
        value rejected by cache_if is returned but not stored, so the next
        caller loads again.
        """
        cached = self.peek(key)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have finished the load while we waited
            cached = self.peek(key)
            if cached is not None:
                return cached

            value = await loader()
            if cache_if is not None and not cache_if(value):
                logger.info("cache_skipped", extra={"cache": self.name, "key": repr(key)})
                return value
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + self.ttl_seconds)
            logger.debug("cache_filled", extra={"cache": self.name, "key": repr(key)})
            return value

    def invalidate(self, key: Hashable = None) -> None:
        """Drop one entry."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
