"""Time-bounded memoization of async fetches with coalesced misses."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, NamedTuple

from keyless.core.settings import CACHE_MAX_ENTRIES_DEFAULT, CACHE_TTL_SECONDS_DEFAULT

_logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class _CacheEntry(NamedTuple):
    value: Any
    stored_at: float


class AsyncTTLCache:
    """Per-key cache of async results that expire after ``ttl_seconds``.

    Concurrent misses on one key share a single in-flight fetch. Failed
    fetches are not stored; every waiter sees the same exception.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS_DEFAULT,
        clock: Clock = time.monotonic,
        max_entries: int = CACHE_MAX_ENTRIES_DEFAULT,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, _CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _fresh(self, key: str) -> _CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self._ttl_seconds:
            del self._entries[key]
            return None
        return entry

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or run ``fetch`` once to fill it."""
        entry = self._fresh(key)
        if entry is not None:
            return entry.value
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._fill(key, fetch))
            self._in_flight[key] = task
        return await asyncio.shield(task)

    async def _fill(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await fetch()
        finally:
            self._in_flight.pop(key, None)
        if len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].stored_at)
            del self._entries[oldest]
        self._entries[key] = _CacheEntry(value, self._clock())
        _logger.info("Cached %s", key)
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
