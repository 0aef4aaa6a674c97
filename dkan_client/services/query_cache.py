"""Query cache with staleness tracking, built on cachetools."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from cachetools import TTLCache

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]
QueryFn = Callable[[], Awaitable[Any]]


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    invalidated: bool = False


def _matches(key: CacheKey, prefix: Optional[CacheKey]) -> bool:
    if not prefix:
        return True
    return key[: len(prefix)] == tuple(prefix)


class QueryCache:
    """Keyed query results with a stale window and a lifetime.

    ``stale_time`` and ``cache_time`` are milliseconds. A stale entry is
    still returned by :meth:`get_query_data` but refetched by
    :meth:`fetch_query`; entries older than ``cache_time`` are evicted.
    """

    def __init__(
        self,
        stale_time: int = 0,
        cache_time: int = 5 * 60 * 1000,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_time = stale_time
        self.cache_time = cache_time
        self._timer = timer
        self._entries: TTLCache[CacheKey, CacheEntry] = TTLCache(
            maxsize=maxsize,
            ttl=max(cache_time, 1) / 1000,
            timer=timer,
        )
        self._inflight: Dict[CacheKey, asyncio.Task[Any]] = {}
        self._mounted = False

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        self._mounted = True

    def unmount(self) -> None:
        self._mounted = False
        self._entries.expire()

    def _is_stale(self, entry: CacheEntry, stale_time: Optional[int]) -> bool:
        window = self.stale_time if stale_time is None else stale_time
        age_ms = (self._timer() - entry.updated_at) * 1000
        return entry.invalidated or age_ms >= window

    async def fetch_query(self, key: CacheKey, fn: QueryFn, stale_time: Optional[int] = None) -> Any:
        entry = self._entries.get(key)
        if entry is not None and not self._is_stale(entry, stale_time):
            return entry.data
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, fn))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _run(self, key: CacheKey, fn: QueryFn) -> Any:
        try:
            data = await fn()
            self.set_query_data(key, data)
            return data
        finally:
            self._inflight.pop(key, None)

    async def prefetch_query(self, key: CacheKey, fn: QueryFn, stale_time: Optional[int] = None) -> None:
        try:
            await self.fetch_query(key, fn, stale_time)
        except Exception:  # noqa: BLE001
            logger.exception("query_cache_prefetch_failed", extra={"key": repr(key)})

    def get_query_data(self, key: CacheKey) -> Any:
        entry = self._entries.get(key)
        return None if entry is None else entry.data

    def set_query_data(self, key: CacheKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, updated_at=self._timer())

    def invalidate_queries(self, prefix: Optional[CacheKey] = None) -> int:
        self._entries.expire()
        count = 0
        for key, entry in list(self._entries.items()):
            if _matches(key, prefix):
                entry.invalidated = True
                count += 1
        return count

    def remove_queries(self, prefix: Optional[CacheKey] = None) -> int:
        self._entries.expire()
        keys = [key for key in list(self._entries.keys()) if _matches(key, prefix)]
        for key in keys:
            self._entries.pop(key, None)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def keys(self) -> list[CacheKey]:
        self._entries.expire()
        return list(self._entries.keys())
