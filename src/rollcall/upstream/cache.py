"""In-memory response cache with a stale fallback for upstream outages."""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cachetools import TTLCache

from rollcall.resilience import TransientError

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int
    misses: int
    stale_hits: int
    size: int


class StaleCache[V]:
    """TTL cache whose entries stay usable as a fallback after they go stale.

    An entry is fresh for ``ttl`` seconds and served without a request. It
    is then kept until ``stale_ttl`` and only returned when the upstream call
    fails with a transient error. Definitive errors (unknown event, bad
    credentials) always propagate.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        stale_ttl: float,
        maxsize: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if stale_ttl < ttl:
            raise ValueError("stale_ttl must be at least ttl")
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=stale_ttl, timer=clock)
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0

    def get_fresh(self, key: str) -> V | None:
        item = self._cache.get(key)
        if item is None:
            return None
        stored_at, value = item
        if self._clock() - stored_at >= self.ttl:
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._cache[key] = (self._clock(), value)

    def invalidate(self, key: str | None = None) -> None:
        """Invalidate one entry, or all of them."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

    async def fetch(self, key: str, load: Callable[[], Awaitable[V]]) -> V:
        """Fresh entry, else ``load()``, else the stale entry on a transient error."""
        value = self.get_fresh(key)
        if value is not None:
            self._hits += 1
            return value
        self._misses += 1

        try:
            value = await load()
        except TransientError as e:
            item = self._cache.get(key)
            if item is None:
                raise
            self._stale_hits += 1
            stored_at, stale = item
            logger.warning(
                "upstream_stale_cache_used",
                extra={
                    "cache.name": self.name,
                    "cache.key": key,
                    "cache.age_s": round(self._clock() - stored_at, 1),
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
            )
            return stale

        self.set(key, value)
        return value

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            stale_hits=self._stale_hits,
            size=len(self._cache),
        )
