"""In-memory fast tier for the embedding cache, backed by cachetools.TTLCache.

Single-process and unlocked: concurrent writers of the same key race and the
last writer wins, which is harmless because a given key always maps to the
same vector.  Swap in a Redis adapter through ``ICacheProvider`` for
multi-process deployments.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """TTL cache with LRU-style eviction once ``max_size`` is reached.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the oldest is evicted.
    ttl:
        Time-to-live in seconds applied to every entry (default 7 days).
    """

    def __init__(self, max_size: int = 10000, ttl: int = 604800) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        # TTLCache has one TTL for all entries; per-item ttl is ignored.
        self._cache[key] = value
        logger.debug("cache_set", key=key)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._cache

    # ------------------------------------------------------------------
    # Namespace maintenance
    # ------------------------------------------------------------------

    async def clear_namespace(self, prefix: str) -> int:
        stale = [key for key in list(self._cache.keys()) if key.startswith(prefix)]
        for key in stale:
            self._cache.pop(key, None)
        if stale:
            logger.info("cache_namespace_cleared", prefix=prefix, removed=len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._cache)
