"""Cache providers.

MemoryCacheProvider is the fast tier of the embedding cache: a per-process
``cachetools.TTLCache``.  For multi-worker deployments swap in a Redis
adapter implementing ICacheProvider; nothing else changes.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
