"""Two-tier embedding cache.

The fast tier (an :class:`ICacheProvider`, TTL-bounded) holds the vectors and
is the only tier consulted when deciding hit vs. miss.  The durable tier (the
record store's ``embedding_cache`` table) keeps hit counts and last-use times
for observability only; its writes are awaited but a failure there is logged
and never fails the caller.

Keys are ``embedding:{provider}:{fingerprint}``.  When a provider starts
returning vectors of a different dimension (a model switch), that
provider's namespace is cleared before the new vector is stored; other
providers' entries are untouched.
"""

from __future__ import annotations

import structlog

from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.record_store import IRecordStore
from src.services.fingerprint import ContentFingerprinter

logger = structlog.get_logger(logger_name=__name__)


def cache_namespace(provider: str) -> str:
    return f"embedding:{provider}:"


class EmbeddingCache:
    """Cache embedding vectors per ``(provider, content fingerprint)``.

    Parameters
    ----------
    fast_tier:
        Hot key-value store holding the vectors.
    durable_tier:
        Optional record store receiving best-effort usage rows.
    fingerprinter:
        Hashes text into the key's content part.
    ttl:
        Seconds a vector stays in the fast tier.
    """

    def __init__(
        self,
        fast_tier: ICacheProvider,
        durable_tier: IRecordStore | None = None,
        fingerprinter: ContentFingerprinter | None = None,
        ttl: int = 604800,
    ) -> None:
        self._fast = fast_tier
        self._durable = durable_tier
        self._fingerprinter = fingerprinter or ContentFingerprinter()
        self._ttl = ttl
        self._dimensions: dict[str, int] = {}

    def key_for(self, text: str, provider: str) -> str:
        return f"{cache_namespace(provider)}{self._fingerprinter.fingerprint(text)}"

    async def get(self, text: str, provider: str) -> list[float] | None:
        """Return the cached vector for *text* under *provider*, or ``None``."""
        key = self.key_for(text, provider)
        try:
            vector = await self._fast.get(key)
        except Exception as exc:
            logger.warning("embedding_cache_read_failed", key=key, error=str(exc))
            return None
        if vector is None:
            return None
        known = self._dimensions.get(provider)
        if known is not None and len(vector) != known:
            try:
                await self._fast.delete(key)
            except Exception as exc:
                logger.warning("embedding_cache_evict_failed", key=key, error=str(exc))
            return None
        await self._record_use(key, provider, "", len(vector), hit=True)
        return list(vector)

    async def put(self, text: str, vector: list[float], provider: str, model: str = "") -> None:
        """Store *vector* in both tiers."""
        dimension = len(vector)
        known = self._dimensions.get(provider)
        if known is not None and known != dimension:
            try:
                removed = await self._fast.clear_namespace(cache_namespace(provider))
            except Exception as exc:
                logger.warning("embedding_cache_evict_failed", provider=provider, error=str(exc))
                removed = 0
            logger.warning(
                "embedding_dimension_changed",
                provider=provider,
                old_dimension=known,
                new_dimension=dimension,
                evicted=removed,
            )
        self._dimensions[provider] = dimension

        key = self.key_for(text, provider)
        try:
            await self._fast.set(key, list(vector), ttl=self._ttl)
        except Exception as exc:
            logger.warning("embedding_cache_write_failed", key=key, error=str(exc))
        await self._record_use(key, provider, model, dimension, hit=False)

    async def _record_use(
        self, key: str, provider: str, model: str, dimension: int, hit: bool
    ) -> None:
        if self._durable is None:
            return
        try:
            await self._durable.record_embedding_use(
                cache_key=key,
                content_hash=key.rsplit(":", 1)[-1],
                provider=provider,
                model=model,
                dimension=dimension,
                hit=hit,
            )
        except Exception as exc:
            logger.warning("embedding_cache_durable_write_failed", key=key, error=str(exc))
