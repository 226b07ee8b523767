"""Shared behaviour for vector index backends.

Backends implement narrow ``_``-prefixed hooks; this class owns:

* connecting with exponential backoff and the ready flag,
* the bounded readiness wait,
* lazy collection creation on ``upsert`` and ``search``,
* result ordering and ``top_k`` truncation,
* metadata flattening to the scalar types both backends accept.

The SDKs used by both backends are synchronous, so every backend call is
pushed to a worker thread with :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import json
import time
from abc import abstractmethod
from typing import Any, Callable, TypeVar

import structlog

from src.interfaces.vector_index import IVectorIndex
from src.models.vector import CollectionStats, SearchOptions, VectorRecord, VectorSearchResult
from src.utils.errors import BackendUnavailable, ConfigurationError, ProviderError
from src.utils.retry import retry_with_backoff

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")


def flatten_metadata(metadata: dict[str, Any], allow_str_lists: bool = False) -> dict[str, Any]:
    """Coerce metadata values to types vector stores accept.

    ``None`` values are dropped, scalars kept, lists of strings kept when the
    backend supports them, and anything else JSON-encoded.
    """
    flat: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif allow_str_lists and isinstance(value, list) and all(isinstance(v, str) for v in value):
            flat[key] = value
        else:
            flat[key] = json.dumps(value, default=str)
    return flat


class BaseVectorIndex(IVectorIndex):
    """Template for :class:`IVectorIndex` backends.

    Parameters
    ----------
    connect_max_attempts:
        Total connection attempts made by :meth:`initialize`.
    connect_base_delay:
        Seconds before the first reconnect; doubled each further attempt.
    """

    def __init__(self, connect_max_attempts: int = 8, connect_base_delay: float = 0.5) -> None:
        self._connect_max_attempts = connect_max_attempts
        self._connect_base_delay = connect_base_delay
        self._ready = False
        self._connect_error: BackendUnavailable | None = None
        self._init_lock = asyncio.Lock()
        self._known_collections: set[str] = set()

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _check_config(self) -> None:
        """Raise ConfigurationError when the backend cannot possibly connect."""

    @abstractmethod
    def _connect(self) -> None:
        """Create the client handle and run a sanity call (runs in a thread)."""

    @abstractmethod
    def _disconnect(self) -> None: ...

    @abstractmethod
    def _create_collection(self, name: str, dimension: int) -> None: ...

    @abstractmethod
    def _has_collection(self, name: str) -> bool: ...

    @abstractmethod
    def _upsert(self, collection: str, records: list[VectorRecord]) -> None: ...

    @abstractmethod
    def _query(
        self, collection: str, query_vector: list[float], options: SearchOptions
    ) -> list[VectorSearchResult]: ...

    @abstractmethod
    def _delete(self, collection: str, ids: list[str]) -> None: ...

    @abstractmethod
    def _get(self, collection: str, vector_id: str) -> VectorSearchResult | None: ...

    @abstractmethod
    def _get_stats(self, collection: str) -> CollectionStats: ...

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        async with self._init_lock:
            if self._ready:
                return
            self._check_config()
            try:
                await retry_with_backoff(
                    lambda: asyncio.to_thread(self._connect),
                    should_retry=lambda exc: not isinstance(exc, ConfigurationError),
                    max_attempts=self._connect_max_attempts,
                    base_delay=self._connect_base_delay,
                    logger=logger,
                    event="vector_index_connect_retry",
                    backend=self.get_provider_name(),
                )
            except ConfigurationError:
                raise
            except Exception as exc:
                logger.error(
                    "vector_index_connect_failed",
                    backend=self.get_provider_name(),
                    attempts=self._connect_max_attempts,
                    error=str(exc),
                )
                self._connect_error = BackendUnavailable(
                    message=(
                        f"Could not connect after {self._connect_max_attempts} attempts: {exc}"
                    ),
                    provider_name=self.get_provider_name(),
                )
                raise self._connect_error from exc
            self._ready = True
            self._connect_error = None
            logger.info("vector_index_ready", backend=self.get_provider_name())

    def is_ready(self) -> bool:
        return self._ready

    async def wait_until_ready(self, timeout: float = 30.0, poll_interval: float = 0.3) -> None:
        """Block until connected, at most *timeout* seconds.

        When the last :meth:`initialize` gave up and no connect is running,
        a fresh connect cycle (with its own backoff) is started here, and its
        failure is raised at once instead of polling out the timeout.
        """
        deadline = time.monotonic() + timeout
        while not self._ready:
            if self._connect_error is not None and not self._init_lock.locked():
                await self._reconnect(deadline - time.monotonic(), timeout)
                continue
            if time.monotonic() >= deadline:
                raise BackendUnavailable(
                    message=f"Vector index not ready after {timeout:.1f}s",
                    provider_name=self.get_provider_name(),
                )
            await asyncio.sleep(poll_interval)

    async def _reconnect(self, remaining: float, timeout: float) -> None:
        logger.info("vector_index_reconnecting", backend=self.get_provider_name())
        if remaining <= 0:
            raise BackendUnavailable(
                message=f"Vector index not ready after {timeout:.1f}s",
                provider_name=self.get_provider_name(),
            )
        try:
            await asyncio.wait_for(self.initialize(), timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise BackendUnavailable(
                message=f"Vector index not ready after {timeout:.1f}s",
                provider_name=self.get_provider_name(),
            ) from exc

    async def close(self) -> None:
        if self._ready:
            await asyncio.to_thread(self._disconnect)
        self._ready = False
        self._connect_error = None
        self._known_collections.clear()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, name: str, dimension: int) -> None:
        self._require_ready()
        if dimension <= 0:
            raise ConfigurationError(
                message=f"Collection dimension must be positive, got {dimension}",
                provider_name=self.get_provider_name(),
            )
        await self._run(self._create_collection, name, dimension)
        self._known_collections.add(name)
        logger.info("collection_created", collection=name, dimension=dimension)

    async def has_collection(self, name: str) -> bool:
        self._require_ready()
        if name in self._known_collections:
            return True
        exists = await self._run(self._has_collection, name)
        if exists:
            self._known_collections.add(name)
        return exists

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        self._require_ready()
        if not records:
            return 0
        if not await self.has_collection(collection):
            await self.create_collection(collection, len(records[0].values))
        await self._run(self._upsert, collection, records)
        logger.debug("vectors_upserted", collection=collection, count=len(records))
        return len(records)

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        options: SearchOptions | None = None,
    ) -> list[VectorSearchResult]:
        self._require_ready()
        options = options or SearchOptions()
        if not await self.has_collection(collection):
            # A read with a side effect: the collection is created so later
            # writes and reads share the query's dimension.
            logger.warning(
                "collection_created_on_search",
                collection=collection,
                dimension=len(query_vector),
            )
            await self.create_collection(collection, len(query_vector))
            return []
        results = await self._run(self._query, collection, query_vector, options)
        results.sort(key=lambda r: r.score, reverse=True)
        return results[: options.top_k]

    async def delete(self, collection: str, ids: list[str]) -> None:
        self._require_ready()
        if ids and await self.has_collection(collection):
            await self._run(self._delete, collection, ids)

    async def get(self, collection: str, vector_id: str) -> VectorSearchResult | None:
        self._require_ready()
        if not await self.has_collection(collection):
            return None
        return await self._run(self._get, collection, vector_id)

    async def get_stats(self, collection: str) -> CollectionStats:
        self._require_ready()
        if not await self.has_collection(collection):
            return CollectionStats()
        return await self._run(self._get_stats, collection)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_ready(self) -> None:
        if not self._ready:
            raise BackendUnavailable(
                message="Vector index is not initialized",
                provider_name=self.get_provider_name(),
            )

    async def _run(self, fn: Callable[..., _T], *args: Any) -> _T:
        """Run a blocking backend call in a thread, wrapping SDK failures."""
        try:
            return await asyncio.to_thread(fn, *args)
        except (BackendUnavailable, ConfigurationError, ProviderError):
            raise
        except Exception as exc:
            logger.error(
                "vector_index_call_failed",
                backend=self.get_provider_name(),
                call=getattr(fn, "__name__", "call"),
                error=str(exc),
            )
            raise ProviderError(
                message=f"{getattr(fn, '__name__', 'call').lstrip('_')} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
