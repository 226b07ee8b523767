"""Abstract base class for the fast embedding-cache tier.

Defines the key-value contract the :class:`~src.services.embedding_cache.EmbeddingCache`
uses for its hot tier.  The shipped implementation is an in-process
``cachetools.TTLCache``; a Redis-backed adapter would satisfy the same
interface.  Keys are namespaced ``embedding:{provider}:{fingerprint}`` so a
whole provider namespace can be dropped with :meth:`clear_namespace`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async so network-backed stores do not block the
    event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store (embedding vectors are ``list[float]``).
        ttl:
            Time-to-live in seconds.  Stores with a uniform TTL may ignore it.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key*; no-op if missing."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    @abstractmethod
    async def clear_namespace(self, prefix: str) -> int:
        """Delete every key starting with *prefix*.

        Returns
        -------
        int
            Number of entries removed.
        """
