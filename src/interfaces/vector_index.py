"""Abstract base class for vector index backends.

Two backends satisfy this contract: a self-hosted ANN service (ChromaDB) and
a managed cloud index (Pinecone).  Which one is used is decided once, in the
wiring layer, from ``Settings.vector_backend``; nothing downstream branches
on the backend.

Behavioural guarantees every backend must honour:

* ``upsert`` is idempotent on ids and creates a missing collection lazily,
  taking the dimension from the first record.
* ``search`` returns results in descending score order, at most
  ``options.top_k`` of them.  Searching a missing collection creates it with
  the query vector's dimension and returns an empty list.
* ``initialize`` retries its connection with exponential backoff and raises
  :class:`~src.utils.errors.BackendUnavailable` when attempts run out.
* One client handle per index object, created in ``initialize`` and reused.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.vector import CollectionStats, SearchOptions, VectorRecord, VectorSearchResult


# Concrete implementations (src/providers/vector_index/):
#   ChromaVectorIndex: ChromaDB HttpClient or embedded PersistentClient
#   PineconeVectorIndex: Pinecone serverless index
class IVectorIndex(ABC):
    """Contract for similarity-search backends."""

    @abstractmethod
    async def initialize(self) -> None:
        """Connect to the backend, retrying with exponential backoff.

        Raises
        ------
        src.utils.errors.BackendUnavailable
            If every connection attempt failed.
        src.utils.errors.ConfigurationError
            If required credentials are missing.
        """

    @abstractmethod
    async def wait_until_ready(self, timeout: float = 30.0, poll_interval: float = 0.3) -> None:
        """Block until :meth:`initialize` has completed.

        Polls at ``poll_interval`` and raises
        :class:`~src.utils.errors.BackendUnavailable` after ``timeout`` seconds.
        """

    @abstractmethod
    def is_ready(self) -> bool:
        """Return ``True`` once a client handle has been established."""

    @abstractmethod
    async def create_collection(self, name: str, dimension: int) -> None:
        """Create *name* with vectors of *dimension* (no-op if it exists)."""

    @abstractmethod
    async def has_collection(self, name: str) -> bool:
        """Return ``True`` if the collection exists."""

    @abstractmethod
    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        """Insert or replace *records*; returns the number written."""

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: list[float],
        options: SearchOptions | None = None,
    ) -> list[VectorSearchResult]:
        """Return the nearest neighbours of *query_vector*, best first."""

    @abstractmethod
    async def delete(self, collection: str, ids: list[str]) -> None:
        """Remove vectors by id; unknown ids are ignored."""

    @abstractmethod
    async def get(self, collection: str, vector_id: str) -> VectorSearchResult | None:
        """Fetch one vector (values and metadata) by id."""

    @abstractmethod
    async def get_stats(self, collection: str) -> CollectionStats:
        """Return vector count and dimension of *collection*."""

    @abstractmethod
    async def close(self) -> None:
        """Release the client handle."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend is configured well enough to connect."""
