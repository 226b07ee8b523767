"""Pinecone vector index backend (managed cloud).

Each collection maps to one Pinecone serverless index created with the
cosine metric.  Pinecone index names allow only lowercase letters, digits
and hyphens, so collection names are normalised (``job_embeddings`` becomes
``job-embeddings``).  All records are written to ``namespace``.
"""

from __future__ import annotations

import re
from typing import Any

import structlog
from pinecone import Pinecone, ServerlessSpec

from src.models.vector import CollectionStats, SearchOptions, VectorRecord, VectorSearchResult
from src.providers.vector_index.base import BaseVectorIndex, flatten_metadata
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Pinecone recommends upserting at most ~100 vectors per request.
_UPSERT_BATCH_SIZE = 100

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


def index_name_for(collection: str) -> str:
    return _INVALID_NAME_CHARS.sub("-", collection.lower()).strip("-")


class PineconeVectorIndex(BaseVectorIndex):
    """Vector index backed by Pinecone serverless indexes.

    Parameters
    ----------
    api_key:
        Pinecone API key (required).
    cloud, region:
        Serverless placement for indexes created by this backend.
    namespace:
        Namespace every read and write goes to ("" = default namespace).
    """

    def __init__(
        self,
        api_key: str,
        cloud: str = "aws",
        region: str = "us-east-1",
        namespace: str = "",
        connect_max_attempts: int = 8,
        connect_base_delay: float = 0.5,
    ) -> None:
        super().__init__(
            connect_max_attempts=connect_max_attempts,
            connect_base_delay=connect_base_delay,
        )
        self._api_key = api_key
        self._cloud = cloud
        self._region = region
        self._namespace = namespace
        self._client: Pinecone | None = None
        self._indexes: dict[str, Any] = {}

    def get_provider_name(self) -> str:
        return "pinecone"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _check_config(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                message="PINECONE_API_KEY is required for the pinecone backend",
                provider_name=self.get_provider_name(),
            )

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        client = Pinecone(api_key=self._api_key)
        client.list_indexes()
        self._client = client
        logger.info("pinecone_connected", cloud=self._cloud, region=self._region)

    def _disconnect(self) -> None:
        self._indexes.clear()
        self._client = None

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def _create_collection(self, name: str, dimension: int) -> None:
        index_name = index_name_for(name)
        if index_name in self._client.list_indexes().names():
            return
        self._client.create_index(
            name=index_name,
            dimension=dimension,
            metric="cosine",
            spec=ServerlessSpec(cloud=self._cloud, region=self._region),
        )

    def _has_collection(self, name: str) -> bool:
        return index_name_for(name) in self._client.list_indexes().names()

    def _index(self, name: str) -> Any:
        index_name = index_name_for(name)
        if index_name not in self._indexes:
            self._indexes[index_name] = self._client.Index(index_name)
        return self._indexes[index_name]

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def _upsert(self, collection: str, records: list[VectorRecord]) -> None:
        index = self._index(collection)
        for start in range(0, len(records), _UPSERT_BATCH_SIZE):
            batch = records[start : start + _UPSERT_BATCH_SIZE]
            index.upsert(
                vectors=[
                    {
                        "id": r.id,
                        "values": r.values,
                        "metadata": flatten_metadata(r.metadata, allow_str_lists=True),
                    }
                    for r in batch
                ],
                namespace=self._namespace,
            )

    def _query(
        self, collection: str, query_vector: list[float], options: SearchOptions
    ) -> list[VectorSearchResult]:
        response = self._index(collection).query(
            vector=query_vector,
            top_k=options.top_k,
            filter=options.filter or None,
            include_metadata=options.include_metadata,
            namespace=self._namespace,
        )
        return [
            VectorSearchResult(
                id=match.id,
                score=float(match.score),
                metadata=dict(match.metadata or {}),
            )
            for match in response.matches
        ]

    def _delete(self, collection: str, ids: list[str]) -> None:
        self._index(collection).delete(ids=ids, namespace=self._namespace)

    def _get(self, collection: str, vector_id: str) -> VectorSearchResult | None:
        response = self._index(collection).fetch(ids=[vector_id], namespace=self._namespace)
        vector = response.vectors.get(vector_id)
        if vector is None:
            return None
        return VectorSearchResult(
            id=vector.id,
            score=1.0,
            metadata=dict(vector.metadata or {}),
            values=list(vector.values),
        )

    def _get_stats(self, collection: str) -> CollectionStats:
        stats = self._index(collection).describe_index_stats()
        return CollectionStats(
            vector_count=int(stats.total_vector_count or 0),
            dimension=int(stats.dimension or 0),
        )
