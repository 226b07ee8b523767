"""ChromaDB vector index backend.

Connects to a self-hosted Chroma server through ``chromadb.HttpClient`` when
``chroma_host`` is set, otherwise opens an embedded ``PersistentClient`` on
``chroma_persist_dir``.  Collections use cosine distance; the similarity
score reported to callers is ``1 - distance`` clamped to ``[0, 1]``.

Vectors are always supplied pre-computed, so collections are opened with
``embedding_function=None`` and Chroma never loads its default ONNX model.
"""

from __future__ import annotations

import os
from typing import Any

# Disable Chroma's anonymous telemetry before the package is imported.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog
from chromadb.config import Settings as ChromaSettings

from src.models.vector import CollectionStats, SearchOptions, VectorRecord, VectorSearchResult
from src.providers.vector_index.base import BaseVectorIndex, flatten_metadata

logger = structlog.get_logger(logger_name=__name__)

# Chroma rejects very large single upserts; page through records.
_UPSERT_PAGE_SIZE = 500

# Stored alongside user metadata so no record ever has an empty metadata dict.
_ID_KEY = "vector_id"


def _to_where(filter_: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate a flat equality filter into a Chroma ``where`` clause."""
    if not filter_:
        return None
    if any(key.startswith("$") for key in filter_):
        return filter_
    clauses = [{key: value} for key, value in filter_.items()]
    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


def _strip(metadata: dict[str, Any] | None) -> dict[str, Any]:
    return {k: v for k, v in (metadata or {}).items() if k != _ID_KEY}


class ChromaVectorIndex(BaseVectorIndex):
    """Vector index backed by ChromaDB.

    Parameters
    ----------
    host:
        Chroma server host; empty string selects the embedded client.
    port:
        Chroma server port.
    persist_directory:
        On-disk location for the embedded client.
    """

    def __init__(
        self,
        host: str = "",
        port: int = 8000,
        persist_directory: str = "./data/chromadb",
        connect_max_attempts: int = 8,
        connect_base_delay: float = 0.5,
    ) -> None:
        super().__init__(
            connect_max_attempts=connect_max_attempts,
            connect_base_delay=connect_base_delay,
        )
        self._host = host
        self._port = port
        self._persist_directory = persist_directory
        self._client: Any = None
        self._collections: dict[str, Any] = {}

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        settings = ChromaSettings(anonymized_telemetry=False)
        if self._host:
            client = chromadb.HttpClient(host=self._host, port=self._port, settings=settings)
        else:
            client = chromadb.PersistentClient(path=self._persist_directory, settings=settings)
        client.heartbeat()
        self._client = client
        logger.info(
            "chromadb_connected",
            mode="http" if self._host else "embedded",
            target=f"{self._host}:{self._port}" if self._host else self._persist_directory,
        )

    def _disconnect(self) -> None:
        self._collections.clear()
        self._client = None

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def _create_collection(self, name: str, dimension: int) -> None:
        self._collections[name] = self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine", "dimension": dimension},
            embedding_function=None,
        )

    def _has_collection(self, name: str) -> bool:
        # list_collections() returns names on chromadb >= 0.6, objects before.
        names = {c if isinstance(c, str) else c.name for c in self._client.list_collections()}
        return name in names

    def _collection(self, name: str) -> Any:
        if name not in self._collections:
            self._collections[name] = self._client.get_collection(
                name=name, embedding_function=None
            )
        return self._collections[name]

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------

    def _upsert(self, collection: str, records: list[VectorRecord]) -> None:
        target = self._collection(collection)
        for start in range(0, len(records), _UPSERT_PAGE_SIZE):
            page = records[start : start + _UPSERT_PAGE_SIZE]
            target.upsert(
                ids=[r.id for r in page],
                embeddings=[r.values for r in page],
                metadatas=[{**flatten_metadata(r.metadata), _ID_KEY: r.id} for r in page],
            )

    def _query(
        self, collection: str, query_vector: list[float], options: SearchOptions
    ) -> list[VectorSearchResult]:
        target = self._collection(collection)
        count = target.count()
        if count == 0:
            return []
        response = target.query(
            query_embeddings=[query_vector],
            n_results=min(options.top_k, count),
            where=_to_where(options.filter),
            include=["metadatas", "distances"],
        )
        ids = response["ids"][0]
        distances = response["distances"][0]
        metadatas = (response.get("metadatas") or [[None] * len(ids)])[0]

        results: list[VectorSearchResult] = []
        for vector_id, distance, metadata in zip(ids, distances, metadatas):
            results.append(
                VectorSearchResult(
                    id=vector_id,
                    score=max(0.0, min(1.0, 1.0 - float(distance))),
                    metadata=_strip(metadata) if options.include_metadata else {},
                )
            )
        return results

    def _delete(self, collection: str, ids: list[str]) -> None:
        self._collection(collection).delete(ids=ids)

    def _get(self, collection: str, vector_id: str) -> VectorSearchResult | None:
        response = self._collection(collection).get(
            ids=[vector_id], include=["embeddings", "metadatas"]
        )
        if not response["ids"]:
            return None
        embeddings = response.get("embeddings")
        values = (
            [float(v) for v in embeddings[0]]
            if embeddings is not None and len(embeddings) > 0
            else None
        )
        metadatas = response.get("metadatas") or [None]
        return VectorSearchResult(
            id=response["ids"][0],
            score=1.0,
            metadata=_strip(metadatas[0]),
            values=values,
        )

    def _get_stats(self, collection: str) -> CollectionStats:
        target = self._collection(collection)
        count = target.count()
        dimension = int((target.metadata or {}).get("dimension", 0))
        if not dimension and count:
            sample = target.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is not None and len(embeddings) > 0:
                dimension = len(embeddings[0])
        return CollectionStats(vector_count=count, dimension=dimension)
