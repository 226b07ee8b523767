"""scrape-index domain models. Re-exports all public model classes.

    - ai.py: provider kinds/capabilities, embeddings, chat, audit rows
    - document.py: StructuredDocument produced by extractors
    - job.py: Job lifecycle, chunks, ingestion results
    - vector.py: vector records, search options, collection stats
"""

from __future__ import annotations

from src.models.ai import (
    CacheEntry,
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    EmbeddingBatch,
    EmbeddingVector,
    ProviderCallLog,
    ProviderKind,
    StreamDelta,
    StreamDone,
    StreamEvent,
)
from src.models.document import StructuredDocument
from src.models.job import (
    ChunkRecord,
    IngestionResult,
    Job,
    JobStatus,
    TextChunk,
    vector_id_for,
)
from src.models.vector import (
    CollectionStats,
    SearchOptions,
    VectorBackend,
    VectorRecord,
    VectorSearchResult,
)

__all__ = [
    "CacheEntry",
    "Capability",
    "ChatMessage",
    "ChatOptions",
    "ChatResult",
    "ChunkRecord",
    "CollectionStats",
    "EmbeddingBatch",
    "EmbeddingVector",
    "IngestionResult",
    "Job",
    "JobStatus",
    "ProviderCallLog",
    "ProviderKind",
    "SearchOptions",
    "StreamDelta",
    "StreamDone",
    "StreamEvent",
    "StructuredDocument",
    "TextChunk",
    "VectorBackend",
    "VectorRecord",
    "VectorSearchResult",
    "vector_id_for",
]
