"""Document ingestion pipeline.

Orchestrates: **fingerprint -> chunk -> embed -> upsert -> record**.

1. **Fingerprint** (services/fingerprint.py) -- normalized SHA-256 used to
   deduplicate jobs.
2. **Chunk** (chunker.py / TextChunker) -- fixed-size overlapping windows.
3. **Embed** (via AIService) -- cache-aware, sub-batched embedding calls.
4. **Upsert** (via IVectorIndex) -- deterministic vector ids per chunk.
5. **Record** (via IRecordStore) -- chunk provenance and job status.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "IngestionService",
    "TextChunker",
]
