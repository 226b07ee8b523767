"""Abstract interfaces (ports) for every external dependency of the pipeline.

Services depend only on these ABCs; concrete adapters live under
``src/providers/`` and are wired together in ``src/main.py``.

    IAIProvider        : embeddings and chat (OpenAI, Anthropic, Gemini)
    ICacheProvider     : fast embedding-cache tier (TTLCache)
    IContentExtractor  : URL -> StructuredDocument (httpx + trafilatura)
    IRecordStore       : jobs, chunks, durable cache tier, call audit (SQLite)
    IVectorIndex       : similarity search (ChromaDB, Pinecone)
"""

from src.interfaces.ai_provider import IAIProvider
from src.interfaces.cache_provider import ICacheProvider
from src.interfaces.content_extractor import IContentExtractor
from src.interfaces.record_store import IRecordStore
from src.interfaces.vector_index import IVectorIndex

__all__ = [
    "IAIProvider",
    "ICacheProvider",
    "IContentExtractor",
    "IRecordStore",
    "IVectorIndex",
]
