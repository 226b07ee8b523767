"""Vector index backends.

    - ChromaVectorIndex   : self-hosted Chroma server or embedded store
    - PineconeVectorIndex : Pinecone serverless (managed cloud)

:func:`build_vector_index` is the single place the backend is chosen.
"""

from __future__ import annotations

from src.config.settings import Settings
from src.interfaces.vector_index import IVectorIndex
from src.models.vector import VectorBackend
from src.providers.vector_index.base import BaseVectorIndex


def build_vector_index(settings: Settings) -> IVectorIndex:
    """Construct (but do not connect) the backend selected by *settings*."""
    if settings.vector_backend is VectorBackend.PINECONE:
        from src.providers.vector_index.pinecone_index import PineconeVectorIndex

        return PineconeVectorIndex(
            api_key=settings.pinecone_api_key,
            cloud=settings.pinecone_cloud,
            region=settings.pinecone_region,
            namespace=settings.pinecone_namespace,
            connect_max_attempts=settings.connect_max_attempts,
            connect_base_delay=settings.connect_base_delay,
        )

    from src.providers.vector_index.chromadb_index import ChromaVectorIndex

    return ChromaVectorIndex(
        host=settings.chroma_host,
        port=settings.chroma_port,
        persist_directory=settings.chroma_persist_dir,
        connect_max_attempts=settings.connect_max_attempts,
        connect_base_delay=settings.connect_base_delay,
    )


__all__ = ["BaseVectorIndex", "build_vector_index"]
