"""Vector-index data models shared by every backend."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorBackend(str, Enum):
    """Selectable vector index backends."""

    CHROMA = "chroma"  # self-hosted ANN service (or embedded store)
    PINECONE = "pinecone"  # managed cloud index


class VectorRecord(BaseModel):
    """One vector to upsert.  ``id`` is ``{job_id}_chunk_{position}``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    values: list[float] | None = None


class SearchOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_k: int = Field(default=10, ge=1)
    filter: dict[str, Any] | None = None
    include_metadata: bool = True


class CollectionStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    vector_count: int = 0
    dimension: int = 0
