"""Job lifecycle models for the ingestion pipeline.

A :class:`Job` moves through ``PENDING -> PROCESSING -> INDEXED`` or ends in
``FAILED``.  A FAILED job can be claimed again (back to PENDING) by a later
ingestion of the same content, which then reprocesses it under the same id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"

    @property
    def is_in_flight_or_done(self) -> bool:
        """True when a new ingestion of the same content must not reprocess."""
        return self is not JobStatus.FAILED


def vector_id_for(job_id: str, position: int) -> str:
    """Deterministic vector id, so reprocessing overwrites instead of duplicating."""
    return f"{job_id}_chunk_{position}"


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------
class TextChunk(BaseModel):
    """One window produced by the chunker; ``start``/``end`` are character offsets."""

    model_config = ConfigDict(frozen=True)

    position: int = Field(ge=0)
    text: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    token_count: int = Field(default=0, ge=0)


class ChunkRecord(BaseModel):
    """Persisted provenance row linking a chunk to its vector."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    position: int = Field(ge=0)
    text: str
    token_count: int = Field(default=0, ge=0)
    vector_id: str
    embedding_model: str = ""


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------
class Job(BaseModel):
    """Durable record of one ingested document."""

    model_config = ConfigDict(frozen=True)

    id: str
    fingerprint: str = Field(min_length=64, max_length=64)
    url: str
    canonical_url: str | None = None
    title: str = ""
    source: str = ""
    language: str | None = None
    published_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    content: str = ""
    summary: str | None = None
    status: JobStatus = JobStatus.PENDING
    vector_ids: list[str] = Field(default_factory=list)
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def to_summary(self) -> dict[str, Any]:
        """Compact JSON-friendly view used by search results and the RPC layer."""
        return {
            "jobId": self.id,
            "url": self.url,
            "canonicalUrl": self.canonical_url,
            "title": self.title,
            "source": self.source,
            "language": self.language,
            "tags": list(self.tags),
            "status": self.status.value,
            "summary": self.summary,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "createdAt": self.created_at.isoformat(),
        }


class IngestionResult(BaseModel):
    """Outcome of one ingestion call."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    url: str
    status: JobStatus
    chunk_count: int = Field(default=0, ge=0)
    deduplicated: bool = False
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Seconds.")
