"""Abstract base class for the durable record store.

The record store persists jobs, chunk provenance, the durable embedding-cache
tier and the provider call audit.  Its ``UNIQUE(fingerprint)`` constraint on
jobs is the arbiter for concurrent ingestion of identical content: the
losing insert raises :class:`~src.utils.errors.JobConflictError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ai import CacheEntry, ProviderCallLog
from src.models.job import ChunkRecord, Job, JobStatus


class IRecordStore(ABC):
    """Contract for job / chunk / cache-audit persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open the store and create tables if they do not exist."""

    @abstractmethod
    async def close(self) -> None:
        """Close the underlying connection."""

    # -- Jobs ---------------------------------------------------------------

    @abstractmethod
    async def create_job(self, job: Job) -> Job:
        """Insert *job*.

        Raises
        ------
        src.utils.errors.JobConflictError
            If a job with the same fingerprint already exists.
        """

    @abstractmethod
    async def get_job(self, job_id: str) -> Job | None:
        """Return the job with *job_id*, or ``None``."""

    @abstractmethod
    async def find_job_by_fingerprint(self, fingerprint: str) -> Job | None:
        """Return the job owning *fingerprint*, or ``None``."""

    @abstractmethod
    async def claim_job(self, job_id: str, expected: JobStatus, new_status: JobStatus) -> bool:
        """Atomically move a job from *expected* to *new_status*.

        Returns ``False`` when the job was not in *expected* (someone else
        already claimed it).
        """

    @abstractmethod
    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        vector_ids: list[str] | None = None,
        error_message: str | None = None,
    ) -> None:
        """Set the job's status (and optionally its vector ids / error)."""

    @abstractmethod
    async def set_job_summary(self, job_id: str, summary: str) -> None:
        """Store a generated summary on the job."""

    @abstractmethod
    async def find_jobs(
        self,
        job_ids: list[str],
        *,
        source: str | None = None,
        language: str | None = None,
        tags: list[str] | None = None,
    ) -> list[Job]:
        """Load *job_ids*, keeping their order and applying the filters.

        ``tags`` matches jobs carrying at least one of the given tags.
        """

    @abstractmethod
    async def count_jobs(self) -> dict[str, int]:
        """Return job counts per status value."""

    # -- Chunks -------------------------------------------------------------

    @abstractmethod
    async def replace_chunks(self, job_id: str, chunks: list[ChunkRecord]) -> None:
        """Replace every chunk record of *job_id* with *chunks*."""

    @abstractmethod
    async def get_chunks(self, job_id: str) -> list[ChunkRecord]:
        """Return the job's chunks ordered by position."""

    # -- Durable embedding-cache tier -----------------------------------------

    @abstractmethod
    async def record_embedding_use(
        self,
        cache_key: str,
        content_hash: str,
        provider: str,
        model: str,
        dimension: int,
        hit: bool = False,
    ) -> None:
        """Upsert a cache row and refresh ``last_used_at``.

        ``hit=True`` increments ``hit_count``; a first write after a miss
        creates the row with a count of zero.
        """

    @abstractmethod
    async def get_cache_entry(self, cache_key: str) -> CacheEntry | None:
        """Return the durable cache row for *cache_key*, or ``None``."""

    # -- Audit ----------------------------------------------------------------

    @abstractmethod
    async def log_provider_call(self, entry: ProviderCallLog) -> None:
        """Append one provider call to the audit log."""
