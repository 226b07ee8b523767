"""Semantic search and job lookup over the indexed corpus.

Search embeds the query through :class:`AIService` (so repeated queries hit
the embedding cache), asks the vector index for nearest chunks, collapses
chunk hits to distinct jobs in best-score order and loads those jobs from
the record store, applying the metadata filters there.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.record_store import IRecordStore
from src.interfaces.vector_index import IVectorIndex
from src.models.ai import ProviderKind
from src.models.job import ChunkRecord, Job
from src.models.vector import SearchOptions
from src.services.ai_service import AIService
from src.utils.errors import JobNotFoundError

logger = structlog.get_logger(logger_name=__name__)

# Several chunks usually belong to the same job, so fetch more hits than jobs.
_OVERSAMPLE = 3


class SearchService:
    """Query-side operations: search, job detail and summarisation."""

    def __init__(
        self,
        ai_service: AIService,
        vector_index: IVectorIndex,
        record_store: IRecordStore,
        collection: str = "job_embeddings",
    ) -> None:
        self._ai = ai_service
        self._vector_index = vector_index
        self._records = record_store
        self._collection = collection

    async def search(
        self,
        query: str,
        filters: dict[str, Any] | None = None,
        top_k: int = 10,
    ) -> list[Job]:
        """Return up to *top_k* jobs whose chunks best match *query*.

        ``filters`` may contain ``source``, ``language`` and ``tags``
        (any-of).  Unknown filter keys are ignored.
        """
        filters = filters or {}
        vector = await self._ai.embed(query)
        hits = await self._vector_index.search(
            self._collection, vector, SearchOptions(top_k=top_k * _OVERSAMPLE)
        )

        job_ids: list[str] = []
        for hit in hits:
            job_id = hit.metadata.get("job_id")
            if job_id and job_id not in job_ids:
                job_ids.append(job_id)

        tags = filters.get("tags")
        if isinstance(tags, str):
            tags = [tags]
        jobs = await self._records.find_jobs(
            job_ids,
            source=filters.get("source"),
            language=filters.get("language"),
            tags=tags,
        )
        logger.info("search_complete", hits=len(hits), jobs=len(jobs), top_k=top_k)
        return jobs[:top_k]

    async def get_job(self, job_id: str) -> tuple[Job, list[ChunkRecord]]:
        job = await self._records.get_job(job_id)
        if job is None:
            raise JobNotFoundError(message=f"Job '{job_id}' not found")
        return job, await self._records.get_chunks(job_id)

    async def summarize_job(
        self,
        job_id: str,
        provider: ProviderKind | None = None,
        model: str | None = None,
    ) -> str:
        """Generate and store a summary for the job's content."""
        job, _ = await self.get_job(job_id)
        result = await self._ai.summarize(job.title, job.content, provider=provider, model=model)
        summary = result.content.strip()
        await self._records.set_job_summary(job_id, summary)
        logger.info("job_summarized", job_id=job_id, model=result.model)
        return summary
