"""Orchestrator for document ingestion.

Pipeline stages: **fingerprint -> chunk -> embed -> upsert -> record**.

Each document becomes exactly one :class:`~src.models.job.Job`, whose status
moves ``PENDING -> PROCESSING -> INDEXED`` (or ``FAILED``).  The flow is:

    1. Fingerprint the normalized text.  An existing job that is pending,
       processing or indexed is returned as-is; a FAILED job is claimed and
       reprocessed under the same id; otherwise a PENDING job is created.
       Losing the fingerprint uniqueness race folds into the winner's id.
    2. Chunk the normalized text and mark the job PROCESSING.
    3. Embed every chunk through the cache-aware AIService.
    4. Upsert vectors with ids ``{job_id}_chunk_{position}``.
    5. Replace the chunk records, store vector ids, mark INDEXED.

Vector ids are deterministic, so reprocessing overwrites rather than
duplicates.  Vectors written before a later step fails are not rolled back.

All collaborators are injected via the constructor.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import TYPE_CHECKING

import structlog

from src.models.document import StructuredDocument
from src.models.job import (
    ChunkRecord,
    IngestionResult,
    Job,
    JobStatus,
    TextChunk,
    vector_id_for,
)
from src.models.vector import VectorRecord
from src.services.fingerprint import ContentFingerprinter
from src.services.ingestion.chunker import TextChunker
from src.utils.concurrency import gather_ingestions
from src.utils.errors import ConfigurationError, JobConflictError
from src.utils.logging import bind_job_context

if TYPE_CHECKING:
    from src.interfaces.content_extractor import IContentExtractor
    from src.interfaces.record_store import IRecordStore
    from src.interfaces.vector_index import IVectorIndex
    from src.services.ai_service import AIService

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Runs documents through fingerprint -> chunk -> embed -> upsert -> record.

    Parameters
    ----------
    ai_service:
        Cache-aware embedding facade.
    chunker:
        Sliding-window splitter.
    vector_index:
        Similarity-search backend; must be initialized (or initializing).
    record_store:
        Durable job / chunk persistence.
    collection:
        Vector collection every chunk is written to.
    extractor:
        Optional URL extractor used by :meth:`ingest_url`.
    fingerprinter:
        Content hasher; defaults to SHA-256 over normalized text.
    concurrency:
        Maximum ingestions running at once across this service.
    ready_timeout:
        Seconds to wait for the vector index before giving up.
    ready_poll_interval:
        Seconds between readiness checks.
    """

    def __init__(
        self,
        ai_service: AIService,
        chunker: TextChunker,
        vector_index: IVectorIndex,
        record_store: IRecordStore,
        collection: str = "job_embeddings",
        extractor: IContentExtractor | None = None,
        fingerprinter: ContentFingerprinter | None = None,
        concurrency: int = 3,
        ready_timeout: float = 30.0,
        ready_poll_interval: float = 0.3,
    ) -> None:
        self._ai = ai_service
        self._chunker = chunker
        self._vector_index = vector_index
        self._records = record_store
        self._collection = collection
        self._extractor = extractor
        self._fingerprinter = fingerprinter or ContentFingerprinter()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._ready_timeout = ready_timeout
        self._ready_poll_interval = ready_poll_interval

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_url(self, url: str, source: str = "") -> IngestionResult:
        """Extract *url* and ingest the resulting document.

        Raises
        ------
        ExtractionError
            If the page cannot be extracted; no job is created.
        """
        if self._extractor is None:
            raise ConfigurationError(message="No content extractor configured")
        document = await self._extractor.extract(url)
        return await self.ingest_document(document, source)

    async def ingest_document(self, document: StructuredDocument, source: str = "") -> IngestionResult:
        """Ingest one document, bounded by the service-wide concurrency limit."""
        async with self._semaphore:
            return await self._ingest(document, source)

    async def ingest_many(
        self, documents: list[StructuredDocument], source: str = ""
    ) -> tuple[list[IngestionResult], list[tuple[str, BaseException]]]:
        """Ingest several documents concurrently.

        Returns ``(results, failures)``; one failing document does not stop
        the others.
        """
        return await gather_ingestions(
            [self._ingest(doc, source) for doc in documents],
            self._semaphore,
            labels=[doc.url for doc in documents],
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _ingest(self, document: StructuredDocument, source: str) -> IngestionResult:
        start = time.monotonic()
        text = self._fingerprinter.normalize(document.content_text)
        fingerprint = self._fingerprinter.fingerprint(document.content_text)

        with bind_job_context(fingerprint=fingerprint[:12], url=document.url):
            job, existing = await self._resolve_job(document, source, fingerprint, text)
            if existing:
                logger.info("ingestion_deduplicated", job_id=job.id, status=job.status.value)
                return IngestionResult(
                    job_id=job.id,
                    url=document.url,
                    status=job.status,
                    chunk_count=len(job.vector_ids),
                    deduplicated=True,
                    ingestion_time=round(time.monotonic() - start, 3),
                )

            with bind_job_context(job_id=job.id):
                try:
                    chunk_count = await self._process(job, text)
                except asyncio.CancelledError:
                    logger.warning("ingestion_cancelled", job_id=job.id)
                    raise
                except Exception as exc:
                    await self._mark_failed(job.id, exc)
                    raise

            elapsed = round(time.monotonic() - start, 3)
            logger.info(
                "ingestion_complete",
                job_id=job.id,
                chunks=chunk_count,
                ingestion_time=elapsed,
            )
            return IngestionResult(
                job_id=job.id,
                url=document.url,
                status=JobStatus.INDEXED,
                chunk_count=chunk_count,
                ingestion_time=elapsed,
            )

    async def _resolve_job(
        self,
        document: StructuredDocument,
        source: str,
        fingerprint: str,
        text: str,
    ) -> tuple[Job, bool]:
        """Return ``(job, already_handled)`` for *fingerprint*."""
        existing = await self._records.find_job_by_fingerprint(fingerprint)
        if existing is not None:
            if existing.status.is_in_flight_or_done:
                return existing, True
            claimed = await self._records.claim_job(
                existing.id, expected=JobStatus.FAILED, new_status=JobStatus.PENDING
            )
            if not claimed:
                return existing, True
            logger.info("failed_job_reclaimed", job_id=existing.id)
            return existing, False

        job = Job(
            id=str(uuid.uuid4()),
            fingerprint=fingerprint,
            url=document.url,
            canonical_url=document.canonical_url,
            title=document.title,
            source=source,
            language=document.language,
            published_at=document.published_at,
            tags=list(document.tags),
            metadata=dict(document.metadata),
            content=text,
            status=JobStatus.PENDING,
        )
        try:
            return await self._records.create_job(job), False
        except JobConflictError:
            winner = await self._records.find_job_by_fingerprint(fingerprint)
            if winner is None:
                raise
            logger.info("ingestion_conflict_folded", job_id=winner.id)
            return winner, True

    async def _process(self, job: Job, text: str) -> int:
        chunks: list[TextChunk] = list(self._chunker.chunk(text))
        await self._records.update_job_status(job.id, JobStatus.PROCESSING)

        if not chunks:
            await self._records.replace_chunks(job.id, [])
            await self._records.update_job_status(job.id, JobStatus.INDEXED, vector_ids=[])
            return 0

        # Readiness is settled before any embedding call.
        await self._vector_index.wait_until_ready(
            timeout=self._ready_timeout, poll_interval=self._ready_poll_interval
        )
        vectors = await self._ai.embed_batch([c.text for c in chunks])

        records = [
            VectorRecord(
                id=vector_id_for(job.id, chunk.position),
                values=vector,
                metadata={
                    "job_id": job.id,
                    "chunk_index": chunk.position,
                    "url": job.url,
                    "title": job.title,
                    "source": job.source,
                },
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        # An in-flight upsert finishes even if this task is cancelled; the
        # cancellation still propagates and nothing further is recorded.
        await asyncio.shield(self._vector_index.upsert(self._collection, records))

        model = self._ai.embedding_provider_name
        await self._records.replace_chunks(
            job.id,
            [
                ChunkRecord(
                    job_id=job.id,
                    position=chunk.position,
                    text=chunk.text,
                    token_count=chunk.token_count,
                    vector_id=record.id,
                    embedding_model=model,
                )
                for chunk, record in zip(chunks, records)
            ],
        )
        await self._records.update_job_status(
            job.id, JobStatus.INDEXED, vector_ids=[r.id for r in records]
        )
        return len(chunks)

    async def _mark_failed(self, job_id: str, exc: BaseException) -> None:
        logger.error("ingestion_failed", job_id=job_id, error=str(exc))
        try:
            await self._records.update_job_status(
                job_id, JobStatus.FAILED, error_message=str(exc)[:1000]
            )
        except Exception as store_exc:
            logger.warning("job_fail_mark_failed", job_id=job_id, error=str(store_exc))
