"""SQLite-backed record store.

Persists jobs, chunk provenance, the durable embedding-cache tier and the
provider call audit in one local SQLite database (``data/scrape_index.db``
by default).  Uses ``aiosqlite`` for async I/O with one short-lived
connection per operation.

The ``UNIQUE`` constraint on ``jobs.fingerprint`` arbitrates concurrent
ingestion of identical content; a losing insert surfaces as
:class:`~src.utils.errors.JobConflictError`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.record_store import IRecordStore
from src.models.ai import CacheEntry, ProviderCallLog
from src.models.job import ChunkRecord, Job, JobStatus
from src.utils.errors import BackendUnavailable, JobConflictError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/scrape_index.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS jobs (
    id             TEXT PRIMARY KEY,
    fingerprint    TEXT NOT NULL UNIQUE,
    url            TEXT NOT NULL,
    canonical_url  TEXT,
    title          TEXT NOT NULL DEFAULT '',
    source         TEXT NOT NULL DEFAULT '',
    language       TEXT,
    published_at   TEXT,
    tags           TEXT NOT NULL DEFAULT '[]',
    metadata       TEXT NOT NULL DEFAULT '{}',
    content        TEXT NOT NULL DEFAULT '',
    summary        TEXT,
    status         TEXT NOT NULL,
    vector_ids     TEXT NOT NULL DEFAULT '[]',
    error_message  TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS chunks (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    job_id           TEXT    NOT NULL REFERENCES jobs(id),
    position         INTEGER NOT NULL,
    content          TEXT    NOT NULL,
    token_count      INTEGER NOT NULL DEFAULT 0,
    vector_id        TEXT    NOT NULL,
    embedding_model  TEXT    NOT NULL DEFAULT '',
    UNIQUE(job_id, position)
);
""",
    """\
CREATE TABLE IF NOT EXISTS embedding_cache (
    cache_key     TEXT PRIMARY KEY,
    content_hash  TEXT    NOT NULL,
    provider      TEXT    NOT NULL,
    model         TEXT    NOT NULL DEFAULT '',
    dimension     INTEGER NOT NULL DEFAULT 0,
    hit_count     INTEGER NOT NULL DEFAULT 0,
    created_at    TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    last_used_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
    """\
CREATE TABLE IF NOT EXISTS provider_call_log (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    provider       TEXT    NOT NULL,
    operation      TEXT    NOT NULL,
    model          TEXT    NOT NULL DEFAULT '',
    input_tokens   INTEGER NOT NULL DEFAULT 0,
    output_tokens  INTEGER NOT NULL DEFAULT 0,
    total_tokens   INTEGER NOT NULL DEFAULT 0,
    success        INTEGER NOT NULL,
    error_message  TEXT,
    latency_ms     INTEGER NOT NULL DEFAULT 0,
    created_at     TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);",
    "CREATE INDEX IF NOT EXISTS idx_jobs_source ON jobs(source);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_job ON chunks(job_id);",
    "CREATE INDEX IF NOT EXISTS idx_call_log_provider ON provider_call_log(provider);",
]

_INSERT_JOB_SQL = """\
INSERT INTO jobs (id, fingerprint, url, canonical_url, title, source, language,
                  published_at, tags, metadata, content, summary, status,
                  vector_ids, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPSERT_CACHE_SQL = """\
INSERT INTO embedding_cache (cache_key, content_hash, provider, model, dimension, hit_count)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(cache_key)
DO UPDATE SET hit_count    = embedding_cache.hit_count + excluded.hit_count,
              model        = CASE WHEN excluded.model != '' THEN excluded.model
                                  ELSE embedding_cache.model END,
              dimension    = excluded.dimension,
              last_used_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_INSERT_CALL_LOG_SQL = """\
INSERT INTO provider_call_log (provider, operation, model, input_tokens, output_tokens,
                               total_tokens, success, error_message, latency_ms)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _row_to_job(row: aiosqlite.Row) -> Job:
    r = dict(row)
    return Job(
        id=r["id"],
        fingerprint=r["fingerprint"],
        url=r["url"],
        canonical_url=r["canonical_url"],
        title=r["title"],
        source=r["source"],
        language=r["language"],
        published_at=_parse_dt(r["published_at"]),
        tags=json.loads(r["tags"]),
        metadata=json.loads(r["metadata"]),
        content=r["content"],
        summary=r["summary"],
        status=JobStatus(r["status"]),
        vector_ids=json.loads(r["vector_ids"]),
        error_message=r["error_message"],
        created_at=_parse_dt(r["created_at"]),
        updated_at=_parse_dt(r["updated_at"]),
    )


class SQLiteRecordStore(IRecordStore):
    """SQLite-backed persistence for jobs, chunks, cache rows and call audit."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout

    def get_provider_name(self) -> str:
        return "sqlite"

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path), timeout=self._timeout) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.OperationalError as exc:
            raise BackendUnavailable(
                message=f"Record store error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("record_store_initialized", path=str(self._db_path))

    async def close(self) -> None:
        # Connections are per-operation; nothing is held open.
        return None

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(self, job: Job) -> Job:
        async with self._connect() as db:
            try:
                await db.execute(
                    _INSERT_JOB_SQL,
                    (
                        job.id,
                        job.fingerprint,
                        job.url,
                        job.canonical_url,
                        job.title,
                        job.source,
                        job.language,
                        job.published_at.isoformat() if job.published_at else None,
                        json.dumps(job.tags),
                        json.dumps(job.metadata, default=str),
                        job.content,
                        job.summary,
                        job.status.value,
                        json.dumps(job.vector_ids),
                        job.error_message,
                        job.created_at.isoformat(),
                        job.updated_at.isoformat(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                raise JobConflictError(
                    message=f"Fingerprint {job.fingerprint[:12]} already owned by another job",
                    provider_name=self.get_provider_name(),
                    fingerprint=job.fingerprint,
                ) from exc
        logger.debug("job_created", job_id=job.id, status=job.status.value)
        return job

    async def get_job(self, job_id: str) -> Job | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
            row = await cursor.fetchone()
        return _row_to_job(row) if row else None

    async def find_job_by_fingerprint(self, fingerprint: str) -> Job | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM jobs WHERE fingerprint = ?", (fingerprint,))
            row = await cursor.fetchone()
        return _row_to_job(row) if row else None

    async def claim_job(self, job_id: str, expected: JobStatus, new_status: JobStatus) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE jobs SET status = ?, error_message = NULL, updated_at = ? "
                "WHERE id = ? AND status = ?",
                (new_status.value, _now(), job_id, expected.value),
            )
            await db.commit()
            claimed = cursor.rowcount == 1
        logger.debug("job_claim", job_id=job_id, expected=expected.value, claimed=claimed)
        return claimed

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        vector_ids: list[str] | None = None,
        error_message: str | None = None,
    ) -> None:
        assignments = ["status = ?", "updated_at = ?", "error_message = ?"]
        params: list[Any] = [status.value, _now(), error_message]
        if vector_ids is not None:
            assignments.append("vector_ids = ?")
            params.append(json.dumps(vector_ids))
        params.append(job_id)
        async with self._connect() as db:
            await db.execute(f"UPDATE jobs SET {', '.join(assignments)} WHERE id = ?", params)
            await db.commit()
        logger.debug("job_status_updated", job_id=job_id, status=status.value)

    async def set_job_summary(self, job_id: str, summary: str) -> None:
        async with self._connect() as db:
            await db.execute(
                "UPDATE jobs SET summary = ?, updated_at = ? WHERE id = ?",
                (summary, _now(), job_id),
            )
            await db.commit()

    async def find_jobs(
        self,
        job_ids: list[str],
        *,
        source: str | None = None,
        language: str | None = None,
        tags: list[str] | None = None,
    ) -> list[Job]:
        if not job_ids:
            return []
        placeholders = ", ".join("?" for _ in job_ids)
        sql = f"SELECT * FROM jobs WHERE id IN ({placeholders})"
        params: list[Any] = list(job_ids)
        if source:
            sql += " AND source = ?"
            params.append(source)
        if language:
            sql += " AND language = ?"
            params.append(language)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()

        by_id = {job.id: job for job in (_row_to_job(r) for r in rows)}
        wanted = set(tags or [])
        ordered: list[Job] = []
        for job_id in job_ids:
            job = by_id.get(job_id)
            if job is None:
                continue
            if wanted and not wanted.intersection(job.tags):
                continue
            ordered.append(job)
        return ordered

    async def count_jobs(self) -> dict[str, int]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT status, COUNT(*) AS total FROM jobs GROUP BY status")
            rows = await cursor.fetchall()
        counts = {status.value: 0 for status in JobStatus}
        for row in rows:
            counts[row["status"]] = row["total"]
        return counts

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def replace_chunks(self, job_id: str, chunks: list[ChunkRecord]) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM chunks WHERE job_id = ?", (job_id,))
            await db.executemany(
                "INSERT INTO chunks (job_id, position, content, token_count, vector_id, "
                "embedding_model) VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (c.job_id, c.position, c.text, c.token_count, c.vector_id, c.embedding_model)
                    for c in chunks
                ],
            )
            await db.commit()
        logger.debug("chunks_replaced", job_id=job_id, count=len(chunks))

    async def get_chunks(self, job_id: str) -> list[ChunkRecord]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT job_id, position, content, token_count, vector_id, embedding_model "
                "FROM chunks WHERE job_id = ? ORDER BY position",
                (job_id,),
            )
            rows = await cursor.fetchall()
        return [
            ChunkRecord(
                job_id=r["job_id"],
                position=r["position"],
                text=r["content"],
                token_count=r["token_count"],
                vector_id=r["vector_id"],
                embedding_model=r["embedding_model"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Durable embedding-cache tier
    # ------------------------------------------------------------------

    async def record_embedding_use(
        self,
        cache_key: str,
        content_hash: str,
        provider: str,
        model: str,
        dimension: int,
        hit: bool = False,
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                _UPSERT_CACHE_SQL,
                (cache_key, content_hash, provider, model, dimension, int(hit)),
            )
            await db.commit()

    async def get_cache_entry(self, cache_key: str) -> CacheEntry | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM embedding_cache WHERE cache_key = ?", (cache_key,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        r = dict(row)
        return CacheEntry(
            cache_key=r["cache_key"],
            content_hash=r["content_hash"],
            provider=r["provider"],
            model=r["model"],
            dimension=r["dimension"],
            hit_count=r["hit_count"],
            created_at=_parse_dt(r["created_at"]),
            last_used_at=_parse_dt(r["last_used_at"]),
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def log_provider_call(self, entry: ProviderCallLog) -> None:
        async with self._connect() as db:
            await db.execute(
                _INSERT_CALL_LOG_SQL,
                (
                    entry.provider,
                    entry.operation,
                    entry.model,
                    entry.input_tokens,
                    entry.output_tokens,
                    entry.total_tokens,
                    int(entry.success),
                    entry.error_message,
                    entry.latency_ms,
                ),
            )
            await db.commit()

    async def count_provider_calls(self, provider: str | None = None) -> int:
        """Return the number of audited calls, optionally for one provider."""
        sql = "SELECT COUNT(*) AS total FROM provider_call_log"
        params: tuple[Any, ...] = ()
        if provider:
            sql += " WHERE provider = ?"
            params = (provider,)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return int(row["total"]) if row else 0
