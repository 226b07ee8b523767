"""Unit tests for SQLiteRecordStore against a temporary database."""

from __future__ import annotations

import asyncio

import pytest

from src.models.ai import ProviderCallLog
from src.models.job import ChunkRecord, Job, JobStatus, vector_id_for
from src.providers.records.sqlite_record_store import SQLiteRecordStore
from src.services.fingerprint import ContentFingerprinter
from src.utils.errors import JobConflictError

_FP = ContentFingerprinter()


def _make_job(job_id: str = "job-1", text: str = "content one", **kwargs) -> Job:
    fields = {
        "id": job_id,
        "fingerprint": _FP.fingerprint(text),
        "url": f"https://example.com/{job_id}",
        "title": f"Title {job_id}",
        "content": text,
    }
    fields.update(kwargs)
    return Job(**fields)


class TestJobs:
    @pytest.mark.asyncio
    async def test_create_and_get(self, record_store: SQLiteRecordStore) -> None:
        job = _make_job(tags=["python", "remote"], metadata={"author": "x"})
        await record_store.create_job(job)

        loaded = await record_store.get_job("job-1")
        assert loaded is not None
        assert loaded.fingerprint == job.fingerprint
        assert loaded.tags == ["python", "remote"]
        assert loaded.metadata == {"author": "x"}
        assert loaded.status is JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_job_is_none(self, record_store: SQLiteRecordStore) -> None:
        assert await record_store.get_job("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_fingerprint_conflicts(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job("job-1", "same text"))
        with pytest.raises(JobConflictError) as exc_info:
            await record_store.create_job(_make_job("job-2", "same text"))
        assert exc_info.value.fingerprint == _FP.fingerprint("same text")

    @pytest.mark.asyncio
    async def test_concurrent_inserts_have_one_winner(self, record_store: SQLiteRecordStore) -> None:
        jobs = [_make_job(f"job-{i}", "racing text") for i in range(5)]
        results = await asyncio.gather(
            *(record_store.create_job(j) for j in jobs), return_exceptions=True
        )
        winners = [r for r in results if isinstance(r, Job)]
        assert len(winners) == 1
        assert all(isinstance(r, JobConflictError) for r in results if not isinstance(r, Job))

    @pytest.mark.asyncio
    async def test_find_by_fingerprint(self, record_store: SQLiteRecordStore) -> None:
        job = await record_store.create_job(_make_job())
        found = await record_store.find_job_by_fingerprint(job.fingerprint)
        assert found is not None and found.id == job.id

    @pytest.mark.asyncio
    async def test_status_updates(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job())
        await record_store.update_job_status(
            "job-1", JobStatus.INDEXED, vector_ids=["job-1_chunk_0"]
        )
        job = await record_store.get_job("job-1")
        assert job.status is JobStatus.INDEXED
        assert job.vector_ids == ["job-1_chunk_0"]

        await record_store.update_job_status("job-1", JobStatus.FAILED, error_message="boom")
        job = await record_store.get_job("job-1")
        assert job.status is JobStatus.FAILED
        assert job.error_message == "boom"
        assert job.vector_ids == ["job-1_chunk_0"]

    @pytest.mark.asyncio
    async def test_claim_is_compare_and_set(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job(status=JobStatus.FAILED, error_message="x"))

        first = await record_store.claim_job("job-1", JobStatus.FAILED, JobStatus.PENDING)
        second = await record_store.claim_job("job-1", JobStatus.FAILED, JobStatus.PENDING)

        assert first is True
        assert second is False
        job = await record_store.get_job("job-1")
        assert job.status is JobStatus.PENDING
        assert job.error_message is None

    @pytest.mark.asyncio
    async def test_summary(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job())
        await record_store.set_job_summary("job-1", "Short summary.")
        assert (await record_store.get_job("job-1")).summary == "Short summary."

    @pytest.mark.asyncio
    async def test_count_jobs_includes_every_status(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job("a", "one"))
        await record_store.create_job(_make_job("b", "two", status=JobStatus.INDEXED))
        counts = await record_store.count_jobs()
        assert counts == {"PENDING": 1, "PROCESSING": 0, "INDEXED": 1, "FAILED": 0}


class TestFindJobs:
    @pytest.mark.asyncio
    async def test_order_and_filters(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job("a", "one", source="blog", language="en", tags=["x"]))
        await record_store.create_job(_make_job("b", "two", source="feed", language="en", tags=["y"]))
        await record_store.create_job(_make_job("c", "three", source="blog", language="de", tags=["x", "z"]))

        assert [j.id for j in await record_store.find_jobs(["c", "a", "b"])] == ["c", "a", "b"]
        assert [j.id for j in await record_store.find_jobs(["c", "a", "b"], source="blog")] == ["c", "a"]
        assert [j.id for j in await record_store.find_jobs(["a", "b", "c"], language="en")] == ["a", "b"]
        assert [j.id for j in await record_store.find_jobs(["a", "b", "c"], tags=["z", "y"])] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_empty_ids(self, record_store: SQLiteRecordStore) -> None:
        assert await record_store.find_jobs([]) == []


class TestChunks:
    @pytest.mark.asyncio
    async def test_replace_chunks(self, record_store: SQLiteRecordStore) -> None:
        await record_store.create_job(_make_job())

        def chunk(position: int, text: str) -> ChunkRecord:
            return ChunkRecord(
                job_id="job-1",
                position=position,
                text=text,
                vector_id=vector_id_for("job-1", position),
            )

        await record_store.replace_chunks("job-1", [chunk(1, "b"), chunk(0, "a"), chunk(2, "c")])
        await record_store.replace_chunks("job-1", [chunk(0, "A"), chunk(1, "B")])

        chunks = await record_store.get_chunks("job-1")
        assert [(c.position, c.text) for c in chunks] == [(0, "A"), (1, "B")]
        assert chunks[1].vector_id == "job-1_chunk_1"


class TestCacheAndAudit:
    @pytest.mark.asyncio
    async def test_cache_row_upsert(self, record_store: SQLiteRecordStore) -> None:
        await record_store.record_embedding_use("k", "h", "openai", "m1", 3)
        await record_store.record_embedding_use("k", "h", "openai", "", 3, hit=True)

        entry = await record_store.get_cache_entry("k")
        assert entry.hit_count == 1
        assert entry.model == "m1"
        assert entry.last_used_at is not None

    @pytest.mark.asyncio
    async def test_missing_cache_row(self, record_store: SQLiteRecordStore) -> None:
        assert await record_store.get_cache_entry("nope") is None

    @pytest.mark.asyncio
    async def test_call_log(self, record_store: SQLiteRecordStore) -> None:
        await record_store.log_provider_call(ProviderCallLog(provider="openai", operation="chat"))
        await record_store.log_provider_call(
            ProviderCallLog(provider="gemini", operation="embed_batch", success=False)
        )
        assert await record_store.count_provider_calls() == 2
        assert await record_store.count_provider_calls("openai") == 1
