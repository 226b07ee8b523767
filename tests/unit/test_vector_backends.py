"""Unit tests for the Chroma (embedded, on disk) and Pinecone (mocked) backends."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.config.settings import Settings
from src.models.vector import SearchOptions, VectorBackend, VectorRecord
from src.providers.vector_index import build_vector_index
from src.providers.vector_index.chromadb_index import ChromaVectorIndex
from src.providers.vector_index.pinecone_index import PineconeVectorIndex, index_name_for
from src.utils.errors import BackendUnavailable, ConfigurationError
from tests.conftest import fake_vector


def _record(vector_id: str, text: str, **metadata) -> VectorRecord:
    return VectorRecord(id=vector_id, values=fake_vector(text), metadata=metadata)


# ======================================================================
# Factory
# ======================================================================


class TestBuildVectorIndex:
    def test_default_is_chroma(self) -> None:
        index = build_vector_index(Settings(_env_file=None))
        assert isinstance(index, ChromaVectorIndex)

    def test_pinecone(self) -> None:
        index = build_vector_index(
            Settings(_env_file=None, vector_backend=VectorBackend.PINECONE, pinecone_api_key="pk")
        )
        assert isinstance(index, PineconeVectorIndex)


# ======================================================================
# Chroma
# ======================================================================


class TestChromaVectorIndex:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        index = ChromaVectorIndex(persist_directory=str(tmp_path / "chroma"))
        await index.initialize()
        try:
            await index.upsert(
                "jobs",
                [
                    _record("j1_chunk_0", "python role", job_id="j1", tags=["a", "b"]),
                    _record("j2_chunk_0", "rust role", job_id="j2", title=None),
                ],
            )

            results = await index.search("jobs", fake_vector("rust role"), SearchOptions(top_k=2))
            assert [r.id for r in results] == ["j2_chunk_0", "j1_chunk_0"]
            assert results[0].score == pytest.approx(1.0, abs=1e-4)
            assert results[0].metadata == {"job_id": "j2"}
            assert results[1].metadata["tags"] == '["a", "b"]'

            filtered = await index.search(
                "jobs", fake_vector("rust role"), SearchOptions(top_k=5, filter={"job_id": "j1"})
            )
            assert [r.id for r in filtered] == ["j1_chunk_0"]

            stats = await index.get_stats("jobs")
            assert stats.vector_count == 2
            assert stats.dimension == 8

            fetched = await index.get("jobs", "j1_chunk_0")
            assert fetched.values == pytest.approx(fake_vector("python role"), abs=1e-6)

            await index.delete("jobs", ["j1_chunk_0"])
            assert await index.get("jobs", "j1_chunk_0") is None
        finally:
            await index.close()

    @pytest.mark.asyncio
    async def test_search_creates_missing_collection(self, tmp_path: Path) -> None:
        index = ChromaVectorIndex(persist_directory=str(tmp_path / "chroma"))
        await index.initialize()
        try:
            assert await index.search("fresh", fake_vector("q")) == []
            assert await index.has_collection("fresh")
            assert await index.search("fresh", fake_vector("q")) == []
        finally:
            await index.close()

    @pytest.mark.asyncio
    async def test_unreachable_server(self) -> None:
        index = ChromaVectorIndex(
            host="127.0.0.1", port=1, connect_max_attempts=2, connect_base_delay=0.0
        )
        with pytest.raises(BackendUnavailable):
            await index.initialize()


# ======================================================================
# Pinecone
# ======================================================================


def _mock_pinecone(existing: list[str] | None = None) -> tuple[MagicMock, MagicMock]:
    client = MagicMock()
    client.list_indexes.return_value.names.return_value = list(existing or [])
    index = MagicMock()
    client.Index.return_value = index
    return client, index


class TestPineconeVectorIndex:
    def test_index_names_are_normalised(self) -> None:
        assert index_name_for("job_embeddings") == "job-embeddings"
        assert index_name_for("Jobs__V2") == "jobs-v2"

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        with pytest.raises(ConfigurationError):
            await PineconeVectorIndex(api_key="").initialize()

    @pytest.mark.asyncio
    async def test_upsert_creates_index_and_batches(self) -> None:
        client, index = _mock_pinecone()
        with patch("src.providers.vector_index.pinecone_index.Pinecone", return_value=client):
            backend = PineconeVectorIndex(api_key="pk", namespace="ns", connect_base_delay=0.0)
            await backend.initialize()
            records = [_record(f"v{i}", f"t{i}", n=i) for i in range(150)]
            await backend.upsert("job_embeddings", records)

        create_kwargs = client.create_index.call_args.kwargs
        assert create_kwargs["name"] == "job-embeddings"
        assert create_kwargs["dimension"] == 8
        assert create_kwargs["metric"] == "cosine"
        assert index.upsert.call_count == 2
        first = index.upsert.call_args_list[0].kwargs
        assert len(first["vectors"]) == 100
        assert first["namespace"] == "ns"

    @pytest.mark.asyncio
    async def test_query_results(self) -> None:
        client, index = _mock_pinecone(existing=["jobs"])
        index.query.return_value = MagicMock(
            matches=[
                MagicMock(id="b", score=0.4, metadata={"job_id": "jb"}),
                MagicMock(id="a", score=0.9, metadata={"job_id": "ja"}),
            ]
        )
        with patch("src.providers.vector_index.pinecone_index.Pinecone", return_value=client):
            backend = PineconeVectorIndex(api_key="pk", connect_base_delay=0.0)
            await backend.initialize()
            results = await backend.search("jobs", [0.1] * 8, SearchOptions(top_k=1))

        assert [r.id for r in results] == ["a"]
        assert index.query.call_args.kwargs["top_k"] == 1

    @pytest.mark.asyncio
    async def test_connect_retries(self) -> None:
        client, _ = _mock_pinecone()
        with patch(
            "src.providers.vector_index.pinecone_index.Pinecone",
            side_effect=[ConnectionError("dns"), client],
        ) as ctor:
            backend = PineconeVectorIndex(api_key="pk", connect_base_delay=0.0)
            await backend.initialize()

        assert ctor.call_count == 2
        assert backend.is_ready()
