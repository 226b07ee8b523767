"""Unit tests for the DI assembly and lifecycle helpers in src.main."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.config.settings import Settings
from src.main import _build_all, _build_chat_providers, shutdown, startup
from src.models.ai import ProviderKind
from src.providers.ai.anthropic_provider import AnthropicProvider
from src.providers.ai.openai_provider import OpenAIProvider
from src.providers.vector_index.chromadb_index import ChromaVectorIndex
from src.utils.errors import ConfigurationError


def _settings(tmp_path: Path, **overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "anthropic_api_key": "",
        "gemini_api_key": "",
        "record_db_path": str(tmp_path / "records.db"),
        "chroma_persist_dir": str(tmp_path / "chroma"),
        "connect_base_delay": 0.0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


class TestBuildAll:
    def test_components(self, tmp_path: Path) -> None:
        components = _build_all(_settings(tmp_path, vector_collection="jobs_v2"))

        assert isinstance(components["vector_index"], ChromaVectorIndex)
        assert components["collection_name"] == "jobs_v2"
        assert components["provider_registry"] == {
            "embedding": "openai",
            "chat": ["openai"],
            "vector_index": "chromadb",
            "record_store": "sqlite",
        }
        assert "ingest_url" in components["tool_dispatcher"].methods

    def test_missing_embedding_key(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            _build_all(_settings(tmp_path, openai_api_key=""))

    def test_chat_providers_reuse_embedder(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path, anthropic_api_key="sk-ant")
        embedder = OpenAIProvider(settings)

        providers = _build_chat_providers(settings, embedder)

        assert providers[ProviderKind.OPENAI] is embedder
        assert isinstance(providers[ProviderKind.ANTHROPIC], AnthropicProvider)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_startup_connects_and_sizes_collection(self, tmp_path: Path) -> None:
        components = _build_all(_settings(tmp_path, vector_dimension=8))

        connect_task = await startup(components)
        await connect_task
        try:
            vector_index = components["vector_index"]
            assert vector_index.is_ready()
            assert await vector_index.has_collection("job_embeddings")
            assert (await components["record_store"].count_jobs())["INDEXED"] == 0
        finally:
            await shutdown(components, connect_task)

        assert not components["vector_index"].is_ready()
        assert components["http_client"].is_closed

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_connect(self, tmp_path: Path) -> None:
        components = _build_all(
            _settings(
                tmp_path,
                chroma_host="127.0.0.1",
                chroma_port=1,
                connect_max_attempts=50,
                connect_base_delay=1.0,
            )
        )

        connect_task = await startup(components)
        await shutdown(components, connect_task)

        assert connect_task.cancelled()
