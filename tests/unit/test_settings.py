"""Unit tests for Settings loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config.settings import Settings
from src.models.ai import ProviderKind
from src.models.vector import VectorBackend


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.vector_backend is VectorBackend.CHROMA
        assert settings.embedding_provider is ProviderKind.OPENAI
        assert settings.chunk_overlap < settings.chunk_size

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VECTOR_BACKEND", "pinecone")
        monkeypatch.setenv("EMBEDDING_PROVIDER", "gemini")
        monkeypatch.setenv("CHUNK_SIZE", "200")
        monkeypatch.setenv("CHUNK_OVERLAP", "50")

        settings = Settings(_env_file=None)

        assert settings.vector_backend is VectorBackend.PINECONE
        assert settings.embedding_provider is ProviderKind.GEMINI
        assert (settings.chunk_size, settings.chunk_overlap) == (200, 50)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"chunk_size": 0},
            {"chunk_size": 100, "chunk_overlap": 100},
            {"chunk_overlap": -1},
            {"ingest_concurrency": 0},
        ],
    )
    def test_invalid_values_rejected(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_configured_providers(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="", anthropic_api_key="a", gemini_api_key="g")
        assert settings.get_configured_providers() == [ProviderKind.ANTHROPIC, ProviderKind.GEMINI]
