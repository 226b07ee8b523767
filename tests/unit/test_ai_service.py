"""Unit tests for AIService: cache-aware embedding, chat routing and audit."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.models.ai import Capability, ChatMessage, ProviderKind, StreamDone
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.records.sqlite_record_store import SQLiteRecordStore
from src.services.ai_service import AIService
from src.services.embedding_cache import EmbeddingCache
from src.utils.errors import RateLimitExceeded, UnsupportedOperation
from tests.conftest import FakeAIProvider, fake_vector


class TestConstruction:
    def test_chat_only_embedder_rejected(self) -> None:
        with pytest.raises(UnsupportedOperation):
            AIService(embedding_provider=FakeAIProvider(capabilities=frozenset({Capability.CHAT})))

    def test_embedding_only_chat_provider_rejected(self) -> None:
        embed_only = FakeAIProvider(capabilities=frozenset({Capability.EMBEDDINGS}))
        with pytest.raises(UnsupportedOperation):
            AIService(
                embedding_provider=FakeAIProvider(),
                chat_providers={ProviderKind.GEMINI: embed_only},
            )


class TestEmbeddingCacheLaw:
    @pytest.mark.asyncio
    async def test_second_embed_hits_cache(self) -> None:
        provider = FakeAIProvider()
        service = AIService(
            embedding_provider=provider,
            cache=EmbeddingCache(fast_tier=MemoryCacheProvider()),
        )

        first = await service.embed("hello world")
        second = await service.embed("hello world")

        assert first == second == fake_vector("hello world")
        assert provider.total_embedded == 1

    @pytest.mark.asyncio
    async def test_only_misses_are_sent(self) -> None:
        provider = FakeAIProvider()
        service = AIService(
            embedding_provider=provider,
            cache=EmbeddingCache(fast_tier=MemoryCacheProvider()),
        )
        await service.embed_batch(["a", "b"])
        provider.embed_calls.clear()

        vectors = await service.embed_batch(["a", "c", "b", "d"])

        assert provider.embed_calls == [["c", "d"]]
        assert vectors == [fake_vector(t) for t in ["a", "c", "b", "d"]]

    @pytest.mark.asyncio
    async def test_duplicate_texts_embedded_once(self) -> None:
        provider = FakeAIProvider()
        service = AIService(embedding_provider=provider)

        vectors = await service.embed_batch(["same", "other", "same"])

        assert provider.embed_calls == [["same", "other"]]
        assert vectors[0] == vectors[2]

    @pytest.mark.asyncio
    async def test_bypassing_cache(self) -> None:
        provider = FakeAIProvider()
        service = AIService(
            embedding_provider=provider,
            cache=EmbeddingCache(fast_tier=MemoryCacheProvider()),
        )
        await service.embed("x")
        await service.embed("x", use_cache=False)
        assert provider.total_embedded == 2

    @pytest.mark.asyncio
    async def test_sub_batches_by_service_batch_size(self) -> None:
        provider = FakeAIProvider()
        service = AIService(embedding_provider=provider, batch_size=3)

        vectors = await service.embed_batch([f"t{i}" for i in range(7)])

        assert [len(c) for c in provider.embed_calls] == [3, 3, 1]
        assert vectors == [fake_vector(f"t{i}") for i in range(7)]


class TestAudit:
    @pytest.mark.asyncio
    async def test_successful_calls_are_logged(
        self, ai_service: AIService, record_store: SQLiteRecordStore
    ) -> None:
        await ai_service.embed_batch(["one", "two"])
        await ai_service.chat([ChatMessage(role="user", content="hi")])

        assert await record_store.count_provider_calls("fake") == 2

    @pytest.mark.asyncio
    async def test_failed_call_is_logged_and_reraised(self, record_store: SQLiteRecordStore) -> None:
        provider = FakeAIProvider(retry_max_attempts=2)
        provider.throttle_times = 5
        service = AIService(embedding_provider=provider, record_store=record_store)

        with pytest.raises(RateLimitExceeded):
            await service.embed("hello")
        assert await record_store.count_provider_calls("fake") == 1

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_call(self) -> None:
        store = AsyncMock()
        store.log_provider_call.side_effect = RuntimeError("locked")
        service = AIService(embedding_provider=FakeAIProvider(), record_store=store)

        assert len(await service.embed("hello")) == 8


class TestChat:
    @pytest.mark.asyncio
    async def test_unknown_chat_provider(self) -> None:
        service = AIService(embedding_provider=FakeAIProvider())
        with pytest.raises(UnsupportedOperation):
            await service.chat([ChatMessage(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_summarize_routes_to_chat(self, ai_service: AIService) -> None:
        result = await ai_service.summarize("Title", "Body text", model="custom-model")
        assert result.model == "custom-model"
        assert result.content.startswith("Summary")

    @pytest.mark.asyncio
    async def test_stream_audited_after_done(
        self, ai_service: AIService, record_store: SQLiteRecordStore
    ) -> None:
        events = [
            e async for e in ai_service.chat_stream([ChatMessage(role="user", content="hi")])
        ]
        assert isinstance(events[-1], StreamDone)
        assert await record_store.count_provider_calls("fake") == 1
