"""Shared pytest fixtures and fakes for the scrape-index test suite."""

from __future__ import annotations

import hashlib
import math
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
import structlog

from src.models.ai import (
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    EmbeddingBatch,
    ProviderKind,
    StreamDelta,
    StreamDone,
    StreamEvent,
)
from src.models.document import StructuredDocument
from src.models.vector import CollectionStats, SearchOptions, VectorRecord, VectorSearchResult
from src.providers.ai.base import BaseAIProvider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.records.sqlite_record_store import SQLiteRecordStore
from src.providers.vector_index.base import BaseVectorIndex
from src.services.ai_service import AIService
from src.services.embedding_cache import EmbeddingCache
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService

# ---------------------------------------------------------------------------
# Fake AI provider
# ---------------------------------------------------------------------------


class FakeSDKError(Exception):
    """Stands in for an SDK's base exception type."""

    def __init__(self, message: str = "boom", status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code


def fake_vector(text: str, dimension: int = 8) -> list[float]:
    """Deterministic unit vector derived from *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [(digest[i % len(digest)] / 255.0) + 0.01 for i in range(dimension)]
    norm = math.sqrt(sum(v * v for v in raw))
    return [v / norm for v in raw]


class FakeAIProvider(BaseAIProvider):
    """Deterministic provider with call counters and fault injection.

    ``throttle_times`` makes the next N SDK calls raise a 429; ``fail_with``
    makes every embedding call raise that exception.
    """

    _CAPABILITIES = frozenset({Capability.EMBEDDINGS, Capability.CHAT})
    _SDK_ERRORS = (FakeSDKError,)

    def __init__(
        self,
        dimension: int = 8,
        max_batch_size: int = 100,
        retry_max_attempts: int = 5,
        retry_base_delay: float = 0.0,
        capabilities: frozenset[Capability] | None = None,
    ) -> None:
        super().__init__(retry_max_attempts=retry_max_attempts, retry_base_delay=retry_base_delay)
        self.dimension = dimension
        self.max_batch_size = max_batch_size
        if capabilities is not None:
            self._CAPABILITIES = capabilities
        self.embed_calls: list[list[str]] = []
        self.chat_calls = 0
        self.throttle_times = 0
        self.fail_with: BaseException | None = None

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OPENAI

    def get_provider_name(self) -> str:
        return "fake"

    def is_available(self) -> bool:
        return True

    def _maybe_fail(self) -> None:
        if self.throttle_times > 0:
            self.throttle_times -= 1
            raise FakeSDKError("rate limited", status_code=429)

    def _is_throttle(self, exc: BaseException) -> bool:
        return isinstance(exc, FakeSDKError) and exc.status_code == 429

    async def _embed_sub_batch(self, texts: list[str]) -> EmbeddingBatch:
        self.embed_calls.append(list(texts))
        self._maybe_fail()
        if self.fail_with is not None:
            raise self.fail_with
        return EmbeddingBatch(
            vectors=[fake_vector(t, self.dimension) for t in texts],
            model="fake-embed-1",
            total_tokens=sum(len(t) // 4 for t in texts),
        )

    async def _chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResult:
        self.chat_calls += 1
        self._maybe_fail()
        return ChatResult(
            content=f"Summary: {messages[-1].content[:40]}",
            model=options.model or "fake-chat-1",
            input_tokens=10,
            output_tokens=5,
            total_tokens=15,
        )

    async def _chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[StreamEvent]:
        self.chat_calls += 1
        self._maybe_fail()
        parts = ["Hello", ", ", "world"]
        for part in parts:
            yield StreamDelta(text=part)
        yield StreamDone(
            result=ChatResult(content="".join(parts), model="fake-chat-1", total_tokens=3)
        )

    @property
    def total_embedded(self) -> int:
        return sum(len(call) for call in self.embed_calls)


# ---------------------------------------------------------------------------
# In-memory vector index
# ---------------------------------------------------------------------------


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


class InMemoryVectorIndex(BaseVectorIndex):
    """Dict-backed backend exercising :class:`BaseVectorIndex` behaviour.

    ``connect_failures`` makes the first N connection attempts fail.
    """

    def __init__(self, connect_failures: int = 0, **kwargs) -> None:
        kwargs.setdefault("connect_base_delay", 0.0)
        super().__init__(**kwargs)
        self.connect_failures = connect_failures
        self.connect_attempts = 0
        self.collections: dict[str, dict[str, VectorRecord]] = {}
        self.dimensions: dict[str, int] = {}
        self.upsert_calls = 0

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    def _connect(self) -> None:
        self.connect_attempts += 1
        if self.connect_attempts <= self.connect_failures:
            raise ConnectionError("connection refused")

    def _disconnect(self) -> None:
        pass

    def _create_collection(self, name: str, dimension: int) -> None:
        self.collections.setdefault(name, {})
        self.dimensions.setdefault(name, dimension)

    def _has_collection(self, name: str) -> bool:
        return name in self.collections

    def _upsert(self, collection: str, records: list[VectorRecord]) -> None:
        self.upsert_calls += 1
        for record in records:
            self.collections[collection][record.id] = record

    def _query(
        self, collection: str, query_vector: list[float], options: SearchOptions
    ) -> list[VectorSearchResult]:
        return [
            VectorSearchResult(id=r.id, score=_cosine(query_vector, r.values), metadata=r.metadata)
            for r in self.collections[collection].values()
        ]

    def _delete(self, collection: str, ids: list[str]) -> None:
        for vector_id in ids:
            self.collections[collection].pop(vector_id, None)

    def _get(self, collection: str, vector_id: str) -> VectorSearchResult | None:
        record = self.collections[collection].get(vector_id)
        if record is None:
            return None
        return VectorSearchResult(
            id=record.id, score=1.0, metadata=record.metadata, values=record.values
        )

    def _get_stats(self, collection: str) -> CollectionStats:
        return CollectionStats(
            vector_count=len(self.collections[collection]),
            dimension=self.dimensions.get(collection, 0),
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_provider() -> FakeAIProvider:
    return FakeAIProvider()


@pytest_asyncio.fixture
async def record_store(tmp_path: Path) -> AsyncIterator[SQLiteRecordStore]:
    store = SQLiteRecordStore(db_path=tmp_path / "records.db")
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def vector_index() -> AsyncIterator[InMemoryVectorIndex]:
    index = InMemoryVectorIndex()
    await index.initialize()
    yield index
    await index.close()


@pytest.fixture
def embedding_cache(record_store: SQLiteRecordStore) -> EmbeddingCache:
    return EmbeddingCache(fast_tier=MemoryCacheProvider(), durable_tier=record_store)


@pytest.fixture
def ai_service(
    fake_provider: FakeAIProvider,
    embedding_cache: EmbeddingCache,
    record_store: SQLiteRecordStore,
) -> AIService:
    return AIService(
        embedding_provider=fake_provider,
        cache=embedding_cache,
        chat_providers={ProviderKind.OPENAI: fake_provider},
        record_store=record_store,
        batch_size=16,
    )


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(chunk_size=40, overlap=10)


@pytest.fixture
def ingestion_service(
    ai_service: AIService,
    chunker: TextChunker,
    vector_index: InMemoryVectorIndex,
    record_store: SQLiteRecordStore,
) -> IngestionService:
    return IngestionService(
        ai_service=ai_service,
        chunker=chunker,
        vector_index=vector_index,
        record_store=record_store,
        collection="test_jobs",
        concurrency=4,
        ready_timeout=1.0,
        ready_poll_interval=0.01,
    )


def make_document(
    text: str = "Senior Python engineer wanted to build ingestion pipelines and vector search.",
    url: str = "https://example.com/jobs/1",
    **overrides,
) -> StructuredDocument:
    fields = {"url": url, "title": "Python engineer", "content_text": text}
    fields.update(overrides)
    return StructuredDocument(**fields)


@pytest.fixture
def document() -> StructuredDocument:
    return make_document()


@pytest.fixture(autouse=True, scope="session")
def _test_logging() -> None:
    """Render logs plainly and resolve stdout per call so capsys swaps are honoured."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
