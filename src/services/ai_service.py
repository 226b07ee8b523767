"""Cache-aware facade over the embedding and chat providers.

``AIService`` is what the rest of the pipeline talks to.  It

* checks provider capabilities once, at construction, so a chat-only
  provider can never be wired in as the embedder,
* consults the :class:`EmbeddingCache` per text and only sends misses to
  the provider (identical texts in one request are embedded once),
* sub-batches misses by ``batch_size`` and reassembles vectors in input
  order,
* writes a best-effort audit row per provider call.  Streaming calls are
  audited only after the final :class:`StreamDone` has been produced.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Mapping

import structlog

from src.interfaces.ai_provider import IAIProvider
from src.interfaces.record_store import IRecordStore
from src.models.ai import (
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    ProviderCallLog,
    ProviderKind,
    StreamDone,
    StreamEvent,
)
from src.services.embedding_cache import EmbeddingCache
from src.utils.errors import (
    ConfigurationError,
    ProviderError,
    ScrapeIndexError,
    UnsupportedOperation,
)

logger = structlog.get_logger(logger_name=__name__)

_SUMMARY_SYSTEM_PROMPT = (
    "You summarize web documents for a search index. Write 3 to 5 plain "
    "sentences covering what the page is about and its key facts. Do not "
    "invent details that are not in the text."
)

# Keeps summary prompts well inside every supported model's context window.
_SUMMARY_MAX_CHARS = 24000


class AIService:
    """Embedding and chat entry point for the pipeline.

    Parameters
    ----------
    embedding_provider:
        Provider used for all embeddings; must support EMBEDDINGS.
    cache:
        Two-tier embedding cache; ``None`` disables caching.
    chat_providers:
        Providers available for chat, keyed by kind; each must support CHAT.
    default_chat:
        Kind used when a chat call does not name one.
    record_store:
        Receives the provider call audit (best-effort).
    batch_size:
        Maximum texts per embedding request issued by this service.

    Raises
    ------
    UnsupportedOperation
        If a provider lacks the capability it is wired for.
    """

    def __init__(
        self,
        embedding_provider: IAIProvider,
        cache: EmbeddingCache | None = None,
        chat_providers: Mapping[ProviderKind, IAIProvider] | None = None,
        default_chat: ProviderKind | None = None,
        record_store: IRecordStore | None = None,
        batch_size: int = 64,
    ) -> None:
        if not embedding_provider.supports(Capability.EMBEDDINGS):
            raise UnsupportedOperation(
                message="Configured embedding provider has no embedding capability",
                provider_name=embedding_provider.get_provider_name(),
            )
        for kind, provider in (chat_providers or {}).items():
            if not provider.supports(Capability.CHAT):
                raise UnsupportedOperation(
                    message=f"Provider '{kind.value}' cannot be used for chat",
                    provider_name=provider.get_provider_name(),
                )
        if batch_size < 1:
            raise ConfigurationError(message=f"batch_size must be >= 1, got {batch_size}")

        self._embedder = embedding_provider
        self._cache = cache
        self._chat_providers = dict(chat_providers or {})
        self._default_chat = default_chat or next(iter(self._chat_providers), None)
        self._record_store = record_store
        self._batch_size = batch_size

    @property
    def embedding_provider_name(self) -> str:
        return self._embedder.get_provider_name()

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    async def embed(self, text: str, use_cache: bool = True) -> list[float]:
        vectors = await self.embed_batch([text], use_cache=use_cache)
        return vectors[0]

    async def embed_batch(self, texts: list[str], use_cache: bool = True) -> list[list[float]]:
        """Return one vector per text, in input order."""
        provider_name = self._embedder.get_provider_name()
        results: list[list[float] | None] = [None] * len(texts)
        misses: dict[str, list[int]] = {}

        for idx, text in enumerate(texts):
            cached = None
            if self._cache is not None and use_cache:
                cached = await self._cache.get(text, provider_name)
            if cached is not None:
                results[idx] = cached
            else:
                misses.setdefault(text, []).append(idx)

        pending = list(misses)
        for start in range(0, len(pending), self._batch_size):
            sub_batch = pending[start : start + self._batch_size]
            started = time.monotonic()
            try:
                embedded = await self._embedder.embed_batch(sub_batch)
            except ScrapeIndexError as exc:
                await self._audit(
                    ProviderCallLog(
                        provider=provider_name,
                        operation="embed_batch",
                        success=False,
                        error_message=str(exc),
                        latency_ms=int((time.monotonic() - started) * 1000),
                    )
                )
                raise
            await self._audit(
                ProviderCallLog(
                    provider=provider_name,
                    operation="embed_batch",
                    model=embedded.model,
                    input_tokens=embedded.total_tokens,
                    total_tokens=embedded.total_tokens,
                    latency_ms=int((time.monotonic() - started) * 1000),
                )
            )
            for text, vector in zip(sub_batch, embedded.vectors):
                for idx in misses[text]:
                    results[idx] = vector
                if self._cache is not None:
                    await self._cache.put(text, vector, provider_name, embedded.model)

        logger.debug(
            "embeddings_resolved",
            provider=provider_name,
            texts=len(texts),
            cache_hits=len(texts) - sum(len(v) for v in misses.values()),
            embedded=len(pending),
        )
        if any(vector is None for vector in results):
            raise ProviderError(
                message="Provider returned fewer vectors than texts",
                provider_name=provider_name,
            )
        return results  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
        provider: ProviderKind | None = None,
    ) -> ChatResult:
        chat_provider = self._chat_provider(provider)
        started = time.monotonic()
        try:
            result = await chat_provider.chat(messages, options)
        except ScrapeIndexError as exc:
            await self._audit(
                ProviderCallLog(
                    provider=chat_provider.get_provider_name(),
                    operation="chat",
                    success=False,
                    error_message=str(exc),
                    latency_ms=int((time.monotonic() - started) * 1000),
                )
            )
            raise
        await self._audit(self._chat_log(chat_provider, "chat", result, started))
        return result

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        options: ChatOptions | None = None,
        provider: ProviderKind | None = None,
    ) -> AsyncIterator[StreamEvent]:
        chat_provider = self._chat_provider(provider)
        started = time.monotonic()
        stream = chat_provider.chat_stream(messages, options)
        try:
            async for event in stream:
                if isinstance(event, StreamDone):
                    await self._audit(
                        self._chat_log(chat_provider, "chat_stream", event.result, started)
                    )
                yield event
        finally:
            await stream.aclose()  # type: ignore[attr-defined]

    async def summarize(
        self,
        title: str,
        content: str,
        provider: ProviderKind | None = None,
        model: str | None = None,
    ) -> ChatResult:
        """Produce a short summary of a document."""
        body = content[:_SUMMARY_MAX_CHARS]
        messages = [
            ChatMessage(role="system", content=_SUMMARY_SYSTEM_PROMPT),
            ChatMessage(role="user", content=f"Title: {title}\n\n{body}"),
        ]
        return await self.chat(
            messages, ChatOptions(model=model, temperature=0.3, max_tokens=400), provider
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _chat_provider(self, kind: ProviderKind | None) -> IAIProvider:
        kind = kind or self._default_chat
        if kind is None or kind not in self._chat_providers:
            raise UnsupportedOperation(
                message=f"No chat provider configured for '{kind.value if kind else 'default'}'",
                provider_name=kind.value if kind else None,
            )
        return self._chat_providers[kind]

    @staticmethod
    def _chat_log(
        provider: IAIProvider, operation: str, result: ChatResult, started: float
    ) -> ProviderCallLog:
        return ProviderCallLog(
            provider=provider.get_provider_name(),
            operation=operation,
            model=result.model,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            total_tokens=result.total_tokens,
            latency_ms=int((time.monotonic() - started) * 1000),
        )

    async def _audit(self, entry: ProviderCallLog) -> None:
        if self._record_store is None:
            return
        try:
            await self._record_store.log_provider_call(entry)
        except Exception as exc:
            logger.warning(
                "provider_call_log_failed",
                provider=entry.provider,
                operation=entry.operation,
                error=str(exc),
            )
