"""Shared behaviour for every :class:`IAIProvider` adapter.

Concrete providers implement a handful of narrow hooks that talk to their
SDK once (``_embed_sub_batch``, ``_chat``, ``_chat_stream``) plus a
throttling classifier (``_is_throttle``).  This base class adds:

* capability checks that fail before any network I/O,
* sub-batching of ``embed_batch`` by ``max_batch_size`` with in-order
  reassembly,
* retry-on-throttle with exponential backoff around every SDK call,
* translation of SDK exceptions into :class:`RateLimitExceeded` /
  :class:`ProviderError`.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import AsyncIterator
from typing import Awaitable, Callable, TypeVar

import structlog

from src.interfaces.ai_provider import IAIProvider
from src.models.ai import (
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    EmbeddingBatch,
    EmbeddingVector,
    StreamEvent,
)
from src.utils.errors import (
    ProviderError,
    RateLimitExceeded,
    ScrapeIndexError,
    UnsupportedOperation,
)
from src.utils.retry import backoff_delay, retry_with_backoff

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")


class BaseAIProvider(IAIProvider):
    """Template for provider adapters.

    Subclasses set ``_CAPABILITIES``, ``max_batch_size`` and
    ``_SDK_ERRORS`` (the exception types their SDK raises) and implement
    the hooks they support.

    Parameters
    ----------
    retry_max_attempts:
        Total attempts per SDK call when the provider throttles.
    retry_base_delay:
        Seconds before the first retry; doubled on each further retry.
    """

    _CAPABILITIES: frozenset[Capability] = frozenset()
    _SDK_ERRORS: tuple[type[BaseException], ...] = ()
    max_batch_size: int = 100

    def __init__(self, retry_max_attempts: int = 5, retry_base_delay: float = 0.5) -> None:
        self._retry_max_attempts = retry_max_attempts
        self._retry_base_delay = retry_base_delay

    def capabilities(self) -> frozenset[Capability]:
        return self._CAPABILITIES

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    async def _embed_sub_batch(self, texts: list[str]) -> EmbeddingBatch:
        raise UnsupportedOperation(
            message="Embeddings not supported", provider_name=self.get_provider_name()
        )

    async def _chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResult:
        raise UnsupportedOperation(
            message="Chat not supported", provider_name=self.get_provider_name()
        )

    def _chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[StreamEvent]:
        raise UnsupportedOperation(
            message="Streaming chat not supported", provider_name=self.get_provider_name()
        )

    def _is_throttle(self, exc: BaseException) -> bool:
        return False

    # ------------------------------------------------------------------
    # IAIProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> EmbeddingVector:
        batch = await self.embed_batch([text])
        return EmbeddingVector(
            values=batch.vectors[0],
            model=batch.model,
            source_provider=self.get_provider_name(),
        )

    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        self._require(Capability.EMBEDDINGS, "embeddings")
        if not texts:
            return EmbeddingBatch()

        vectors: list[list[float]] = []
        total_tokens = 0
        model = ""
        for start in range(0, len(texts), self.max_batch_size):
            sub_batch = texts[start : start + self.max_batch_size]
            result = await self._call(
                "embed_batch", functools.partial(self._embed_sub_batch, sub_batch)
            )
            if len(result.vectors) != len(sub_batch):
                raise ProviderError(
                    message=(
                        f"Embedding count mismatch: sent {len(sub_batch)} texts, "
                        f"received {len(result.vectors)} vectors"
                    ),
                    provider_name=self.get_provider_name(),
                )
            vectors.extend(result.vectors)
            total_tokens += result.total_tokens
            model = result.model or model

        logger.debug(
            "embed_batch_complete",
            provider=self.get_provider_name(),
            texts=len(texts),
            sub_batches=-(-len(texts) // self.max_batch_size),
        )
        return EmbeddingBatch(vectors=vectors, model=model, total_tokens=total_tokens)

    async def chat(
        self, messages: list[ChatMessage], options: ChatOptions | None = None
    ) -> ChatResult:
        self._require(Capability.CHAT, "chat")
        return await self._call(
            "chat", functools.partial(self._chat, messages, options or ChatOptions())
        )

    async def chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions | None = None
    ) -> AsyncIterator[StreamEvent]:
        """Stream a completion, retrying throttles that occur before the first event."""
        self._require(Capability.CHAT, "chat")
        options = options or ChatOptions()
        attempt = 0
        while True:
            attempt += 1
            emitted = False
            stream = self._chat_stream(messages, options)
            try:
                async for event in stream:
                    emitted = True
                    yield event
                return
            except ScrapeIndexError:
                raise
            except self._SDK_ERRORS as exc:
                if emitted or not self._is_throttle(exc) or attempt >= self._retry_max_attempts:
                    raise self._translate(exc, "chat_stream", attempt) from exc
                delay = backoff_delay(self._retry_base_delay, attempt)
                logger.warning(
                    "provider_rate_limited",
                    provider=self.get_provider_name(),
                    operation="chat_stream",
                    attempt=attempt,
                    delay_s=delay,
                )
                await asyncio.sleep(delay)
            finally:
                await stream.aclose()  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, capability: Capability, operation: str) -> None:
        if capability not in self.capabilities():
            raise UnsupportedOperation(
                message=f"{operation} not supported by {self.get_provider_name()}",
                provider_name=self.get_provider_name(),
            )

    async def _call(self, operation: str, fn: Callable[[], Awaitable[_T]]) -> _T:
        """Run one SDK call under the throttle-retry policy."""
        try:
            return await retry_with_backoff(
                fn,
                should_retry=self._is_throttle,
                max_attempts=self._retry_max_attempts,
                base_delay=self._retry_base_delay,
                logger=logger,
                event="provider_rate_limited",
                provider=self.get_provider_name(),
                operation=operation,
            )
        except self._SDK_ERRORS as exc:
            raise self._translate(exc, operation, self._retry_max_attempts) from exc

    def _translate(self, exc: BaseException, operation: str, attempts: int) -> ScrapeIndexError:
        if self._is_throttle(exc):
            return RateLimitExceeded(
                message=f"{operation} still throttled after {attempts} attempts: {exc}",
                provider_name=self.get_provider_name(),
            )
        return ProviderError(
            message=f"{operation} failed: {exc}",
            provider_name=self.get_provider_name(),
        )
