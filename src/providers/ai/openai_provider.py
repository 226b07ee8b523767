"""OpenAI embedding + chat provider adapter.

Wraps ``openai.AsyncOpenAI``.  When ``openai_base_url`` is configured the
client talks to an OpenAI-compatible gateway instead of api.openai.com; the
provider name stays ``"openai"`` so cache namespaces do not change, but log
lines are labelled ``openai-compatible``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from src.config.settings import Settings
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
from src.providers.ai.base import BaseAIProvider

logger = structlog.get_logger(logger_name=__name__)

# OpenAI caps one embeddings request at 2048 inputs.
_OPENAI_BATCH_LIMIT = 2048


class OpenAIProvider(BaseAIProvider):
    """Provider backed by the OpenAI API (embeddings and chat)."""

    _CAPABILITIES = frozenset({Capability.EMBEDDINGS, Capability.CHAT})
    _SDK_ERRORS = (openai.APIError,)
    max_batch_size = _OPENAI_BATCH_LIMIT

    def __init__(self, settings: Settings) -> None:
        super().__init__(
            retry_max_attempts=settings.retry_max_attempts,
            retry_base_delay=settings.retry_base_delay,
        )
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(60.0, connect=5.0),
            # Throttling is retried by BaseAIProvider; disable the SDK's own loop.
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._embedding_model = settings.openai_embedding_model
        self._chat_model = settings.openai_chat_model
        self._label = "openai-compatible" if settings.openai_base_url else "openai"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OPENAI

    def get_provider_name(self) -> str:
        return ProviderKind.OPENAI.value

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _is_throttle(self, exc: BaseException) -> bool:
        if isinstance(exc, openai.RateLimitError):
            return True
        return isinstance(exc, openai.APIStatusError) and exc.status_code == 429

    # ------------------------------------------------------------------
    # SDK hooks
    # ------------------------------------------------------------------

    async def _embed_sub_batch(self, texts: list[str]) -> EmbeddingBatch:
        response = await self._client.embeddings.create(
            input=texts,
            model=self._embedding_model,
        )
        # The API may return items out of order; sort by index.
        ordered = sorted(response.data, key=lambda item: item.index)
        total = response.usage.total_tokens if response.usage else 0
        logger.debug(
            "openai_embedding",
            provider=self._label,
            model=self._embedding_model,
            texts=len(texts),
            tokens=total,
        )
        return EmbeddingBatch(
            vectors=[item.embedding for item in ordered],
            model=response.model or self._embedding_model,
            total_tokens=total,
        )

    async def _chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResult:
        model = options.model or self._chat_model
        response = await self._client.chat.completions.create(**self._request(messages, options))
        content = response.choices[0].message.content or ""
        usage = response.usage
        logger.info(
            "openai_completion",
            model=model,
            provider=self._label,
            tokens=usage.total_tokens if usage else None,
        )
        return ChatResult(
            content=content,
            model=response.model or model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
        )

    async def _chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[StreamEvent]:
        model = options.model or self._chat_model
        stream = await self._client.chat.completions.create(
            **self._request(messages, options),
            stream=True,
            stream_options={"include_usage": True},
        )
        parts: list[str] = []
        input_tokens = output_tokens = 0
        try:
            async for chunk in stream:
                if chunk.usage:
                    input_tokens = chunk.usage.prompt_tokens
                    output_tokens = chunk.usage.completion_tokens
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    yield StreamDelta(text=delta)
        finally:
            await stream.close()

        content = "".join(parts)
        if not output_tokens:
            # Usage is missing on some compatible gateways; estimate.
            output_tokens = len(content) // 4
        yield StreamDone(
            result=ChatResult(
                content=content,
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )
        )

    def _request(self, messages: list[ChatMessage], options: ChatOptions) -> dict:
        request: dict = {
            "model": options.model or self._chat_model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature,
        }
        if options.max_tokens:
            request["max_tokens"] = options.max_tokens
        return request
