"""Google Gemini embedding + chat provider adapter (google-genai SDK).

Uses the async surface ``client.aio.models``.  Gemini signals throttling with
``errors.APIError`` carrying ``code == 429`` (RESOURCE_EXHAUSTED); those are
retried with exponential backoff by :class:`BaseAIProvider`.

Chat roles map ``assistant -> "model"``; system messages become the
``system_instruction`` of the generation config.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

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
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# batchEmbedContents accepts at most 100 requests per call.
_GEMINI_BATCH_LIMIT = 100


class GeminiProvider(BaseAIProvider):
    """Provider backed by the Gemini API (embeddings and chat)."""

    _CAPABILITIES = frozenset({Capability.EMBEDDINGS, Capability.CHAT})
    _SDK_ERRORS = (genai_errors.APIError,)
    max_batch_size = _GEMINI_BATCH_LIMIT

    def __init__(self, settings: Settings) -> None:
        super().__init__(
            retry_max_attempts=settings.retry_max_attempts,
            retry_base_delay=settings.retry_base_delay,
        )
        self._api_key = settings.gemini_api_key
        # The SDK rejects an empty key at construction time.
        self._client = genai.Client(api_key=self._api_key) if self._api_key else None
        self._embedding_model = settings.gemini_embedding_model
        self._chat_model = settings.gemini_chat_model

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.GEMINI

    def get_provider_name(self) -> str:
        return ProviderKind.GEMINI.value

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _is_throttle(self, exc: BaseException) -> bool:
        return isinstance(exc, genai_errors.APIError) and exc.code == 429

    def _models(self) -> Any:
        if self._client is None:
            raise ConfigurationError(
                message="No API key configured for provider 'gemini'",
                provider_name=self.get_provider_name(),
            )
        return self._client.aio.models

    async def _embed_sub_batch(self, texts: list[str]) -> EmbeddingBatch:
        response = await self._models().embed_content(
            model=self._embedding_model,
            contents=texts,
        )
        embeddings = response.embeddings or []
        logger.debug("gemini_embedding", model=self._embedding_model, texts=len(texts))
        return EmbeddingBatch(
            vectors=[list(e.values or []) for e in embeddings],
            model=self._embedding_model,
            # Gemini does not report embedding token usage.
            total_tokens=sum(len(t) for t in texts) // 4,
        )

    async def _chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResult:
        model = options.model or self._chat_model
        contents, config = self._request(messages, options)
        response = await self._models().generate_content(
            model=model, contents=contents, config=config
        )
        usage = response.usage_metadata
        input_tokens = (usage.prompt_token_count or 0) if usage else 0
        output_tokens = (usage.candidates_token_count or 0) if usage else 0
        logger.info("gemini_completion", model=model, tokens=input_tokens + output_tokens)
        return ChatResult(
            content=response.text or "",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )

    async def _chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[StreamEvent]:
        model = options.model or self._chat_model
        contents, config = self._request(messages, options)
        stream = await self._models().generate_content_stream(
            model=model, contents=contents, config=config
        )
        parts: list[str] = []
        input_tokens = output_tokens = 0
        try:
            async for chunk in stream:
                if chunk.usage_metadata:
                    input_tokens = chunk.usage_metadata.prompt_token_count or input_tokens
                    output_tokens = chunk.usage_metadata.candidates_token_count or output_tokens
                if chunk.text:
                    parts.append(chunk.text)
                    yield StreamDelta(text=chunk.text)

            yield StreamDone(
                result=ChatResult(
                    content="".join(parts),
                    model=model,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens,
                )
            )
        finally:
            # generate_content_stream hands back an async generator.
            await stream.aclose()

    @staticmethod
    def _request(
        messages: list[ChatMessage], options: ChatOptions
    ) -> tuple[list[genai_types.Content], genai_types.GenerateContentConfig]:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            genai_types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[genai_types.Part(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]
        config = genai_types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
        )
        return contents, config
