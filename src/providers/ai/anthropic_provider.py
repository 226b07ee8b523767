"""Anthropic chat provider adapter.

Anthropic offers no embeddings endpoint, so this provider declares only the
CHAT capability and any embedding request fails with
:class:`~src.utils.errors.UnsupportedOperation` before reaching the network.

Differences from the OpenAI adapter:
    - system messages go in the top-level ``system`` parameter
    - responses are lists of content blocks; only ``text`` blocks are kept
    - streaming emits typed events (``message_start``,
      ``content_block_delta``, ``message_delta``) carrying text and usage
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import anthropic
import structlog

from src.config.settings import Settings
from src.models.ai import (
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    ProviderKind,
    StreamDelta,
    StreamDone,
    StreamEvent,
)
from src.providers.ai.base import BaseAIProvider

logger = structlog.get_logger(logger_name=__name__)

# The Messages API requires max_tokens on every request.
_DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(BaseAIProvider):
    """Chat-only provider backed by the Anthropic Messages API."""

    _CAPABILITIES = frozenset({Capability.CHAT})
    _SDK_ERRORS = (anthropic.APIError,)

    def __init__(self, settings: Settings) -> None:
        super().__init__(
            retry_max_attempts=settings.retry_max_attempts,
            retry_base_delay=settings.retry_base_delay,
        )
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key, max_retries=0)
        self._model = settings.anthropic_chat_model

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.ANTHROPIC

    def get_provider_name(self) -> str:
        return ProviderKind.ANTHROPIC.value

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _is_throttle(self, exc: BaseException) -> bool:
        if isinstance(exc, anthropic.RateLimitError):
            return True
        return isinstance(exc, anthropic.APIStatusError) and exc.status_code == 429

    async def _chat(self, messages: list[ChatMessage], options: ChatOptions) -> ChatResult:
        response = await self._client.messages.create(**self._request(messages, options))
        text = "".join(block.text for block in response.content if block.type == "text")
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info(
            "anthropic_completion",
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return ChatResult(
            content=text,
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )

    async def _chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions
    ) -> AsyncIterator[StreamEvent]:
        stream = await self._client.messages.create(
            **self._request(messages, options), stream=True
        )
        parts: list[str] = []
        model = options.model or self._model
        input_tokens = output_tokens = 0
        try:
            async for event in stream:
                if event.type == "message_start":
                    model = event.message.model
                    input_tokens = event.message.usage.input_tokens
                elif event.type == "content_block_delta" and event.delta.type == "text_delta":
                    parts.append(event.delta.text)
                    yield StreamDelta(text=event.delta.text)
                elif event.type == "message_delta":
                    output_tokens = event.usage.output_tokens
        finally:
            await stream.close()

        yield StreamDone(
            result=ChatResult(
                content="".join(parts),
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )
        )

    def _request(self, messages: list[ChatMessage], options: ChatOptions) -> dict:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        request: dict = {
            "model": options.model or self._model,
            "max_tokens": options.max_tokens or _DEFAULT_MAX_TOKENS,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
            "temperature": options.temperature,
        }
        if system:
            request["system"] = system
        return request
