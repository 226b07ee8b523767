"""Abstract base class for embedding and chat providers.

Every provider belongs to the closed :class:`~src.models.ai.ProviderKind`
set and declares which :class:`~src.models.ai.Capability` values it offers.
Some providers embed and chat (OpenAI, Gemini); others only chat
(Anthropic).  Asking a provider for a capability it lacks raises
:class:`~src.utils.errors.UnsupportedOperation` before any network call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from src.models.ai import (
    Capability,
    ChatMessage,
    ChatOptions,
    ChatResult,
    EmbeddingBatch,
    EmbeddingVector,
    ProviderKind,
    StreamEvent,
)


# Concrete implementations live in src/providers/ai/:
#   OpenAIProvider    : embeddings + chat
#   AnthropicProvider : chat only
#   GeminiProvider    : embeddings + chat (google-genai)
# Shared sub-batching and throttle retry: src/providers/ai/base.py
class IAIProvider(ABC):
    """Contract for embedding / chat services used by the pipeline."""

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """The provider's member of the closed provider set."""

    @abstractmethod
    def capabilities(self) -> frozenset[Capability]:
        """Capabilities this provider supports."""

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingVector:
        """Embed a single text.

        Raises
        ------
        src.utils.errors.UnsupportedOperation
            If the provider has no embedding capability.
        src.utils.errors.RateLimitExceeded
            If throttling persists past the retry ceiling.
        src.utils.errors.ProviderError
            On any other API failure.
        """

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> EmbeddingBatch:
        """Embed many texts.

        The result holds exactly one vector per input, in input order.
        Implementations sub-batch internally when the API has a per-call
        limit and reassemble the results.
        """

    @abstractmethod
    async def chat(
        self, messages: list[ChatMessage], options: ChatOptions | None = None
    ) -> ChatResult:
        """Run a chat completion and return the full response."""

    @abstractmethod
    def chat_stream(
        self, messages: list[ChatMessage], options: ChatOptions | None = None
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion.

        Yields zero or more :class:`~src.models.ai.StreamDelta` events then
        exactly one :class:`~src.models.ai.StreamDone`.  Closing the iterator
        early (``aclose()`` or task cancellation) releases the underlying
        network stream.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured."""

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities()
