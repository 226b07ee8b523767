"""Embedding / chat provider adapters.

Three concrete implementations of IAIProvider (src/interfaces/ai_provider.py):
    - OpenAIProvider    : embeddings + chat (also OpenAI-compatible gateways)
    - AnthropicProvider : chat only
    - GeminiProvider    : embeddings + chat via google-genai

:func:`build_ai_provider` maps a :class:`ProviderKind` to its adapter.  The
mapping is the only place a provider is chosen; there is no string dispatch
elsewhere.
"""

from __future__ import annotations

from src.config.settings import Settings
from src.interfaces.ai_provider import IAIProvider
from src.models.ai import ProviderKind
from src.providers.ai.anthropic_provider import AnthropicProvider
from src.providers.ai.base import BaseAIProvider
from src.providers.ai.gemini_provider import GeminiProvider
from src.providers.ai.openai_provider import OpenAIProvider
from src.utils.errors import ConfigurationError

_PROVIDERS: dict[ProviderKind, type[BaseAIProvider]] = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.GEMINI: GeminiProvider,
}


def build_ai_provider(kind: ProviderKind, settings: Settings) -> IAIProvider:
    """Construct the adapter for *kind*.

    Raises
    ------
    ConfigurationError
        If the provider's API key is not configured.
    """
    provider = _PROVIDERS[kind](settings)
    if not provider.is_available():
        raise ConfigurationError(
            message=f"No API key configured for provider '{kind.value}'",
            provider_name=kind.value,
        )
    return provider


__all__ = [
    "AnthropicProvider",
    "BaseAIProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "build_ai_provider",
]
