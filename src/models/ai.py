"""Data models for the embedding / chat provider layer.

Providers form a closed set (:class:`ProviderKind`) and each one declares
the :class:`Capability` values it offers.  Chat streaming yields a tagged
union of :class:`StreamDelta` (partial text) followed by exactly one
:class:`StreamDone` carrying the complete :class:`ChatResult`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ProviderKind(str, Enum):
    """Every embedding / chat backend the pipeline can be wired to."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class Capability(str, Enum):
    EMBEDDINGS = "embeddings"
    CHAT = "chat"


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------
class EmbeddingVector(BaseModel):
    """A single embedding together with where it came from."""

    model_config = ConfigDict(frozen=True)

    values: list[float] = Field(description="The embedding components.")
    model: str = Field(default="", description="Model that produced the vector.")
    source_provider: str = Field(default="", description="Provider name, e.g. 'openai'.")

    @property
    def dimension(self) -> int:
        return len(self.values)


class EmbeddingBatch(BaseModel):
    """Vectors for a batch of texts, 1:1 and in input order."""

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]] = Field(default_factory=list)
    model: str = ""
    total_tokens: int = Field(default=0, ge=0)


class CacheEntry(BaseModel):
    """Durable-tier bookkeeping row for one cached embedding."""

    model_config = ConfigDict(frozen=True)

    cache_key: str
    content_hash: str
    provider: str
    model: str = ""
    dimension: int = 0
    hit_count: int = 0
    created_at: datetime | None = None
    last_used_at: datetime | None = None


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class ChatOptions(BaseModel):
    """Per-call overrides; ``model=None`` means the provider's default."""

    model_config = ConfigDict(frozen=True)

    model: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)


class ChatResult(BaseModel):
    """A completed chat response.  Token counts are advisory."""

    model_config = ConfigDict(frozen=True)

    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class StreamDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delta"] = "delta"
    text: str


class StreamDone(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["done"] = "done"
    result: ChatResult


StreamEvent = Union[StreamDelta, StreamDone]


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
class ProviderCallLog(BaseModel):
    """One row of the best-effort provider call audit."""

    model_config = ConfigDict(frozen=True)

    provider: str
    operation: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    success: bool = True
    error_message: str | None = None
    latency_ms: int = 0
