"""Extractor output consumed by the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StructuredDocument(BaseModel):
    """Extracted content of one web page.

    Produced by an :class:`~src.interfaces.content_extractor.IContentExtractor`
    and never modified afterwards; the orchestrator only reads it.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="URL the document was fetched from.")
    canonical_url: str | None = Field(
        default=None, description="Canonical URL if the page declares one."
    )
    title: str = Field(default="", description="Page title.")
    content_text: str = Field(default="", description="Main readable text.")
    content_html: str | None = Field(default=None, description="Raw HTML of the page.")
    language: str | None = Field(default=None, description="Detected language code.")
    published_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form extractor metadata (author, sitename, og tags...).",
    )
