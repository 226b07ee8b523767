"""Abstract base class for web content extractors.

An extractor turns a URL into a :class:`~src.models.document.StructuredDocument`.
It either returns a complete document or raises
:class:`~src.utils.errors.ExtractionError`; partial documents are never
handed to the ingestion pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import StructuredDocument


class IContentExtractor(ABC):

    @abstractmethod
    async def extract(self, url: str) -> StructuredDocument:
        """Fetch *url* and extract its main content.

        Raises
        ------
        src.utils.errors.ExtractionError
            With a short ``reason`` when the page cannot be extracted.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"trafilatura"``."""

    @abstractmethod
    async def close(self) -> None:
        """Release any network resources."""
