"""Content extractors (URL -> StructuredDocument)."""

from src.providers.extractor.web_extractor import WebContentExtractor

__all__ = ["WebContentExtractor"]
