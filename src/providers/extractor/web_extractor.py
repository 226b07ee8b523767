"""Web content extractor using httpx and trafilatura.

Fetches raw HTML with httpx and lets trafilatura strip navigation, ads and
boilerplate.  Metadata (title, author, date, tags, language, canonical URL)
comes from trafilatura's JSON output.  Any failure raises
:class:`~src.utils.errors.ExtractionError` with a short ``reason``; a page
with no readable text is a failure, never an empty document.
"""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import structlog
import trafilatura

from src.interfaces.content_extractor import IContentExtractor
from src.models.document import StructuredDocument
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; scrape-index/0.1)"


def _split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.replace(";", ",").split(",") if t.strip()]


def _parse_date(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


class WebContentExtractor(IContentExtractor):
    """Content extraction backed by httpx + trafilatura."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            follow_redirects=True,
        )

    def get_provider_name(self) -> str:
        return "trafilatura"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def extract(self, url: str) -> StructuredDocument:
        html = await self._fetch(url)

        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text or not text.strip():
            logger.warning("extraction_empty", url=url)
            raise ExtractionError(
                message=f"No readable content at {url}",
                provider_name=self.get_provider_name(),
                reason="empty_content",
            )

        meta: dict = {}
        raw_meta = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
            url=url,
        )
        if raw_meta:
            try:
                meta = json.loads(raw_meta)
            except json.JSONDecodeError:
                logger.debug("metadata_parse_failed", url=url)

        tags = _split_tags(meta.get("tags")) + _split_tags(meta.get("categories"))
        document = StructuredDocument(
            url=url,
            canonical_url=meta.get("source") or None,
            title=meta.get("title") or "",
            content_text=text,
            content_html=html,
            language=meta.get("language") or None,
            published_at=_parse_date(meta.get("date")),
            tags=list(dict.fromkeys(tags)),
            metadata={
                key: meta[key]
                for key in ("author", "sitename", "hostname", "description", "image")
                if meta.get(key)
            },
        )
        logger.info("content_extracted", url=url, title=document.title, text_length=len(text))
        return document

    async def _fetch(self, url: str) -> str:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError(
                message=f"Timeout fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
                reason="timeout",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
                reason="http_status",
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
                reason="network",
            ) from exc
        return response.text
