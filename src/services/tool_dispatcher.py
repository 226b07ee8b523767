"""JSON-RPC 2.0 tool dispatcher.

Maps external tool calls onto the ingestion and search services.  Every
failure is returned as a ``{"code", "message"}`` error object; no exception
escapes :meth:`ToolDispatcher.dispatch` or :meth:`ToolDispatcher.handle_raw`.

Error codes follow JSON-RPC for protocol problems (``-32700`` parse error,
``-32600`` invalid request, ``-32601`` unknown method, ``-32602`` bad
params, ``-32603`` internal error) and use each
:class:`~src.utils.errors.ScrapeIndexError` subclass's ``error_code`` for
domain failures.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.models.ai import ProviderKind
from src.services.ingestion.ingestion_service import IngestionService
from src.services.search_service import SearchService
from src.utils.errors import ScrapeIndexError

logger = structlog.get_logger(logger_name=__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------

class IngestParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = Field(min_length=1)
    source: str = ""


class SearchParams(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    query: str = Field(min_length=1)
    filters: dict[str, Any] = Field(default_factory=dict)
    top_k: int | None = Field(default=None, ge=1, le=100, alias="topK")
    limit: int | None = Field(default=None, ge=1, le=100)

    @property
    def effective_top_k(self) -> int:
        return self.top_k or self.limit or 10


class JobParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)


class SummarizeParams(JobParams):
    provider: ProviderKind | None = None
    model: str | None = None


# ---------------------------------------------------------------------------
# Tool catalogue
# ---------------------------------------------------------------------------

_TOOLS: list[dict[str, Any]] = [
    {
        "name": "ingest_url",
        "description": "Scrape a URL and index its content",
        "parameters": {
            "type": "object",
            "properties": {"url": {"type": "string"}, "source": {"type": "string"}},
            "required": ["url"],
        },
    },
    {
        "name": "search_jobs",
        "description": "Semantic search over indexed jobs with optional filters",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "filters": {
                    "type": "object",
                    "properties": {
                        "source": {"type": "string"},
                        "language": {"type": "string"},
                        "tags": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "topK": {"type": "number"},
            },
            "required": ["query"],
        },
    },
    {
        "name": "get_job",
        "description": "Get job details and chunks by ID",
        "parameters": {
            "type": "object",
            "properties": {"id": {"type": "string"}},
            "required": ["id"],
        },
    },
    {
        "name": "summarize_job",
        "description": "Summarize a job's content with a chat model",
        "parameters": {
            "type": "object",
            "properties": {
                "id": {"type": "string"},
                "provider": {"type": "string", "enum": [k.value for k in ProviderKind]},
                "model": {"type": "string"},
            },
            "required": ["id"],
        },
    },
]


def rpc_error(code: int, message: str, request_id: Any = None) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


class ToolDispatcher:
    """Routes JSON-RPC requests to service methods."""

    def __init__(self, ingestion: IngestionService, search: SearchService) -> None:
        self._ingestion = ingestion
        self._search = search
        self._methods: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "ingest": self._ingest,
            "ingest_url": self._ingest,
            "search": self._search_jobs,
            "search_jobs": self._search_jobs,
            "get_job": self._get_job,
            "summarize_job": self._summarize_job,
            "list_tools": self._list_tools,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    async def handle_raw(self, payload: str | bytes) -> dict[str, Any]:
        """Decode one JSON-RPC message and dispatch it."""
        try:
            request = json.loads(payload)
        except (ValueError, TypeError):
            return rpc_error(PARSE_ERROR, "Parse error")
        return await self.dispatch(request)

    async def dispatch(self, request: Any) -> dict[str, Any]:
        """Dispatch a decoded JSON-RPC request object."""
        if not isinstance(request, dict) or not isinstance(request.get("method"), str):
            return rpc_error(INVALID_REQUEST, "Invalid request")

        request_id = request.get("id")
        method = request["method"]
        params = request.get("params") or {}
        handler = self._methods.get(method)
        if handler is None:
            return rpc_error(METHOD_NOT_FOUND, f"Unknown method: {method}", request_id)
        if not isinstance(params, dict):
            return rpc_error(INVALID_PARAMS, "params must be an object", request_id)

        logger.info("rpc_request", method=method, request_id=request_id)
        try:
            result = await handler(params)
        except ValidationError as exc:
            return rpc_error(INVALID_PARAMS, _validation_message(exc), request_id)
        except ScrapeIndexError as exc:
            logger.warning("rpc_error", method=method, code=exc.error_code, error=str(exc))
            return rpc_error(exc.error_code, exc.message, request_id)
        except Exception as exc:
            logger.exception("rpc_internal_error", method=method, error=str(exc))
            return rpc_error(INTERNAL_ERROR, "Internal error", request_id)
        return {"jsonrpc": "2.0", "result": result, "id": request_id}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _ingest(self, params: dict[str, Any]) -> dict[str, Any]:
        args = IngestParams.model_validate(params)
        result = await self._ingestion.ingest_url(args.url, args.source)
        return {
            "jobId": result.job_id,
            "url": result.url,
            "status": result.status.value,
            "deduplicated": result.deduplicated,
            "chunkCount": result.chunk_count,
        }

    async def _search_jobs(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        args = SearchParams.model_validate(params)
        jobs = await self._search.search(args.query, args.filters, args.effective_top_k)
        return [job.to_summary() for job in jobs]

    async def _get_job(self, params: dict[str, Any]) -> dict[str, Any]:
        args = JobParams.model_validate(params)
        job, chunks = await self._search.get_job(args.id)
        detail = job.to_summary()
        detail["content"] = job.content
        detail["errorMessage"] = job.error_message
        detail["chunks"] = [
            {"position": c.position, "text": c.text, "vectorId": c.vector_id}
            for c in chunks
        ]
        return detail

    async def _summarize_job(self, params: dict[str, Any]) -> dict[str, Any]:
        args = SummarizeParams.model_validate(params)
        summary = await self._search.summarize_job(args.id, args.provider, args.model)
        return {"jobId": args.id, "summary": summary}

    async def _list_tools(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return _TOOLS


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "params"
    return f"Invalid params: {location}: {first.get('msg', 'invalid value')}"
