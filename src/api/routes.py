"""FastAPI routes for the scrape-index service.

# Endpoint            Method  Description
# ------------------------------------------------------------------
# /api/v1/rpc         POST    JSON-RPC 2.0 tool call (ingest, search, ...)
# /api/v1/health      GET     Health check + provider status
# /api/v1/stats       GET     Job counts and vector collection stats

Services are resolved from ``app.state`` (populated in ``main._build_all``)
through ``Annotated[..., Depends(...)]`` aliases.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.schemas import HealthResponse, StatsResponse
from src.interfaces.record_store import IRecordStore
from src.interfaces.vector_index import IVectorIndex
from src.services.tool_dispatcher import ToolDispatcher

logger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api/v1", tags=["scrape-index"])

_VERSION = "0.1.0"


def _get_dispatcher(request: Request) -> ToolDispatcher:
    return request.app.state.tool_dispatcher


def _get_record_store(request: Request) -> IRecordStore:
    return request.app.state.record_store


def _get_vector_index(request: Request) -> IVectorIndex:
    return request.app.state.vector_index


DispatcherDep = Annotated[ToolDispatcher, Depends(_get_dispatcher)]
RecordStoreDep = Annotated[IRecordStore, Depends(_get_record_store)]
VectorIndexDep = Annotated[IVectorIndex, Depends(_get_vector_index)]


@router.post("/rpc", summary="JSON-RPC 2.0 tool call")
async def rpc(request: Request, dispatcher: DispatcherDep) -> JSONResponse:
    """Dispatch one JSON-RPC request.

    Always answers HTTP 200; failures are reported inside the JSON-RPC
    ``error`` member as ``{code, message}``.
    """
    body = await request.body()
    return JSONResponse(await dispatcher.handle_raw(body))


@router.get("/health", response_model=HealthResponse)
async def health(request: Request, vector_index: VectorIndexDep) -> HealthResponse:
    registry: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    registry["vector_index_ready"] = vector_index.is_ready()
    return HealthResponse(
        status="ok" if vector_index.is_ready() else "degraded",
        version=_VERSION,
        providers=registry,
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(
    request: Request,
    record_store: RecordStoreDep,
    vector_index: VectorIndexDep,
) -> StatsResponse:
    collection: str = request.app.state.collection_name
    counts = await record_store.count_jobs()
    collection_stats = await vector_index.get_stats(collection)
    return StatsResponse(
        jobs=counts,
        collection=collection,
        vector_count=collection_stats.vector_count,
        dimension=collection_stats.dimension,
    )
