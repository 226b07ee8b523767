"""Scrape-index FastAPI application entry point.

Wires every provider and service together once, at startup, and stores them
on ``app.state``.  Clients (SDK handles, the HTTP client, the vector index
connection) are owned here and injected downward; nothing below this module
constructs its own long-lived client.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.interfaces.ai_provider import IAIProvider
from src.models.ai import Capability, ProviderKind
from src.providers.ai import build_ai_provider
from src.providers.cache.memory_cache import MemoryCacheProvider
from src.providers.extractor.web_extractor import WebContentExtractor
from src.providers.records.sqlite_record_store import SQLiteRecordStore
from src.providers.vector_index import build_vector_index
from src.services.ai_service import AIService
from src.services.embedding_cache import EmbeddingCache
from src.services.fingerprint import ContentFingerprinter
from src.services.ingestion.chunker import CharRatioTokenCounter, TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.search_service import SearchService
from src.services.tool_dispatcher import ToolDispatcher
from src.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_chat_providers(
    app_settings: Settings, embedder: IAIProvider
) -> dict[ProviderKind, IAIProvider]:
    """Build a chat adapter for every provider with a configured key."""
    providers: dict[ProviderKind, IAIProvider] = {}
    for kind in app_settings.get_configured_providers():
        if kind is app_settings.embedding_provider and embedder.supports(Capability.CHAT):
            providers[kind] = embedder
            continue
        providers[kind] = build_ai_provider(kind, app_settings)
    return providers


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here performs network I/O; connecting happens in the lifespan.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(app_settings.extractor_timeout),
        headers={"User-Agent": app_settings.extractor_user_agent},
        follow_redirects=True,
    )
    fingerprinter = ContentFingerprinter()

    # -- Persistence --
    record_store = SQLiteRecordStore(db_path=app_settings.record_db_path)
    vector_index = build_vector_index(app_settings)

    # -- AI providers --
    embedder = build_ai_provider(app_settings.embedding_provider, app_settings)
    chat_providers = _build_chat_providers(app_settings, embedder)
    default_chat = (
        app_settings.chat_provider
        if app_settings.chat_provider in chat_providers
        else next(iter(chat_providers), None)
    )

    cache = EmbeddingCache(
        fast_tier=MemoryCacheProvider(
            max_size=app_settings.embedding_cache_max_size,
            ttl=app_settings.embedding_cache_ttl,
        ),
        durable_tier=record_store,
        fingerprinter=fingerprinter,
        ttl=app_settings.embedding_cache_ttl,
    )
    ai_service = AIService(
        embedding_provider=embedder,
        cache=cache,
        chat_providers=chat_providers,
        default_chat=default_chat,
        record_store=record_store,
        batch_size=app_settings.embedding_batch_size,
    )

    # -- Services --
    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        token_counter=CharRatioTokenCounter(app_settings.chars_per_token),
    )
    ingestion_service = IngestionService(
        ai_service=ai_service,
        chunker=chunker,
        vector_index=vector_index,
        record_store=record_store,
        collection=app_settings.vector_collection,
        extractor=WebContentExtractor(http_client=http_client),
        fingerprinter=fingerprinter,
        concurrency=app_settings.ingest_concurrency,
        ready_timeout=app_settings.ready_timeout,
        ready_poll_interval=app_settings.ready_poll_interval,
    )
    search_service = SearchService(
        ai_service=ai_service,
        vector_index=vector_index,
        record_store=record_store,
        collection=app_settings.vector_collection,
    )
    tool_dispatcher = ToolDispatcher(ingestion=ingestion_service, search=search_service)

    provider_registry: dict[str, Any] = {
        "embedding": embedder.get_provider_name(),
        "chat": [kind.value for kind in chat_providers],
        "vector_index": vector_index.get_provider_name(),
        "record_store": record_store.get_provider_name(),
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "record_store": record_store,
        "vector_index": vector_index,
        "ai_service": ai_service,
        "ingestion_service": ingestion_service,
        "search_service": search_service,
        "tool_dispatcher": tool_dispatcher,
        "collection_name": app_settings.vector_collection,
        "provider_registry": provider_registry,
    }


async def _connect_vector_index(components: dict[str, Any]) -> None:
    """Connect the vector index and pre-create the collection if sized."""
    app_settings: Settings = components["settings"]
    vector_index = components["vector_index"]
    await vector_index.initialize()
    if app_settings.vector_dimension > 0:
        await vector_index.create_collection(
            app_settings.vector_collection, app_settings.vector_dimension
        )


async def startup(components: dict[str, Any]) -> asyncio.Task[None]:
    """Open the record store and start connecting the vector index.

    The vector index connects in the background; ingestion waits on its
    readiness instead of the server refusing to start.
    """
    await components["record_store"].initialize()
    return asyncio.create_task(_connect_vector_index(components))


async def shutdown(components: dict[str, Any], connect_task: asyncio.Task[None] | None) -> None:
    if connect_task is not None and not connect_task.done():
        connect_task.cancel()
        try:
            await connect_task
        except asyncio.CancelledError:
            pass
    await components["vector_index"].close()
    await components["record_store"].close()
    await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    components = _build_all(app_settings)
    for key, value in components.items():
        setattr(application.state, key, value)

    connect_task = await startup(components)
    connect_task.add_done_callback(_log_connect_outcome)

    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=app_settings.app_env,
        vector_backend=app_settings.vector_backend.value,
        embedding_provider=app_settings.embedding_provider.value,
    )

    yield

    await shutdown(components, connect_task)
    _logger.info("app_shutdown")


def _log_connect_outcome(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error("vector_index_startup_failed", error=str(exc))
    else:
        _logger.info("vector_index_ready")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="scrape-index API",
        version=_VERSION,
        description=(
            "Ingest web documents, deduplicate them by content fingerprint, "
            "embed their chunks and serve semantic search over the index."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    _settings = Settings()
    uvicorn.run(
        "src.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        reload=(_settings.app_env == "development"),
    )
