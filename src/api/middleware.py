"""API middleware: CORS, request logging and error handling."""

# ─── Middleware order ───────────────────────────────────────────────────
#
# Starlette middleware is a stack (last added runs first):
#
#   app.add_middleware(ErrorHandlingMiddleware)    # inner
#   app.add_middleware(RequestLoggingMiddleware)   # outer
#
#   Client -> RequestLogging -> ErrorHandling -> route handler
#
# RequestLogging therefore records the status ErrorHandling produced.
# The JSON-RPC route never reaches ErrorHandling with a domain error:
# ToolDispatcher turns those into {code, message} bodies itself.
# ──────────────────────────────────────────────────────────────────────

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import (
    BackendUnavailable,
    JobNotFoundError,
    RateLimitExceeded,
    ScrapeIndexError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Anything not listed maps to 500.
_STATUS_BY_ERROR: dict[type[ScrapeIndexError], int] = {
    JobNotFoundError: 404,
    RateLimitExceeded: 429,
    BackendUnavailable: 503,
}


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; defaults to ``["*"]`` for development."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``ScrapeIndexError`` subclasses into structured JSON errors.

    Stack traces stay in the server log; the client only sees the error
    type, its code and its message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except ScrapeIndexError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                code=exc.error_code,
                detail=exc.message,
            )
            return JSONResponse(
                status_code=_STATUS_BY_ERROR.get(type(exc), 500),
                content=body.model_dump(),
            )
