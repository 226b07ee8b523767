"""Pydantic request/response schemas for the scrape-index HTTP API.

The RPC endpoint carries raw JSON-RPC envelopes (validated by the tool
dispatcher itself); the remaining endpoints use the models below.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class StatsResponse(BaseModel):
    """Job counts and vector collection statistics."""

    jobs: dict[str, int] = Field(default_factory=dict, description="Job count per status.")
    collection: str
    vector_count: int = 0
    dimension: int = 0


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    code: int
    detail: str | None = None
