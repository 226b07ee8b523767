"""Utility modules for scrape-index.

- **errors** -- exception hierarchy rooted at ScrapeIndexError; every class
  carries an RPC ``error_code``.
- **logging** -- structlog setup with console output in development and
  JSON in production, plus per-job context binding.
- **concurrency** -- semaphore-bounded gather for the ingestion pool.
- **retry** -- exponential-backoff loop used for throttling and connects.
"""

from src.utils.concurrency import gather_ingestions, throttled_gather
from src.utils.errors import (
    BackendUnavailable,
    ConfigurationError,
    ExtractionError,
    JobConflictError,
    JobNotFoundError,
    ProviderError,
    RateLimitExceeded,
    ScrapeIndexError,
    UnsupportedOperation,
)
from src.utils.logging import bind_job_context, configure_logging, get_logger
from src.utils.retry import backoff_delay, retry_with_backoff

__all__ = [
    "BackendUnavailable",
    "ConfigurationError",
    "ExtractionError",
    "JobConflictError",
    "JobNotFoundError",
    "ProviderError",
    "RateLimitExceeded",
    "ScrapeIndexError",
    "UnsupportedOperation",
    "backoff_delay",
    "bind_job_context",
    "configure_logging",
    "gather_ingestions",
    "get_logger",
    "retry_with_backoff",
    "throttled_gather",
]
