"""Custom exception hierarchy for the scrape-index pipeline.

All application exceptions inherit from :class:`ScrapeIndexError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "sqlite") caused the failure.

    ScrapeIndexError  (base -- catch-all)
    +-- ExtractionError       (extractor could not produce a document)
    +-- RateLimitExceeded     (throttling persisted past the retry ceiling)
    +-- BackendUnavailable    (vector index / record store unreachable)
    +-- UnsupportedOperation  (provider lacks the requested capability)
    +-- ConfigurationError    (invalid chunk parameters, missing credentials)
    +-- ProviderError         (any other provider or vector-index call failure)
    +-- JobConflictError      (fingerprint uniqueness violated on insert)
    +-- JobNotFoundError      (unknown job id)

Each class also carries an ``error_code`` used by the tool dispatcher when
it turns an exception into a ``{code, message}`` RPC error.
"""


class ScrapeIndexError(Exception):
    """Base exception for all scrape-index errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    # JSON-RPC "internal error" unless a subclass says otherwise.
    error_code: int = -32603

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionError(ScrapeIndexError):
    """Raised when a URL cannot be turned into a StructuredDocument.

    ``reason`` is a short machine-friendly tag ("http_status", "timeout",
    "empty_content", ...) so callers can report it without parsing text.
    """

    error_code = -32001

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
        reason: str = "unknown",
    ) -> None:
        self._reason = reason
        super().__init__(message=message, provider_name=provider_name)

    @property
    def reason(self) -> str:
        return self._reason


# ---------------------------------------------------------------------------
# Provider / backend errors
# ---------------------------------------------------------------------------

class RateLimitExceeded(ScrapeIndexError):
    """Raised when a provider kept throttling after every retry attempt."""

    error_code = -32002

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BackendUnavailable(ScrapeIndexError):
    """Raised when the vector index or record store cannot be reached.

    Covers both "connect retries exhausted" and "readiness wait timed out".
    """

    error_code = -32003

    def __init__(
        self,
        message: str = "Backend is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedOperation(ScrapeIndexError):
    """Raised when a provider is asked for a capability it does not offer."""

    error_code = -32004

    def __init__(
        self,
        message: str = "Operation not supported by provider",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderError(ScrapeIndexError):
    """Raised when a provider or vector-index call fails for a non-throttling reason."""

    error_code = -32006

    def __init__(
        self,
        message: str = "Provider API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(ScrapeIndexError):
    """Raised when configuration is invalid or missing."""

    error_code = -32005

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Job records
# ---------------------------------------------------------------------------

class JobConflictError(ScrapeIndexError):
    """Raised when a job insert loses the fingerprint uniqueness race."""

    error_code = -32007

    def __init__(
        self,
        message: str = "A job with this fingerprint already exists",
        provider_name: str | None = None,
        fingerprint: str = "",
    ) -> None:
        self._fingerprint = fingerprint
        super().__init__(message=message, provider_name=provider_name)

    @property
    def fingerprint(self) -> str:
        return self._fingerprint


class JobNotFoundError(ScrapeIndexError):
    """Raised when a job id does not exist in the record store."""

    error_code = -32008

    def __init__(
        self,
        message: str = "Job not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
