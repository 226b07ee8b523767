"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values come from (highest priority first):
#
#   1. Environment variables, e.g. OPENAI_API_KEY=sk-abc123
#   2. The .env file in the project root
#   3. The defaults below
#
# Field ``chunk_size`` maps to env var ``CHUNK_SIZE`` and so on.  Enum
# fields accept their string values (VECTOR_BACKEND=pinecone).
#
# The .env file is git-ignored; .env.example lists every variable.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.ai import ProviderKind
from src.models.vector import VectorBackend


class Settings(BaseSettings):
    """scrape-index application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === AI Providers ===
    # Empty key = "not configured"; build_ai_provider raises
    # ConfigurationError when a selected provider has no key.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible gateways
    openai_embedding_model: str = "text-embedding-3-small"
    openai_chat_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_chat_model: str = "claude-3-5-sonnet-latest"
    gemini_api_key: str = ""
    gemini_embedding_model: str = "text-embedding-004"
    gemini_chat_model: str = "gemini-2.0-flash"

    embedding_provider: ProviderKind = ProviderKind.OPENAI
    chat_provider: ProviderKind = ProviderKind.OPENAI

    # === Throttling retry (provider calls) ===
    retry_max_attempts: int = 5
    retry_base_delay: float = 0.5

    # === Chunking / Embedding ===
    chunk_size: int = 512
    chunk_overlap: int = 128
    chars_per_token: int = 4
    embedding_batch_size: int = 64
    embedding_cache_ttl: int = 604800  # 7 days
    embedding_cache_max_size: int = 10000

    # === Vector Index ===
    vector_backend: VectorBackend = VectorBackend.CHROMA
    vector_collection: str = "job_embeddings"
    vector_dimension: int = 0  # 0 = infer from the first vector written
    chroma_host: str = ""  # empty = embedded PersistentClient
    chroma_port: int = 8000
    chroma_persist_dir: str = "./data/chromadb"
    pinecone_api_key: str = ""
    pinecone_cloud: str = "aws"
    pinecone_region: str = "us-east-1"
    pinecone_namespace: str = ""
    connect_max_attempts: int = 8
    connect_base_delay: float = 0.5
    ready_timeout: float = 30.0
    ready_poll_interval: float = 0.3

    # === Records ===
    record_db_path: str = "data/scrape_index.db"

    # === Ingestion ===
    ingest_concurrency: int = 3
    extractor_timeout: float = 30.0
    extractor_user_agent: str = "scrape-index/0.1 (+https://github.com/scrape-index)"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_chunk_window(self) -> "Settings":
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        if self.ingest_concurrency < 1:
            raise ValueError("ingest_concurrency must be at least 1")
        return self

    def get_configured_providers(self) -> list[ProviderKind]:
        """Return the provider kinds that have non-empty API keys configured."""
        providers: list[ProviderKind] = []
        if self.openai_api_key:
            providers.append(ProviderKind.OPENAI)
        if self.anthropic_api_key:
            providers.append(ProviderKind.ANTHROPIC)
        if self.gemini_api_key:
            providers.append(ProviderKind.GEMINI)
        return providers
