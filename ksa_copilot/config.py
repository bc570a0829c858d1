"""
KSA Copilot Configuration Module
================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    OPENAI_API_KEY: Embedding provider key (alias: GPT_API_KEY)
    EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
    EMBEDDING_DIMENSIONS: Vector size (default: 1536)
    EMBEDDING_MAX_INPUT_CHARS: Input truncation limit (default: 8191)
    EMBEDDING_MAX_RETRIES: Retries on transient errors (default: 2)
    EMBEDDING_RETRY_BASE_DELAY: Backoff base in seconds (default: 2.0)
    EMBEDDING_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 30)

    DATABASE_URL: PostgreSQL DSN with pgvector (optional, KB disabled if unset)
    DATABASE_POOL_MIN: Minimum pool connections (default: 1)
    DATABASE_POOL_MAX: Maximum pool connections (default: 10)
    DATABASE_STATEMENT_TIMEOUT_MS: Default k-NN statement timeout (default: 5000)

    CHUNK_TARGET_TOKENS: Chunk size target (default: 700)
    CHUNK_OVERLAP_TOKENS: Overlap between chunks (default: 80)

    KB_SEARCH_K: Default search result count (default: 10)
    CITATION_K: Citations per checklist item (default: 2)
    CITATION_MIN_SIMILARITY: Citation confidence floor (default: 0.65)
    CITATION_QUERY_MAX_CHARS: Citation query truncation (default: 500)
    HYBRID_KEYWORD_WEIGHT: Keyword share in hybrid search (default: 0.3)
    CITATION_WORKERS: Parallel citation lookups (default: 4)
    CITATION_TIMEOUT: Per-item citation timeout in seconds (default: 10)

    REGULATIONS_DIR: Root of regulation packs (default: regulations)
    INGEST_EMBED_DELAY: Delay between embedding calls in seconds (default: 0.05)

    LOG_LEVEL / LOG_JSON / LOG_FILE: Logging options
    LOG_FILE_MAX_BYTES / LOG_FILE_BACKUPS: Log file rotation
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        Environment variable value or default

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration."""

    api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    model: str = field(default_factory=lambda: get_env("EMBEDDING_MODEL", "text-embedding-3-small"))
    dimensions: int = field(default_factory=lambda: get_env_int("EMBEDDING_DIMENSIONS", 1536))

    # Provider input limit; 8191 tokens, applied as characters
    max_input_chars: int = field(default_factory=lambda: get_env_int("EMBEDDING_MAX_INPUT_CHARS", 8191))

    # Retry configuration (2s, 4s)
    max_retries: int = field(default_factory=lambda: get_env_int("EMBEDDING_MAX_RETRIES", 2))
    retry_base_delay: float = field(default_factory=lambda: get_env_float("EMBEDDING_RETRY_BASE_DELAY", 2.0))

    request_timeout: float = field(default_factory=lambda: get_env_float("EMBEDDING_REQUEST_TIMEOUT", 30.0))

    def __post_init__(self):
        """Validate configuration."""
        if self.dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if self.max_input_chars <= 0:
            raise ValueError("max_input_chars must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class DatabaseConfig:
    """PostgreSQL + pgvector configuration."""

    url: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL"))

    # Connection pool settings
    pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN", 1))
    pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX", 10))

    statement_timeout_ms: int = field(
        default_factory=lambda: get_env_int("DATABASE_STATEMENT_TIMEOUT_MS", 5000)
    )

    def __post_init__(self):
        """Validate configuration."""
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("pool_min_size cannot exceed pool_max_size")

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


@dataclass
class ChunkingConfig:
    """Regulation chunking configuration."""

    target_tokens: int = field(default_factory=lambda: get_env_int("CHUNK_TARGET_TOKENS", 700))
    overlap_tokens: int = field(default_factory=lambda: get_env_int("CHUNK_OVERLAP_TOKENS", 80))

    def __post_init__(self):
        """Validate configuration."""
        if self.target_tokens <= 0:
            raise ValueError("target_tokens must be positive")
        if self.overlap_tokens < 0 or self.overlap_tokens >= self.target_tokens:
            raise ValueError("overlap_tokens must be in [0, target_tokens)")


@dataclass
class RetrievalConfig:
    """Search and citation configuration."""

    default_k: int = field(default_factory=lambda: get_env_int("KB_SEARCH_K", 10))

    # Calibrated citation defaults
    citation_k: int = field(default_factory=lambda: get_env_int("CITATION_K", 2))
    citation_min_similarity: float = field(
        default_factory=lambda: get_env_float("CITATION_MIN_SIMILARITY", 0.65)
    )
    citation_query_max_chars: int = field(
        default_factory=lambda: get_env_int("CITATION_QUERY_MAX_CHARS", 500)
    )

    keyword_weight: float = field(default_factory=lambda: get_env_float("HYBRID_KEYWORD_WEIGHT", 0.3))

    # Parallel citation lookups
    citation_workers: int = field(default_factory=lambda: get_env_int("CITATION_WORKERS", 4))
    citation_timeout: float = field(default_factory=lambda: get_env_float("CITATION_TIMEOUT", 10.0))

    def __post_init__(self):
        """Validate configuration."""
        if self.default_k <= 0 or self.citation_k <= 0:
            raise ValueError("k values must be positive")
        if not 0.0 <= self.citation_min_similarity <= 1.0:
            raise ValueError("citation_min_similarity must be between 0 and 1")
        if not 0.0 <= self.keyword_weight <= 1.0:
            raise ValueError("keyword_weight must be between 0 and 1")
        if self.citation_workers <= 0:
            raise ValueError("citation_workers must be positive")


@dataclass
class IngestionConfig:
    """Knowledge base ingestion configuration."""

    regulations_dir: str = field(default_factory=lambda: get_env("REGULATIONS_DIR", "regulations"))

    # Fixed delay between embedding calls (provider throughput)
    embed_delay: float = field(default_factory=lambda: get_env_float("INGEST_EMBED_DELAY", 0.05))

    def __post_init__(self):
        """Validate configuration."""
        if self.embed_delay < 0:
            raise ValueError("embed_delay cannot be negative")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))

    # File rotation
    file_max_bytes: int = field(default_factory=lambda: get_env_int("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))
    file_backup_count: int = field(default_factory=lambda: get_env_int("LOG_FILE_BACKUPS", 5))

    def __post_init__(self):
        """Validate configuration."""
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {self.level}")
        if self.file_max_bytes <= 0 or self.file_backup_count < 0:
            raise ValueError("log rotation sizes must be positive")


@dataclass
class Settings:
    """Main application settings container."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_name: str = "ksa-copilot"
    app_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "development"))

    @property
    def kb_enabled(self) -> bool:
        """Knowledge base needs both a database and an embedding key."""
        return self.database.is_configured and self.embedding.is_configured

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() in ("production", "prod")


def load_settings() -> Settings:
    """
    Load and validate all application settings.

    Raises:
        ValueError: If configuration is invalid
    """
    return Settings()


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
