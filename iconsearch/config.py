"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class CatalogSource(str, Enum):
    """Where the icon catalog is loaded from."""

    ICONIFY = "iconify"
    FILE = "file"


class EmbeddingSettings(BaseSettings):
    """Embedding model configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Pretrained feature-extraction model identifier",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Model load attempts before switching to fallback mode",
    )
    load_timeout: float = Field(
        default=30.0,
        description="Per-attempt model load timeout in seconds",
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff between load attempts",
    )
    call_timeout: float = Field(
        default=30.0,
        description="Timeout for a single embedding call in seconds",
    )
    fallback_dimensions: int = Field(
        default=128,
        description="Length of the deterministic fallback vector",
    )


class VectorStoreSettings(BaseSettings):
    """Default vector store selection and local persistence."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_STORE_")

    type: str = Field(
        default="embedded",
        description="Backend type: embedded, local-server, cloud or memory",
    )
    data_path: Path = Field(
        default=Path("data/iconsearch.db"),
        description="SQLite file backing the embedded store, cache and preferences",
    )
    min_similarity: float = Field(
        default=0.4,
        ge=-1.0,
        le=1.0,
        description="Embedded store cutoff; hits below it are dropped",
    )
    cache_prefix: str = Field(
        default="gimme_icons",
        description="Prefix of the durable vector cache key",
    )


class QdrantSettings(BaseSettings):
    """Qdrant server used by the local-server backend."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="gimme_icon_collection",
        description="Default collection name",
    )


class ChromaSettings(BaseSettings):
    """Chroma Cloud credentials used by the cloud backend."""

    model_config = SettingsConfigDict(env_prefix="CHROMA_")

    api_key: SecretStr | None = Field(
        default=None,
        description="Chroma Cloud API key",
    )
    tenant: str | None = Field(
        default=None,
        description="Chroma Cloud tenant",
    )
    database: str | None = Field(
        default=None,
        description="Chroma Cloud database",
    )
    collection_name: str = Field(
        default="gimme_icon_collection",
        description="Default collection name",
    )
    batch_size: int = Field(
        default=300,
        ge=1,
        description="Maximum items per upsert request",
    )


class CatalogSettings(BaseSettings):
    """Icon catalog source configuration."""

    model_config = SettingsConfigDict(env_prefix="CATALOG_")

    source: CatalogSource = Field(
        default=CatalogSource.ICONIFY,
        description="Catalog source",
    )
    iconify_url: str = Field(
        default="https://api.iconify.design",
        description="Iconify API base URL",
    )
    file_path: Path = Field(
        default=Path("data/icons.json"),
        description="JSON catalog file used by the file source",
    )
    default_libraries: list[str] = Field(
        default_factory=lambda: ["lucide", "heroicons", "ant-design"],
        description="Libraries loaded when no selection is stored",
    )
    request_timeout: float = Field(
        default=30.0,
        description="Catalog HTTP request timeout in seconds",
    )


class SearchSettings(BaseSettings):
    """Search orchestration limits."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_limit: int = Field(
        default=100,
        ge=1,
        description="Result limit when the caller gives none",
    )
    store_timeout: float = Field(
        default=60.0,
        description="Timeout for vector store initialization and bulk upsert",
    )
    generation_timeout: float = Field(
        default=120.0,
        description="Timeout for embedding the whole catalog",
    )


class ExecutionSettings(BaseSettings):
    """Execution context of this process."""

    model_config = SettingsConfigDict(env_prefix="EXECUTION_")

    is_client: bool = Field(
        default=False,
        description="Run as a client that relays cloud operations to a server",
    )
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Server base URL used by a client process",
    )
    request_timeout: float = Field(
        default=30.0,
        description="Relay request timeout in seconds",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    console_token: SecretStr | None = Field(
        default=None,
        description="Token granting administrative embedding operations",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    chroma: ChromaSettings = Field(default_factory=ChromaSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
