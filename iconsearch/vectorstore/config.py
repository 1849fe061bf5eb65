"""Vector store backend configuration.

A backend is selected by the ``type`` tag of a discriminated union; each
variant carries only the fields its backend needs.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from iconsearch.config import Settings
from iconsearch.exceptions import ConfigurationError, ErrorCode, ValidationError


class VectorStoreType(str, Enum):
    """Supported vector store backends."""

    EMBEDDED = "embedded"
    LOCAL_SERVER = "local-server"
    CLOUD = "cloud"
    MEMORY = "memory"


class _StoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class EmbeddedStoreConfig(_StoreConfig):
    """Single-blob store persisted in the local SQLite file.

    Without a ``store_name`` the search service names the blob after the
    active embedding model.
    """

    type: Literal["embedded"] = "embedded"
    store_name: str | None = Field(default=None, alias="storeName")
    path: Path = Field(default=Path("data/iconsearch.db"))
    min_similarity: float = Field(default=0.4, ge=-1.0, le=1.0, alias="minSimilarity")


class LocalServerStoreConfig(_StoreConfig):
    """Qdrant server reachable from this process."""

    type: Literal["local-server"] = "local-server"
    url: str = "http://localhost:6333"
    api_key: SecretStr | None = Field(default=None, alias="apiKey")
    collection_name: str = Field(default="gimme_icon_collection", alias="collectionName")


class CloudStoreConfig(_StoreConfig):
    """Chroma Cloud collection."""

    type: Literal["cloud"] = "cloud"
    api_key: SecretStr | None = Field(default=None, alias="apiKey")
    tenant: str | None = None
    database: str | None = None
    collection_name: str = Field(default="gimme_icon_collection", alias="collectionName")


class MemoryStoreConfig(_StoreConfig):
    """Non-persistent brute-force store."""

    type: Literal["memory"] = "memory"
    min_similarity: float = Field(default=0.0, ge=-1.0, le=1.0, alias="minSimilarity")


VectorStoreConfig = Annotated[
    EmbeddedStoreConfig | LocalServerStoreConfig | CloudStoreConfig | MemoryStoreConfig,
    Field(discriminator="type"),
]

_CONFIG_ADAPTER: TypeAdapter[VectorStoreConfig] = TypeAdapter(VectorStoreConfig)


def parse_store_config(data: dict[str, Any]) -> VectorStoreConfig:
    """Validate a raw mapping into the matching config variant.

    Raises:
        ValidationError: If ``type`` is unknown or a field is invalid.
    """
    try:
        return _CONFIG_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid vector store config: {e.error_count()} error(s)",
            details={
                "errors": e.errors(
                    include_url=False, include_context=False, include_input=False
                )
            },
        ) from e


def store_config_from_settings(settings: Settings) -> VectorStoreConfig:
    """Build the default store config from application settings."""
    store_type = settings.vector_store.type

    if store_type == VectorStoreType.EMBEDDED:
        return EmbeddedStoreConfig(
            path=settings.vector_store.data_path,
            min_similarity=settings.vector_store.min_similarity,
        )
    if store_type == VectorStoreType.LOCAL_SERVER:
        return LocalServerStoreConfig(
            url=settings.qdrant.url,
            api_key=settings.qdrant.api_key,
            collection_name=settings.qdrant.collection_name,
        )
    if store_type == VectorStoreType.CLOUD:
        return CloudStoreConfig(
            api_key=settings.chroma.api_key,
            tenant=settings.chroma.tenant,
            database=settings.chroma.database,
            collection_name=settings.chroma.collection_name,
        )
    if store_type == VectorStoreType.MEMORY:
        return MemoryStoreConfig()

    raise ConfigurationError(
        f"Unsupported vector store type: {store_type}",
        code=ErrorCode.UNSUPPORTED_BACKEND,
        details={"type": store_type},
    )


def public_config(config: VectorStoreConfig) -> dict[str, Any]:
    """Serialize a config for API responses, without credentials."""
    return config.model_dump(mode="json", by_alias=True, exclude={"api_key"})


def store_config_payload(config: VectorStoreConfig) -> dict[str, Any]:
    """Serialize a config for the server's config route, credentials included."""
    payload = public_config(config)
    api_key = getattr(config, "api_key", None)
    if api_key is not None:
        payload["apiKey"] = api_key.get_secret_value()
    return payload
