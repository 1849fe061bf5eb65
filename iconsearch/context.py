"""Application context.

One ``AppContext`` is built at process start and handed to whoever needs the
search service, the registry or the stores behind them.
"""

from pydantic import BaseModel, ConfigDict

from iconsearch.catalog.loader import CatalogLoader, FileCatalogLoader, IconifyCatalogLoader
from iconsearch.config import CatalogSource, Settings, get_settings
from iconsearch.embeddings.service import EmbeddingService, create_embedding_service
from iconsearch.execution import ExecutionContext
from iconsearch.logging_config import get_logger
from iconsearch.search.service import IconSearchService
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.storage.preferences import PreferenceStore
from iconsearch.storage.vector_cache import VectorCache
from iconsearch.vectorstore.config import store_config_from_settings
from iconsearch.vectorstore.factory import VectorStoreRegistry

logger = get_logger(__name__)

CACHE_NAMESPACE = "vector-cache"
PREFERENCES_NAMESPACE = "preferences"


class AppContext(BaseModel):
    """Everything a running service shares."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    execution: ExecutionContext
    catalog: CatalogLoader
    embeddings: EmbeddingService
    registry: VectorStoreRegistry
    vector_cache: VectorCache
    preferences: PreferenceStore
    search: IconSearchService

    async def close(self) -> None:
        """Close network clients and store instances."""
        await self.search.close()
        await self.catalog.close()
        await self.registry.clear_all_instances()


def create_catalog(settings: Settings) -> CatalogLoader:
    """Catalog loader for the configured source."""
    if settings.catalog.source == CatalogSource.FILE:
        return FileCatalogLoader(settings.catalog.file_path)
    return IconifyCatalogLoader(settings.catalog)


def build_context(
    settings: Settings | None = None,
    embeddings: EmbeddingService | None = None,
    catalog: CatalogLoader | None = None,
) -> AppContext:
    """Wire the application from settings.

    Args:
        settings: Application settings. Loaded from the environment if omitted.
        embeddings: Embedding service override (for testing).
        catalog: Catalog loader override (for testing).

    Raises:
        ConfigurationError: If the configured backend cannot run here.
    """
    settings = settings or get_settings()
    execution = ExecutionContext.from_settings(settings.execution)
    data_path = settings.vector_store.data_path

    catalog = catalog or create_catalog(settings)
    embeddings = embeddings or create_embedding_service(settings.embedding)
    registry = VectorStoreRegistry(execution, cloud_batch_size=settings.chroma.batch_size)
    vector_cache = VectorCache(SQLiteKeyValueStore(data_path, CACHE_NAMESPACE))
    preferences = PreferenceStore(SQLiteKeyValueStore(data_path, PREFERENCES_NAMESPACE))

    search = IconSearchService(
        catalog=catalog,
        embeddings=embeddings,
        registry=registry,
        vector_cache=vector_cache,
        vector_store_config=store_config_from_settings(settings),
        preferences=preferences,
        settings=settings.search,
        default_libraries=settings.catalog.default_libraries,
        cache_prefix=settings.vector_store.cache_prefix,
    )

    logger.info(
        "Application context built",
        extra={
            "vector_store": search.vector_store_config.type,
            "catalog_source": settings.catalog.source.value,
            "is_client": execution.is_client,
        },
    )

    return AppContext(
        settings=settings,
        execution=execution,
        catalog=catalog,
        embeddings=embeddings,
        registry=registry,
        vector_cache=vector_cache,
        preferences=preferences,
        search=search,
    )
