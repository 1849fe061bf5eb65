"""Icon search orchestration.

The service owns the in-memory icon catalog and the active vector store. It
makes sure catalog vectors exist (reusing the durable cache when it can),
answers queries through the vector store, and degrades to substring matching
whenever semantic search is unavailable or comes back empty.
"""

import time

from iconsearch.catalog.loader import CatalogLoader, WritableCatalog
from iconsearch.catalog.models import FilterOptions, Icon
from iconsearch.config import SearchSettings, get_settings
from iconsearch.embeddings.service import EmbeddingService
from iconsearch.exceptions import ConfigurationError, ValidationError
from iconsearch.execution import ExecutionContext
from iconsearch.logging_config import get_logger
from iconsearch.observability.metrics import set_catalog_size, track_search_request
from iconsearch.search.models import (
    IconEmbedding,
    SearchOutcome,
    SearchReport,
    SearchResult,
)
from iconsearch.search.substring import filter_icons, substring_search
from iconsearch.storage.preferences import PreferenceStore
from iconsearch.storage.vector_cache import VectorCache, vector_cache_key
from iconsearch.utils.hashing import generate_hash
from iconsearch.utils.text import describe_icon
from iconsearch.utils.timeout import with_timeout
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.config import (
    EmbeddedStoreConfig,
    VectorStoreConfig,
    VectorStoreType,
    store_config_payload,
)
from iconsearch.vectorstore.factory import DEFAULT_INSTANCE_KEY, VectorStoreRegistry
from iconsearch.vectorstore.models import (
    Filters,
    VectorSearchHit,
    VectorStoreItem,
    icon_from_metadata,
    icon_to_item,
)
from iconsearch.vectorstore.relay import VectorStoreRelayClient

logger = get_logger(__name__)

UPSERT_BATCH_SIZE = 300


def store_filters(filters: FilterOptions | None) -> Filters:
    """Library and category constraints delegated to the vector store.

    Tags are always filtered in process.
    """
    translated: Filters = {}
    if filters is None:
        return translated
    if filters.libraries:
        translated["library"] = list(filters.libraries)
    if filters.categories:
        translated["category"] = list(filters.categories)
    return translated


class IconSearchService:
    """Semantic icon search with substring fallback.

    Callers serialize ``initialize``, ``re_initialize`` and
    ``switch_vector_store``; concurrent calls race and the last one wins.

    Example:
        >>> service = IconSearchService(catalog, embeddings, registry, cache, config)
        >>> results = await service.search_icons("add user", FilterOptions(), 20)
    """

    def __init__(
        self,
        catalog: CatalogLoader,
        embeddings: EmbeddingService,
        registry: VectorStoreRegistry,
        vector_cache: VectorCache,
        vector_store_config: VectorStoreConfig,
        preferences: PreferenceStore | None = None,
        settings: SearchSettings | None = None,
        default_libraries: list[str] | None = None,
        cache_prefix: str = "gimme_icons",
        relay: VectorStoreRelayClient | None = None,
    ) -> None:
        """Initialize the search service.

        Args:
            catalog: Source of icon records.
            embeddings: Embedding service for catalog and query text.
            registry: Vector store registry.
            vector_cache: Durable cache of generated vectors.
            vector_store_config: Backend to search.
            preferences: Persisted library selection, optional.
            settings: Search limits and timeouts.
            default_libraries: Libraries loaded when nothing else is selected.
                Falls back to the catalog settings.
            cache_prefix: Prefix of the vector cache key.
            relay: Client for the server's relay routes, used to push cloud
                configuration from a client process.

        Raises:
            ConfigurationError: If the backend cannot run in this execution
                context.
        """
        self._catalog = catalog
        self._embeddings = embeddings
        self._registry = registry
        self._cache = vector_cache
        self._preferences = preferences
        self._settings = settings or get_settings().search
        self._default_libraries = list(
            default_libraries or get_settings().catalog.default_libraries
        )
        self._cache_prefix = cache_prefix
        self._relay = relay
        self._owns_relay = False

        self._initialized = False
        self._icons: list[Icon] = []
        self._positions: dict[str, int] = {}
        self._fingerprint = generate_hash("")

        self._config = self._resolve_config(vector_store_config)
        self._instance_key = DEFAULT_INSTANCE_KEY
        self._vector_store = registry.create_vector_store(self._config, self._instance_key)

    # Accessors

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def icons(self) -> list[Icon]:
        return list(self._icons)

    @property
    def catalog(self) -> CatalogLoader:
        return self._catalog

    @property
    def catalog_fingerprint(self) -> str:
        return self._fingerprint

    @property
    def vector_store(self) -> VectorStore:
        return self._vector_store

    @property
    def vector_store_config(self) -> VectorStoreConfig:
        return self._config

    @property
    def execution(self) -> ExecutionContext:
        return self._registry.execution

    @property
    def cache_key(self) -> str:
        return vector_cache_key(self._cache_prefix, self._embeddings.model_name)

    def _is_cloud(self) -> bool:
        return self._config.type == VectorStoreType.CLOUD

    def _resolve_config(self, config: VectorStoreConfig) -> VectorStoreConfig:
        # An unnamed embedded store is named after the embedding model.
        if isinstance(config, EmbeddedStoreConfig) and not config.store_name:
            return config.model_copy(update={"store_name": self.cache_key})
        return config

    def _set_catalog(self, icons: list[Icon]) -> None:
        self._icons = list(icons)
        self._positions = {icon.id: index for index, icon in enumerate(self._icons)}
        self._fingerprint = generate_hash("\n".join(icon.id for icon in self._icons))
        set_catalog_size(len(self._icons))

    def _replace_icon(self, icon: Icon) -> None:
        index = self._positions.get(icon.id)
        if index is not None:
            self._icons[index] = icon

    async def _resolve_libraries(self, libraries: list[str] | None) -> list[str]:
        if libraries:
            return list(libraries)
        if self._preferences is not None:
            try:
                stored = await self._preferences.get_selected_libraries()
            except Exception as e:
                logger.error(f"Failed to read library selection, using defaults: {e}")
                stored = None
            if stored:
                return stored
        return list(self._default_libraries)

    # Lifecycle

    async def initialize(
        self,
        force_regenerate: bool = False,
        libraries: list[str] | None = None,
    ) -> None:
        """Load the catalog and make sure its vectors are in the store.

        Vector work failures are logged and leave the service initialized in
        degraded mode, where searches use substring matching.

        Args:
            force_regenerate: Reload and re-embed even when initialized or
                when cached vectors exist.
            libraries: Libraries to load instead of the stored selection.

        Raises:
            CatalogError: If the catalog cannot be loaded.
        """
        if self._initialized and not force_regenerate:
            return

        selected = await self._resolve_libraries(libraries)
        icons = await self._catalog.load_icons(selected)
        self._set_catalog(icons)
        logger.info(
            f"Loaded {len(icons)} icons",
            extra={"libraries": selected, "fingerprint": self._fingerprint},
        )

        if self._is_cloud() and self.execution.is_client:
            self._initialized = True
            logger.info("Cloud vector store runs on the server; skipping local vector work")
            return

        try:
            await with_timeout(
                lambda: self._vector_store.initialize(),
                self._settings.store_timeout,
                f"Vector store initialization timed out after {self._settings.store_timeout}s",
            )
            await self._embeddings.initialize()

            if self._embeddings.is_using_fallback():
                logger.info("Embedding fallback mode active, skipping vector generation")
            else:
                await self._prepare_vectors(force_regenerate)
        except Exception as e:
            logger.error(
                f"Vector preparation failed, continuing with substring search: {e}",
                extra={"backend": self._vector_store.backend},
            )

        self._initialized = True

    async def _prepare_vectors(self, force_regenerate: bool) -> None:
        key = self.cache_key
        items: list[VectorStoreItem] | None = None

        if not force_regenerate:
            try:
                items = await self._cache.get(key)
            except Exception as e:
                logger.error(f"Failed to read vector cache: {e}", extra={"key": key})
            if items:
                logger.info(f"Reusing {len(items)} cached vectors", extra={"key": key})

        if not items:
            items = await with_timeout(
                lambda: self._generate_items(self._icons),
                self._settings.generation_timeout,
                f"Generating embeddings timed out after {self._settings.generation_timeout}s",
            )
            if self._embeddings.is_using_fallback():
                logger.warning(
                    "Embedding service fell back during generation, not caching vectors"
                )
            elif items:
                try:
                    await self._cache.set(key, items)
                except Exception as e:
                    logger.error(f"Failed to persist vector cache: {e}", extra={"key": key})

        if items:
            await with_timeout(
                lambda: self._vector_store.batch_add_vectors(items),
                self._settings.store_timeout,
                f"Adding vectors timed out after {self._settings.store_timeout}s",
            )
            logger.info(f"Added {len(items)} vectors to store")
        else:
            logger.info("No vectors to add to store")

    async def _generate_items(self, icons: list[Icon]) -> list[VectorStoreItem]:
        start = time.perf_counter()
        items = []
        for icon in icons:
            embedding = await self._embeddings.generate_embedding(
                describe_icon(icon.name, icon.category)
            )
            items.append(icon_to_item(icon, embedding))
        logger.info(
            f"Generated {len(items)} vectors",
            extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)},
        )
        return items

    def _build_store(self, config: VectorStoreConfig) -> tuple[str, VectorStore]:
        instance_key = str(time.time_ns())
        return instance_key, self._registry.create_vector_store(config, instance_key)

    async def _activate(
        self,
        config: VectorStoreConfig,
        instance_key: str,
        store: VectorStore,
    ) -> None:
        previous_config, previous_key = self._config, self._instance_key
        self._config, self._instance_key, self._vector_store = config, instance_key, store
        self._initialized = False

        # Holders of the old instance keep it; the registry forgets it.
        superseded = self._registry.remove_vector_store(previous_config, previous_key)
        if superseded is not None and superseded is not store:
            try:
                await superseded.close()
            except Exception as e:
                logger.warning(f"Failed to close superseded vector store: {e}")

    async def re_initialize(self) -> None:
        """Rebuild on a fresh store instance and regenerate every vector.

        The previous instance is evicted from the registry but stays usable
        for anyone still holding it. Failure to initialize leaves the service
        uninitialized so the next call retries.

        Raises:
            ConfigurationError: If the configured backend cannot be built.
                The active backend is left unchanged.
        """
        config = self._resolve_config(self._config)
        instance_key, store = self._build_store(config)
        await self._activate(config, instance_key, store)
        await self._initialize_active()

    async def _initialize_active(self) -> None:
        logger.info(
            "Re-initializing search service",
            extra={"type": self._config.type, "instance_key": self._instance_key},
        )
        try:
            await self.initialize(force_regenerate=True)
        except Exception as e:
            logger.error(f"Re-initialization failed: {e}")
            self._initialized = False

    async def switch_vector_store(self, config: VectorStoreConfig) -> None:
        """Make ``config`` the active backend and re-initialize.

        The new store is built before anything changes, so a config the
        registry rejects leaves the current backend active. From a client
        process a cloud config is then pushed to the server; a failed push is
        logged and does not stop the switch.

        Raises:
            ConfigurationError: If the backend cannot be built.
        """
        target = self._resolve_config(config)
        instance_key, store = self._build_store(target)

        if target.type == VectorStoreType.CLOUD and self.execution.is_client:
            try:
                await self._get_relay().push_config(store_config_payload(target))
            except Exception as e:
                logger.error(f"Failed to push vector store config to server: {e}")

        await self._activate(target, instance_key, store)
        await self._initialize_active()

    def _get_relay(self) -> VectorStoreRelayClient:
        if self._relay is None:
            self._relay = VectorStoreRelayClient(
                self.execution.api_base_url,
                timeout=self.execution.request_timeout,
            )
            self._owns_relay = True
        return self._relay

    async def close(self) -> None:
        if self._owns_relay and self._relay is not None:
            await self._relay.close()
            self._relay = None

    # Search

    async def search_icons(
        self,
        query: str,
        filters: FilterOptions | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Search the catalog. Never raises.

        Returns:
            Results sorted by descending score, at most ``limit`` of them.
        """
        report = await self.search(query, filters, limit)
        return report.results

    async def search(
        self,
        query: str,
        filters: FilterOptions | None = None,
        limit: int | None = None,
    ) -> SearchReport:
        """Search the catalog and report which path answered. Never raises."""
        start = time.perf_counter()
        limit = self._settings.default_limit if limit is None else limit

        if not self._initialized:
            try:
                await self.initialize()
            except Exception as e:
                logger.error(f"Lazy initialization failed: {e}")

        candidates = filter_icons(self._icons, filters)

        if not query.strip():
            report = SearchReport(
                results=[
                    SearchResult(icon=icon, score=0.0)
                    for icon in candidates[: max(limit, 0)]
                ],
                outcome=SearchOutcome.NO_QUERY,
            )
        elif self._embeddings.is_using_fallback():
            report = SearchReport(
                results=substring_search(candidates, query, limit),
                outcome=SearchOutcome.SUBSTRING,
            )
        else:
            report = await self._vector_or_substring(query, filters, candidates, limit)

        track_search_request(
            report.outcome.value,
            time.perf_counter() - start,
            len(report.results),
        )
        logger.debug(
            f"Search returned {len(report.results)} results",
            extra={"outcome": report.outcome.value},
        )
        return report

    async def _vector_or_substring(
        self,
        query: str,
        filters: FilterOptions | None,
        candidates: list[Icon],
        limit: int,
    ) -> SearchReport:
        outcome = SearchOutcome.REMOTE_VECTOR if self._is_cloud() else SearchOutcome.VECTOR
        try:
            results = await self._vector_search(query, filters, limit)
        except Exception as e:
            logger.warning(f"Vector search failed, using substring search: {e}")
            results = []

        if not results:
            return SearchReport(
                results=substring_search(candidates, query, limit),
                outcome=SearchOutcome.SUBSTRING_FALLBACK,
            )
        return SearchReport(results=results, outcome=outcome)

    async def _vector_search(
        self,
        query: str,
        filters: FilterOptions | None,
        limit: int,
    ) -> list[SearchResult]:
        if limit <= 0:
            return []
        query_embedding = await self._embeddings.generate_embedding(query)
        if self._embeddings.is_using_fallback():
            # Query and stored vectors are no longer comparable.
            return []

        hits = await self._vector_store.search_vectors(
            query_embedding, limit, store_filters(filters)
        )

        results = []
        for hit in hits:
            icon = self._icon_for_hit(hit)
            if icon is None:
                continue
            if filters is not None and not filters.matches(icon):
                continue
            results.append(SearchResult(icon=icon, score=hit.score))

        return self._rank(results)[:limit]

    def _icon_for_hit(self, hit: VectorSearchHit) -> Icon | None:
        index = self._positions.get(hit.id)
        known = self._icons[index] if index is not None else None

        # Remote stores hold the system of record for their metadata.
        if self._is_cloud() and hit.metadata:
            try:
                return icon_from_metadata(hit.id, hit.metadata)
            except ValueError as e:
                logger.warning(f"Unreadable metadata for {hit.id}: {e}")
        return known

    def _rank(self, results: list[SearchResult]) -> list[SearchResult]:
        unknown = len(self._positions)
        return sorted(
            results,
            key=lambda r: (-r.score, self._positions.get(r.icon.id, unknown)),
        )

    def get_filter_options(self) -> FilterOptions:
        """Distinct libraries, categories and tags of the current catalog."""
        libraries: dict[str, None] = {}
        categories: dict[str, None] = {}
        tags: dict[str, None] = {}
        for icon in self._icons:
            libraries[icon.library] = None
            if icon.category:
                categories[icon.category] = None
            for tag in icon.tags:
                tags[tag] = None
        return FilterOptions(
            libraries=list(libraries),
            categories=list(categories),
            tags=list(tags),
        )

    # Administration

    async def refresh_icon_vector(self, icon: Icon) -> VectorStoreItem:
        """Embed one icon and upsert it into the active store."""
        embedding = await self._embeddings.generate_embedding(
            describe_icon(icon.name, icon.category)
        )
        item = icon_to_item(icon, embedding)
        await self._vector_store.add_vector(item)
        return item

    async def add_icon_tag(self, icon_id: str, tag: str) -> Icon:
        """Append a tag to an icon, persist the catalog and refresh its vector.

        The vector refresh is best effort; the tag edit stands even if it
        fails.

        Raises:
            ConfigurationError: If the catalog is read-only.
            ValidationError: If the tag is empty or already present.
            CatalogError: If the icon does not exist.
        """
        if not isinstance(self._catalog, WritableCatalog):
            raise ConfigurationError(
                "Tag updates need a writable catalog source",
                details={"catalog": type(self._catalog).__name__},
            )

        normalized = tag.strip().lower()
        if not normalized:
            raise ValidationError("Tag must not be empty", details={"id": icon_id})

        updated = await self._catalog.add_tag(icon_id, normalized)
        self._replace_icon(updated)

        try:
            await self.refresh_icon_vector(updated)
        except Exception as e:
            logger.warning(
                f"Tag saved but vector refresh failed for {icon_id}: {e}",
                extra={"tag": normalized},
            )
        return updated

    async def upsert_icon_embeddings(
        self,
        items: list[IconEmbedding],
        batch_size: int = UPSERT_BATCH_SIZE,
    ) -> int:
        """Upsert precomputed icon embeddings into the active store.

        Returns:
            Number of items written.

        Raises:
            VectorStoreError: If a batch cannot be written.
        """
        vector_items = [icon_to_item(entry.icon, entry.embedding) for entry in items]
        for start in range(0, len(vector_items), batch_size):
            batch = vector_items[start : start + batch_size]
            await with_timeout(
                lambda batch=batch: self._vector_store.batch_add_vectors(batch),
                self._settings.store_timeout,
                f"Upserting embeddings timed out after {self._settings.store_timeout}s",
            )
            logger.info(
                f"Upserted embeddings batch of {len(batch)}",
                extra={"offset": start},
            )
        for entry in items:
            self._replace_icon(entry.icon)
        return len(vector_items)
