"""Tests for the icon search service."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from conftest import KeywordEmbeddingService, StaticCatalog, make_icon
from iconsearch.catalog.loader import FileCatalogLoader
from iconsearch.catalog.models import FilterOptions, Icon
from iconsearch.config import SearchSettings, get_settings
from iconsearch.exceptions import (
    CatalogError,
    ConfigurationError,
    ErrorCode,
    ValidationError,
    VectorStoreError,
)
from iconsearch.search.models import IconEmbedding, SearchOutcome
from iconsearch.search.service import IconSearchService, store_filters
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.storage.preferences import PreferenceStore
from iconsearch.storage.vector_cache import VectorCache
from iconsearch.vectorstore.config import (
    CloudStoreConfig,
    EmbeddedStoreConfig,
    MemoryStoreConfig,
)
from iconsearch.vectorstore.embedded import EmbeddedVectorStore
from iconsearch.vectorstore.factory import VectorStoreRegistry
from iconsearch.vectorstore.memory import InMemoryVectorStore

ServiceFactory = Callable[..., IconSearchService]


def ids(results) -> list[str]:
    return [r.icon.id for r in results]


class TestStoreFilters:
    """Tests for translating filter options into store filters."""

    def test_empty_filters(self) -> None:
        """No constraints yield an empty mapping."""
        assert store_filters(None) == {}
        assert store_filters(FilterOptions()) == {}

    def test_tags_stay_in_process(self) -> None:
        """Library and category are delegated, tags are not."""
        filters = FilterOptions(libraries=["lucide"], categories=["Arrows"], tags=["left"])
        assert store_filters(filters) == {"library": ["lucide"], "category": ["Arrows"]}


class TestInitialize:
    """Tests for catalog loading and vector preparation."""

    async def test_initialize_loads_catalog_and_vectors(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """Every catalog icon gets a vector in the store."""
        service = make_service()
        await service.initialize()

        assert service.is_initialized
        assert len(service.icons) == len(icons)
        assert await service.vector_store.get_vector_count() == len(icons)

    async def test_initialize_is_idempotent(
        self, make_service: ServiceFactory, embeddings: KeywordEmbeddingService
    ) -> None:
        """A second call does no work."""
        service = make_service()
        await service.initialize()
        calls = len(embeddings.calls)

        await service.initialize()

        assert len(embeddings.calls) == calls

    async def test_cache_reuse_skips_generation(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """A second service with the same cache key embeds nothing."""
        first_embeddings = KeywordEmbeddingService()
        await make_service(embedding_service=first_embeddings).initialize()
        assert len(first_embeddings.calls) == len(icons)

        second_embeddings = KeywordEmbeddingService()
        second = make_service(embedding_service=second_embeddings)
        await second.initialize()

        assert second_embeddings.calls == []
        assert await second.vector_store.get_vector_count() == len(icons)

    async def test_force_regenerate_ignores_cache(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """Forced initialization embeds the catalog again."""
        await make_service(embedding_service=KeywordEmbeddingService()).initialize()

        embeddings = KeywordEmbeddingService()
        service = make_service(embedding_service=embeddings)
        await service.initialize(force_regenerate=True)

        assert len(embeddings.calls) == len(icons)

    async def test_fallback_mode_skips_vectors(self, make_service: ServiceFactory) -> None:
        """No vectors are generated while the provider is in fallback mode."""
        embeddings = KeywordEmbeddingService(fallback=True)
        service = make_service(embedding_service=embeddings)
        await service.initialize()

        assert service.is_initialized
        assert embeddings.calls == []
        assert await service.vector_store.get_vector_count() == 0

    async def test_store_failure_degrades(self, make_service: ServiceFactory) -> None:
        """A failing store leaves the service initialized for substring search."""
        service = make_service()
        service.vector_store.initialize = AsyncMock(side_effect=VectorStoreError("down"))

        await service.initialize()

        assert service.is_initialized
        assert len(service.icons) == 5

    async def test_catalog_failure_propagates(
        self, make_service: ServiceFactory, tmp_path: Path
    ) -> None:
        """A missing catalog file is reported to the caller."""
        service = make_service(catalog=FileCatalogLoader(tmp_path / "missing.json"))

        with pytest.raises(CatalogError):
            await service.initialize()

        assert not service.is_initialized

    async def test_library_override(self, make_service: ServiceFactory) -> None:
        """Explicit libraries replace the defaults."""
        service = make_service()
        await service.initialize(libraries=["heroicons"])

        assert {icon.library for icon in service.icons} == {"heroicons"}

    async def test_stored_library_selection(
        self, make_service: ServiceFactory, db_path: Path
    ) -> None:
        """The stored selection is used when no override is given."""
        preferences = PreferenceStore(SQLiteKeyValueStore(db_path, "preferences"))
        await preferences.set_selected_libraries(["heroicons"])

        service = make_service(preferences=preferences)
        await service.initialize()

        assert [icon.name for icon in service.icons] == ["office", "arrow-right"]

    async def test_default_libraries_come_from_settings(
        self,
        file_catalog: FileCatalogLoader,
        embeddings: KeywordEmbeddingService,
        vector_cache: VectorCache,
        icons: list[Icon],
    ) -> None:
        """Without an explicit default the catalog settings decide."""
        service = IconSearchService(
            catalog=file_catalog,
            embeddings=embeddings,
            registry=VectorStoreRegistry(),
            vector_cache=vector_cache,
            vector_store_config=MemoryStoreConfig(),
            settings=SearchSettings(),
        )
        await service.initialize()

        expected = set(get_settings().catalog.default_libraries)
        assert {icon.library for icon in service.icons} == {
            icon.library for icon in icons if icon.library in expected
        }

    async def test_fingerprint_tracks_catalog(self, make_service: ServiceFactory) -> None:
        """Different catalogs have different fingerprints."""
        service = make_service()
        await service.initialize(libraries=["lucide"])
        lucide = service.catalog_fingerprint

        await service.initialize(force_regenerate=True, libraries=["heroicons"])

        assert service.catalog_fingerprint != lucide

    async def test_unnamed_embedded_store_uses_cache_key(
        self, make_service: ServiceFactory, db_path: Path
    ) -> None:
        """An embedded store without a name is named after the model."""
        service = make_service(config=EmbeddedStoreConfig(path=db_path))

        assert isinstance(service.vector_store, EmbeddedVectorStore)
        assert service.vector_store.store_name == "gimme_icons_test_keyword-model"


class TestSearch:
    """Tests for search and its degradation paths."""

    async def test_empty_catalog_returns_nothing(
        self, make_service: ServiceFactory
    ) -> None:
        """Searching an empty catalog yields no results."""
        service = make_service(catalog=StaticCatalog([]))
        await service.initialize()

        results = await service.search_icons("x", FilterOptions(), 10)

        assert results == []

    async def test_vector_search_ranks_by_similarity(
        self, make_service: ServiceFactory
    ) -> None:
        """The closest icon comes first."""
        service = make_service()
        await service.initialize()

        report = await service.search("house", FilterOptions(), 3)

        assert report.outcome == SearchOutcome.VECTOR
        assert report.results[0].icon.name == "house-door"

    async def test_results_sorted_by_score(self, make_service: ServiceFactory) -> None:
        """Scores never increase down the result list."""
        service = make_service()
        await service.initialize()

        results = await service.search_icons("arrow left", FilterOptions(), 10)

        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(results) <= 10

    async def test_substring_in_fallback_mode(self, make_service: ServiceFactory) -> None:
        """Fallback mode matches substrings of names and tags."""
        service = make_service(embedding_service=KeywordEmbeddingService(fallback=True))
        await service.initialize()

        report = await service.search("hous", FilterOptions(), 10)

        assert report.outcome == SearchOutcome.SUBSTRING
        assert [r.icon.name for r in report.results] == ["house-door"]
        assert report.results[0].score == 0.0

    async def test_tag_filter(self, make_service: ServiceFactory) -> None:
        """Only icons carrying a requested tag are returned."""
        service = make_service()
        await service.initialize()

        results = await service.search_icons("arrow", FilterOptions(tags=["left"]), 10)

        assert ids(results) == ["lucide__arrow-left"]

    async def test_library_filter(self, make_service: ServiceFactory) -> None:
        """Every result belongs to a requested library."""
        service = make_service()
        await service.initialize()

        results = await service.search_icons(
            "building", FilterOptions(libraries=["heroicons"]), 10
        )

        assert results
        assert all(r.icon.library == "heroicons" for r in results)

    async def test_empty_query_lists_filtered_catalog(
        self, make_service: ServiceFactory
    ) -> None:
        """A blank query returns filtered icons in catalog order."""
        service = make_service()
        await service.initialize()

        report = await service.search("  ", FilterOptions(categories=["Arrows"]), 10)

        assert report.outcome == SearchOutcome.NO_QUERY
        assert [r.icon.name for r in report.results] == ["arrow-left", "arrow-right"]

    async def test_store_error_falls_back_to_substring(
        self, make_service: ServiceFactory
    ) -> None:
        """A failing vector search never reaches the caller."""
        service = make_service()
        await service.initialize()
        service.vector_store.search_vectors = AsyncMock(side_effect=VectorStoreError("boom"))

        report = await service.search("door", FilterOptions(), 10)

        assert report.outcome == SearchOutcome.SUBSTRING_FALLBACK
        assert [r.icon.name for r in report.results] == ["house-door"]

    async def test_no_vector_hits_fall_back_to_substring(
        self, make_service: ServiceFactory
    ) -> None:
        """An empty vector result is answered by substring search."""
        service = make_service()
        await service.initialize()
        service.vector_store.search_vectors = AsyncMock(return_value=[])

        report = await service.search("office", FilterOptions(), 10)

        assert report.outcome == SearchOutcome.SUBSTRING_FALLBACK
        assert [r.icon.name for r in report.results] == ["office"]

    async def test_search_survives_catalog_failure(
        self, make_service: ServiceFactory, tmp_path: Path
    ) -> None:
        """Lazy initialization failures still produce an answer."""
        service = make_service(catalog=FileCatalogLoader(tmp_path / "missing.json"))

        results = await service.search_icons("home", FilterOptions(), 10)

        assert results == []

    async def test_search_initializes_lazily(self, make_service: ServiceFactory) -> None:
        """The first search loads the catalog."""
        service = make_service()

        results = await service.search_icons("office", None, 5)

        assert service.is_initialized
        assert results[0].icon.name == "office"

    async def test_filter_options(self, make_service: ServiceFactory) -> None:
        """Distinct values keep first-seen order."""
        service = make_service()
        await service.initialize()

        options = service.get_filter_options()

        assert options.libraries == ["lucide", "heroicons"]
        assert options.categories == ["Buildings", "Arrows"]
        assert "arrow" in options.tags
        assert options.tags.count("arrow") == 1


class TestBackendSwitching:
    """Tests for re-initialization and backend switching."""

    async def test_re_initialize_uses_fresh_instance(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """The old store stays untouched and the new one is populated."""
        service = make_service()
        await service.initialize()
        old_store = service.vector_store

        await service.re_initialize()

        assert service.vector_store is not old_store
        assert service.is_initialized
        assert await service.vector_store.get_vector_count() == len(icons)
        assert await old_store.get_vector_count() == len(icons)

    async def test_switch_vector_store(
        self, make_service: ServiceFactory, db_path: Path, icons: list[Icon]
    ) -> None:
        """Switching makes the new backend active and fills it."""
        service = make_service(config=EmbeddedStoreConfig(path=db_path))
        await service.initialize()

        await service.switch_vector_store(MemoryStoreConfig())

        assert service.vector_store_config.type == "memory"
        assert isinstance(service.vector_store, InMemoryVectorStore)
        assert not isinstance(service.vector_store, EmbeddedVectorStore)
        assert await service.vector_store.get_vector_count() == len(icons)

    async def test_rejected_switch_keeps_active_backend(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """A backend the registry cannot build leaves config and store as they were."""
        service = make_service()
        await service.initialize()
        store = service.vector_store

        with pytest.raises(ConfigurationError):
            await service.switch_vector_store(CloudStoreConfig())

        assert service.vector_store_config.type == "memory"
        assert service.vector_store is store
        assert service.is_initialized
        report = await service.search("house")
        assert report.outcome == SearchOutcome.VECTOR
        assert await store.get_vector_count() == len(icons)

    async def test_re_initialize_evicts_superseded_instance(
        self, make_service: ServiceFactory
    ) -> None:
        """The registry only keeps the active instance."""
        registry = VectorStoreRegistry()
        service = make_service(registry=registry)
        await service.initialize()

        await service.re_initialize()
        await service.re_initialize()

        assert list(registry.get_all_instances().values()) == [service.vector_store]

    async def test_superseded_store_is_closed(self, make_service: ServiceFactory) -> None:
        """Clients of the replaced store are released after a switch."""
        service = make_service()
        await service.initialize()
        old_store = service.vector_store
        old_store.close = AsyncMock()

        await service.switch_vector_store(MemoryStoreConfig(minSimilarity=0.1))

        old_store.close.assert_awaited_once()
        assert service.vector_store is not old_store

    async def test_re_initialize_failure_leaves_uninitialized(
        self, make_service: ServiceFactory, tmp_path: Path
    ) -> None:
        """A failed rebuild is retried by the next call."""
        service = make_service(catalog=FileCatalogLoader(tmp_path / "missing.json"))

        await service.re_initialize()

        assert not service.is_initialized


class TestAdministration:
    """Tests for tag edits and precomputed embeddings."""

    async def test_add_icon_tag(
        self, make_service: ServiceFactory, file_catalog: FileCatalogLoader
    ) -> None:
        """Tags are normalized, persisted and reflected in the store."""
        service = make_service()
        await service.initialize()

        updated = await service.add_icon_tag("lucide__home", "  Dwelling ")

        assert updated.tags == ["home", "dwelling"]
        reloaded = await file_catalog.load_icons([])
        assert reloaded[0].tags == ["home", "dwelling"]
        assert service.icons[0].tags == ["home", "dwelling"]
        item = await service.vector_store.get_vector("lucide__home")
        assert item is not None
        assert item.metadata["tags"] == ["home", "dwelling"]

    async def test_add_duplicate_tag(self, make_service: ServiceFactory) -> None:
        """An existing tag is rejected."""
        service = make_service()
        await service.initialize()

        with pytest.raises(ValidationError) as exc_info:
            await service.add_icon_tag("lucide__home", "HOME")

        assert exc_info.value.code == ErrorCode.TAG_EXISTS

    async def test_add_empty_tag(self, make_service: ServiceFactory) -> None:
        """Blank tags are rejected."""
        service = make_service()

        with pytest.raises(ValidationError):
            await service.add_icon_tag("lucide__home", "   ")

    async def test_add_tag_needs_writable_catalog(
        self, make_service: ServiceFactory, icons: list[Icon]
    ) -> None:
        """Read-only catalogs cannot take tag edits."""
        service = make_service(catalog=StaticCatalog(icons))

        with pytest.raises(ConfigurationError):
            await service.add_icon_tag("lucide__home", "dwelling")

    async def test_upsert_icon_embeddings_in_batches(
        self, make_service: ServiceFactory
    ) -> None:
        """Precomputed embeddings land in the store batch by batch."""
        service = make_service(catalog=StaticCatalog([]))
        store = service.vector_store
        entries = [
            IconEmbedding(icon=make_icon(name), embedding=[1.0, 0.0, float(i)])
            for i, name in enumerate(["a", "b", "c"])
        ]
        store.batch_add_vectors = AsyncMock(wraps=store.batch_add_vectors)

        count = await service.upsert_icon_embeddings(entries, batch_size=2)

        assert count == 3
        assert store.batch_add_vectors.await_count == 2
        assert await store.get_vector_count() == 3
