"""Pytest configuration and shared fixtures."""

import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from iconsearch.api.app import create_app
from iconsearch.catalog.loader import CatalogLoader, FileCatalogLoader
from iconsearch.catalog.models import Icon, make_icon_id
from iconsearch.config import (
    CatalogSettings,
    CatalogSource,
    SearchSettings,
    Settings,
    VectorStoreSettings,
)
from iconsearch.context import AppContext, build_context
from iconsearch.embeddings.service import EmbeddingService, fallback_embedding
from iconsearch.search.service import IconSearchService
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.storage.preferences import PreferenceStore
from iconsearch.storage.vector_cache import VectorCache
from iconsearch.vectorstore.config import MemoryStoreConfig, VectorStoreConfig
from iconsearch.vectorstore.factory import VectorStoreRegistry

VOCABULARY = (
    "home",
    "house",
    "door",
    "office",
    "arrow",
    "left",
    "right",
    "user",
    "add",
    "delete",
)


class KeywordEmbeddingService(EmbeddingService):
    """Bag-of-words embeddings over a fixed vocabulary.

    Texts sharing words get positive cosine similarity; a small bias keeps
    every vector non-zero.
    """

    def __init__(self, fallback: bool = False) -> None:
        self.fallback = fallback
        self.calls: list[str] = []
        self.initialize_calls = 0

    async def initialize(self) -> None:
        self.initialize_calls += 1

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fallback:
            return fallback_embedding(text)
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY] + [0.01]

    def is_using_fallback(self) -> bool:
        return self.fallback

    @property
    def model_name(self) -> str:
        return "test/keyword-model"

    @property
    def dimensions(self) -> int:
        return len(VOCABULARY) + 1


class StaticCatalog(CatalogLoader):
    """Read-only in-memory catalog."""

    def __init__(self, icons: list[Icon]) -> None:
        self._icons = icons

    async def load_icons(self, libraries: list[str]) -> list[Icon]:
        return [icon for icon in self._icons if not libraries or icon.library in libraries]


def make_icon(
    name: str,
    library: str = "lucide",
    category: str = "",
    tags: list[str] | None = None,
) -> Icon:
    return Icon(
        id=make_icon_id(library, name),
        name=name,
        library=library,
        category=category,
        tags=tags if tags is not None else name.split("-"),
    )


@pytest.fixture
def icons() -> list[Icon]:
    """Small catalog across two libraries."""
    return [
        make_icon("home", category="Buildings"),
        make_icon("house-door", category="Buildings"),
        make_icon("office", library="heroicons", category="Buildings"),
        make_icon("arrow-left", category="Arrows", tags=["arrow", "left"]),
        make_icon("arrow-right", library="heroicons", category="Arrows", tags=["arrow", "right"]),
    ]


@pytest.fixture
def catalog_path(tmp_path: Path, icons: list[Icon]) -> Path:
    """JSON catalog file holding ``icons``."""
    path = tmp_path / "icons.json"
    path.write_text(json.dumps([icon.model_dump() for icon in icons]), encoding="utf-8")
    return path


@pytest.fixture
def file_catalog(catalog_path: Path) -> FileCatalogLoader:
    return FileCatalogLoader(catalog_path)


@pytest.fixture
def embeddings() -> KeywordEmbeddingService:
    return KeywordEmbeddingService()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "iconsearch.db"


@pytest.fixture
def vector_cache(db_path: Path) -> VectorCache:
    return VectorCache(SQLiteKeyValueStore(db_path, "vector-cache"))


@pytest.fixture
def make_service(
    file_catalog: FileCatalogLoader,
    embeddings: KeywordEmbeddingService,
    vector_cache: VectorCache,
) -> Callable[..., IconSearchService]:
    """Factory for search services over the shared catalog and cache."""

    def _make(
        config: VectorStoreConfig | None = None,
        catalog: CatalogLoader | None = None,
        embedding_service: EmbeddingService | None = None,
        registry: VectorStoreRegistry | None = None,
        preferences: PreferenceStore | None = None,
    ) -> IconSearchService:
        return IconSearchService(
            catalog=catalog or file_catalog,
            embeddings=embedding_service or embeddings,
            registry=registry or VectorStoreRegistry(),
            vector_cache=vector_cache,
            vector_store_config=config or MemoryStoreConfig(),
            preferences=preferences,
            settings=SearchSettings(),
            default_libraries=["lucide", "heroicons"],
        )

    return _make


@pytest.fixture
def settings(tmp_path: Path, catalog_path: Path, db_path: Path) -> Settings:
    """Settings for a file catalog and an in-memory store."""
    return Settings(
        console_token=SecretStr("console-secret"),
        vector_store=VectorStoreSettings(type="memory", data_path=db_path),
        catalog=CatalogSettings(
            source=CatalogSource.FILE,
            file_path=catalog_path,
            default_libraries=["lucide", "heroicons"],
        ),
    )


@pytest.fixture
def context(settings: Settings, embeddings: KeywordEmbeddingService) -> AppContext:
    return build_context(settings, embeddings=embeddings)


@pytest.fixture
async def client(context: AppContext) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    app = create_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
