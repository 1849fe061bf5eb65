"""API routes for icon search and vector store relay operations."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from iconsearch.api.dependencies import get_context, require_console_access
from iconsearch.api.errors import relay_error
from iconsearch.catalog.models import FilterOptions, Icon
from iconsearch.context import AppContext
from iconsearch.exceptions import IconSearchError, ValidationError
from iconsearch.logging_config import get_logger
from iconsearch.search.models import IconEmbedding, SearchOutcome, SearchResult
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.config import (
    CloudStoreConfig,
    VectorStoreType,
    parse_store_config,
    public_config,
)
from iconsearch.vectorstore.models import MetadataValue, VectorSearchHit, VectorStoreItem

logger = get_logger(__name__)


# Create routers
router = APIRouter(prefix="/api", tags=["Icons"])
vector_store_router = APIRouter(prefix="/api/vector-store", tags=["Vector Store"])


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SearchRequest(_RequestModel):
    """Request body for icon search."""

    query: str = Field(default="", description="Natural-language query")
    filters: FilterOptions = Field(default_factory=FilterOptions)
    limit: int | None = Field(default=None, ge=1, le=1000, description="Maximum results")


class SearchResponse(BaseModel):
    """Icon search results."""

    results: list[SearchResult] = Field(description="Results by descending score")
    outcome: SearchOutcome = Field(description="Search path taken")


class LibrarySelectionRequest(_RequestModel):
    """Request body for changing the loaded libraries."""

    libraries: list[str] = Field(min_length=1, description="Library identifiers")


class UpdateTagRequest(_RequestModel):
    """Request body for adding a tag to an icon."""

    id: str = Field(min_length=1, description="Icon id")
    new_tag: str = Field(alias="newTag", description="Tag to add")


class RefreshEmbeddingRequest(_RequestModel):
    """Request body for batch re-embedding.

    Accepts ``{items: [...]}`` or a single ``{icon, embedding}`` pair.
    """

    items: list[IconEmbedding] | None = None
    icon: Icon | None = None
    embedding: list[float] | None = None

    def entries(self) -> list[IconEmbedding]:
        if self.items:
            return list(self.items)
        if self.icon is not None and self.embedding:
            return [IconEmbedding(icon=self.icon, embedding=self.embedding)]
        return []


class RelaySearchRequest(_RequestModel):
    """Request body for the cross-process search endpoint."""

    query_embedding: list[float] | None = Field(default=None, alias="queryEmbedding")
    query: str | None = Field(default=None, description="Text embedded on the server")
    filters: dict[str, str | list[str]] = Field(default_factory=dict)
    limit: int = Field(default=20, ge=1, le=1000)
    collection_name: str | None = Field(default=None, alias="collectionName")


class RelaySearchResponse(BaseModel):
    success: bool = True
    results: list[VectorSearchHit] = Field(default_factory=list)


class AddVectorsRequest(_RequestModel):
    items: list[VectorStoreItem] = Field(min_length=1)


class GetVectorsRequest(_RequestModel):
    ids: list[str] = Field(min_length=1)


class UpdateVectorRequest(_RequestModel):
    id: str = Field(min_length=1)
    embedding: list[float] = Field(min_length=1)
    metadata: dict[str, MetadataValue] | None = None


class VectorIdRequest(_RequestModel):
    id: str = Field(min_length=1)


def _collection_store(context: AppContext, collection_name: str | None) -> VectorStore:
    """Active store, or a cloud store for another collection when one is named."""
    active = context.search.vector_store_config
    if (
        not collection_name
        or active.type != VectorStoreType.CLOUD
        or collection_name == getattr(active, "collection_name", None)
    ):
        return context.search.vector_store

    config = CloudStoreConfig(
        api_key=context.settings.chroma.api_key,
        tenant=context.settings.chroma.tenant,
        database=context.settings.chroma.database,
        collection_name=collection_name,
    )
    return context.registry.create_vector_store(config, f"collection-{collection_name}")


# Icon routes


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(
    request: SearchRequest,
    context: AppContext = Depends(get_context),
) -> SearchResponse:
    """Search icons; degrades to substring matching instead of failing."""
    report = await context.search.search(request.query, request.filters, request.limit)
    return SearchResponse(results=report.results, outcome=report.outcome)


@router.get("/filter-options", response_model=FilterOptions)
async def filter_options_endpoint(
    context: AppContext = Depends(get_context),
) -> FilterOptions:
    """Distinct libraries, categories and tags of the loaded catalog."""
    if not context.search.is_initialized:
        await context.search.initialize()
    return context.search.get_filter_options()


@router.post("/libraries")
async def select_libraries_endpoint(
    request: LibrarySelectionRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Store the library selection and reload the catalog with it."""
    await context.preferences.set_selected_libraries(request.libraries)
    await context.search.initialize(force_regenerate=True, libraries=request.libraries)
    return {"success": True, "libraries": request.libraries, "icons": len(context.search.icons)}


@router.post("/update-tag")
async def update_tag_endpoint(
    request: UpdateTagRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Append a tag to an icon and refresh its vector."""
    icon = await context.search.add_icon_tag(request.id, request.new_tag)
    return {"success": True, "icon": icon.model_dump()}


@router.post("/refresh-embedding", dependencies=[Depends(require_console_access)])
async def refresh_embedding_endpoint(
    request: RefreshEmbeddingRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Upsert precomputed icon embeddings into the active store."""
    entries = request.entries()
    if not entries:
        raise ValidationError("Provide items or an icon with its embedding")
    count = await context.search.upsert_icon_embeddings(entries)
    return {"success": True, "count": count}


# Vector store relay routes


@vector_store_router.post("/search", response_model=RelaySearchResponse)
async def relay_search_endpoint(
    request: RelaySearchRequest,
    context: AppContext = Depends(get_context),
) -> RelaySearchResponse | JSONResponse:
    """Similarity search for callers that cannot reach the store themselves."""
    try:
        if request.query_embedding:
            embedding = request.query_embedding
        elif request.query and request.query.strip():
            embedding = await context.embeddings.generate_embedding(request.query)
        else:
            raise ValidationError("Missing or invalid queryEmbedding parameter")

        store = _collection_store(context, request.collection_name)
        hits = await store.search_vectors(embedding, request.limit, request.filters or None)
    except IconSearchError as e:
        return relay_error(e)
    return RelaySearchResponse(results=hits)


@vector_store_router.post("/add-vectors", response_model=None)
async def add_vectors_endpoint(
    request: AddVectorsRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        await context.search.vector_store.batch_add_vectors(request.items)
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True, "count": len(request.items)}


@vector_store_router.post("/get-vectors", response_model=None)
async def get_vectors_endpoint(
    request: GetVectorsRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        items = await context.search.vector_store.get_vectors(request.ids)
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True, "vectors": [item.model_dump() for item in items]}


@vector_store_router.post("/update-vector", response_model=None)
async def update_vector_endpoint(
    request: UpdateVectorRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        await context.search.vector_store.update_vector(
            request.id, request.embedding, request.metadata
        )
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True}


@vector_store_router.post("/delete-vector", response_model=None)
async def delete_vector_endpoint(
    request: VectorIdRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        await context.search.vector_store.delete_vector(request.id)
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True}


@vector_store_router.post("/has-vector", response_model=None)
async def has_vector_endpoint(
    request: VectorIdRequest,
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        exists = await context.search.vector_store.has_vector(request.id)
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True, "hasVector": exists}


@vector_store_router.get("/count", response_model=None)
async def count_endpoint(
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        count = await context.search.vector_store.get_vector_count()
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True, "count": count}


@vector_store_router.post("/clear", response_model=None)
async def clear_endpoint(
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    try:
        await context.search.vector_store.clear()
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True}


@vector_store_router.get("/config")
async def get_config_endpoint(
    context: AppContext = Depends(get_context),
) -> dict[str, Any]:
    return {"success": True, "config": public_config(context.search.vector_store_config)}


@vector_store_router.post("/config", response_model=None)
async def set_config_endpoint(
    payload: dict[str, Any] = Body(...),
    context: AppContext = Depends(get_context),
) -> dict[str, Any] | JSONResponse:
    """Switch the server's active vector store."""
    try:
        config = parse_store_config(payload)
        await context.search.switch_vector_store(config)
    except IconSearchError as e:
        return relay_error(e)
    return {"success": True, "config": public_config(context.search.vector_store_config)}
