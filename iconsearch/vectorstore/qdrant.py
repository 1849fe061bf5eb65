"""Local server-backed vector store on Qdrant."""

from typing import Any
from uuid import NAMESPACE_URL, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchAny,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from iconsearch.exceptions import ConfigurationError, ErrorCode, VectorStoreError
from iconsearch.execution import ExecutionContext
from iconsearch.logging_config import get_logger
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.config import LocalServerStoreConfig
from iconsearch.vectorstore.models import (
    Filters,
    VectorSearchHit,
    VectorStoreItem,
    merge_metadata,
)

logger = get_logger(__name__)

# Payload key holding the icon id; Qdrant point ids must be UUIDs or integers.
ITEM_ID_KEY = "_item_id"


def point_id(item_id: str) -> str:
    """Deterministic point id for an icon id."""
    return str(uuid5(NAMESPACE_URL, item_id))


def build_filter(filters: Filters | None) -> Filter | None:
    """Translate metadata filters into a Qdrant payload filter."""
    if not filters:
        return None
    conditions = []
    for key, value in filters.items():
        if isinstance(value, list):
            conditions.append(FieldCondition(key=key, match=MatchAny(any=value)))
        else:
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))
    return Filter(must=conditions)  # type: ignore[arg-type]


class LocalServerVectorStore(VectorStore):
    """Qdrant vector store implementation.

    The collection is created with cosine distance on the first write, sized
    to the vectors written, so Qdrant scores are already similarities.
    """

    backend = "local-server"

    def __init__(
        self,
        config: LocalServerStoreConfig,
        execution: ExecutionContext | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            config: Server URL, credentials and collection.
            execution: Execution context; client processes are rejected.
            client: Existing client (for testing).

        Raises:
            ConfigurationError: If constructed in a client execution context.
        """
        execution = execution or ExecutionContext()
        if not execution.can_run_server_stores:
            raise ConfigurationError(
                "The local-server vector store needs a local Qdrant process "
                "and cannot run in a client execution context",
                code=ErrorCode.UNSUPPORTED_BACKEND,
                details={"type": config.type},
            )
        self._config = config
        self._collection = config.collection_name
        self._client = client
        self._owns_client = client is None
        self._initialized = False
        self._collection_ready = False

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._config.api_key:
                api_key = self._config.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._config.url,
                api_key=api_key,
            )
        return self._client

    def _error(self, action: str, e: Exception) -> VectorStoreError:
        return VectorStoreError(
            f"Failed to {action}: {e}",
            code=ErrorCode.VECTOR_STORE_ERROR,
            details={"collection": self._collection, "error": str(e)},
        )

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def initialize(self) -> None:
        if self._initialized:
            return
        client = await self._get_client()
        async with self._timed("initialize"):
            try:
                self._collection_ready = await client.collection_exists(self._collection)
            except Exception as e:
                raise self._error("reach Qdrant", e) from e
        self._initialized = True
        logger.info(
            f"Connected to Qdrant collection: {self._collection}",
            extra={"exists": self._collection_ready},
        )

    async def _ensure_collection(self, dimensions: int) -> None:
        if self._collection_ready:
            return
        client = await self._get_client()
        await client.create_collection(
            collection_name=self._collection,
            vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
        )
        self._collection_ready = True
        logger.info(
            f"Created collection: {self._collection}",
            extra={"dimensions": dimensions},
        )

    async def _upsert(self, items: list[VectorStoreItem]) -> None:
        client = await self._get_client()
        await self._ensure_collection(len(items[0].embedding))
        points = [
            PointStruct(
                id=point_id(item.id),
                vector=item.embedding,
                payload={**item.metadata, ITEM_ID_KEY: item.id},
            )
            for item in items
        ]
        await client.upsert(collection_name=self._collection, points=points, wait=True)

    async def batch_add_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        await self.initialize()
        async with self._timed("add"):
            try:
                await self._upsert(items)
            except Exception as e:
                raise self._error("upsert records", e) from e
        logger.debug(
            f"Upserted {len(items)} records",
            extra={"collection": self._collection},
        )

    def _to_item(self, record: Any) -> VectorStoreItem:
        payload = dict(record.payload or {})
        item_id = str(payload.pop(ITEM_ID_KEY, record.id))
        vector = record.vector if isinstance(record.vector, list) else []
        return VectorStoreItem(id=item_id, embedding=vector, metadata=payload)

    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        await self.initialize()
        if not ids or not self._collection_ready:
            return []
        client = await self._get_client()
        async with self._timed("get"):
            try:
                records = await client.retrieve(
                    collection_name=self._collection,
                    ids=[point_id(i) for i in ids],
                    with_payload=True,
                    with_vectors=True,
                )
            except Exception as e:
                raise self._error("retrieve records", e) from e
        found = {item.id: item for item in (self._to_item(r) for r in records)}
        return [found[i] for i in ids if i in found]

    async def batch_update_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        existing = {item.id: item for item in await self.get_vectors([i.id for i in items])}
        missing = [i.id for i in items if i.id not in existing]
        if missing:
            raise VectorStoreError(
                f"Cannot update missing vectors: {', '.join(missing)}",
                code=ErrorCode.VECTOR_NOT_FOUND,
                details={"ids": missing, "collection": self._collection},
            )
        merged = [
            VectorStoreItem(
                id=item.id,
                embedding=item.embedding,
                metadata=merge_metadata(existing[item.id].metadata, item.metadata),
            )
            for item in items
        ]
        async with self._timed("update"):
            try:
                await self._upsert(merged)
            except Exception as e:
                raise self._error("update records", e) from e

    async def batch_delete_vectors(self, ids: list[str]) -> None:
        await self.initialize()
        if not ids or not self._collection_ready:
            return
        client = await self._get_client()
        async with self._timed("delete"):
            try:
                await client.delete(
                    collection_name=self._collection,
                    points_selector=PointIdsList(points=[point_id(i) for i in ids]),  # type: ignore[arg-type]
                )
            except Exception as e:
                raise self._error("delete records", e) from e
        logger.debug(
            f"Deleted {len(ids)} records",
            extra={"collection": self._collection},
        )

    async def search_vectors(
        self,
        query_vector: list[float],
        limit: int = 10,
        filters: Filters | None = None,
    ) -> list[VectorSearchHit]:
        await self.initialize()
        if not self._collection_ready:
            return []
        client = await self._get_client()
        async with self._timed("search"):
            try:
                results = await client.query_points(
                    collection_name=self._collection,
                    query=query_vector,
                    limit=limit,
                    query_filter=build_filter(filters),
                    with_payload=True,
                )
            except Exception as e:
                raise self._error("search", e) from e

        hits = []
        for point in results.points:
            payload = dict(point.payload) if point.payload else {}
            item_id = str(payload.pop(ITEM_ID_KEY, point.id))
            hits.append(
                VectorSearchHit(
                    id=item_id,
                    score=point.score if point.score is not None else 0.0,
                    metadata=payload,
                )
            )
        return hits

    async def get_vector_count(self) -> int:
        await self.initialize()
        if not self._collection_ready:
            return 0
        client = await self._get_client()
        try:
            result = await client.count(collection_name=self._collection, exact=True)
        except Exception as e:
            raise self._error("count records", e) from e
        return result.count

    async def clear(self) -> None:
        await self.initialize()
        if not self._collection_ready:
            return
        client = await self._get_client()
        async with self._timed("clear"):
            try:
                await client.delete_collection(self._collection)
            except Exception as e:
                raise self._error("delete collection", e) from e
        self._collection_ready = False
        logger.info(f"Deleted collection: {self._collection}")
