"""Cloud-hosted vector stores.

``CloudVectorStore`` talks to a Chroma Cloud collection directly; the chromadb
client is synchronous, so every call runs in a worker thread.
``RelayedCloudVectorStore`` gives a client process the same contract by
relaying each operation to the server's HTTP routes.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import chromadb

from iconsearch.exceptions import ErrorCode, VectorStoreError
from iconsearch.logging_config import get_logger
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.config import CloudStoreConfig
from iconsearch.vectorstore.models import (
    Filters,
    VectorSearchHit,
    VectorStoreItem,
    expand_metadata,
    flatten_metadata,
    merge_metadata,
)
from iconsearch.vectorstore.relay import VectorStoreRelayClient

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 300


def build_where(filters: Filters | None) -> dict[str, Any] | None:
    """Translate metadata filters into a Chroma ``where`` clause."""
    if not filters:
        return None
    clauses: list[dict[str, Any]] = [
        {key: {"$in": value}} if isinstance(value, list) else {key: value}
        for key, value in filters.items()
    ]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _as_floats(embedding: Any) -> list[float]:
    # Chroma may hand back numpy arrays; avoid truthiness checks on them.
    if embedding is None:
        return []
    return [float(value) for value in embedding]


def _first(values: Any) -> Any:
    """First inner list of a query result field, or an empty list."""
    if values is None or len(values) == 0:
        return []
    return values[0]


class CloudVectorStore(VectorStore):
    """Chroma Cloud collection using cosine distance.

    Metadata lists are stored comma-joined and split back on read. Scores are
    ``1 - distance``.
    """

    backend = "cloud"

    def __init__(
        self,
        config: CloudStoreConfig,
        client: Any | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the store.

        Args:
            config: Credentials and collection name.
            client: Existing chromadb client (for testing).
            batch_size: Maximum items per upsert call.
        """
        self._config = config
        self._client = client
        self._collection: Any | None = None
        self._batch_size = batch_size
        self._lock = asyncio.Lock()

    @property
    def collection_name(self) -> str:
        return self._config.collection_name

    def _error(self, action: str, e: Exception) -> VectorStoreError:
        return VectorStoreError(
            f"Failed to {action}: {e}",
            code=ErrorCode.VECTOR_STORE_ERROR,
            details={"collection": self.collection_name, "error": str(e)},
        )

    def _connect(self) -> Any:
        if self._client is None:
            api_key = self._config.api_key.get_secret_value() if self._config.api_key else None
            self._client = chromadb.CloudClient(
                tenant=self._config.tenant,
                database=self._config.database,
                api_key=api_key,
            )
        return self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "hnsw:space": "cosine",
                "description": "Icon search vector collection",
                "created_at": datetime.now(UTC).isoformat(),
            },
        )

    async def initialize(self) -> None:
        async with self._lock:
            if self._collection is not None:
                return
            async with self._timed("initialize"):
                try:
                    self._collection = await asyncio.to_thread(self._connect)
                except Exception as e:
                    raise self._error("open Chroma collection", e) from e
        logger.info(f"Chroma collection ready: {self.collection_name}")

    async def _get_collection(self) -> Any:
        await self.initialize()
        return self._collection

    async def _upsert(self, items: list[VectorStoreItem]) -> None:
        collection = await self._get_collection()
        for start in range(0, len(items), self._batch_size):
            batch = items[start : start + self._batch_size]
            # Chroma rejects empty metadata dicts, so those items go without.
            with_meta = [item for item in batch if item.metadata]
            without_meta = [item for item in batch if not item.metadata]
            if with_meta:
                await asyncio.to_thread(
                    collection.upsert,
                    ids=[item.id for item in with_meta],
                    embeddings=[item.embedding for item in with_meta],
                    metadatas=[flatten_metadata(item.metadata) for item in with_meta],
                )
            if without_meta:
                await asyncio.to_thread(
                    collection.upsert,
                    ids=[item.id for item in without_meta],
                    embeddings=[item.embedding for item in without_meta],
                )

    async def batch_add_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        async with self._timed("add"):
            try:
                await self._upsert(items)
            except Exception as e:
                raise self._error("upsert records", e) from e
        logger.debug(
            f"Upserted {len(items)} records",
            extra={"collection": self.collection_name},
        )

    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        if not ids:
            return []
        collection = await self._get_collection()
        async with self._timed("get"):
            try:
                result = await asyncio.to_thread(
                    collection.get, ids=ids, include=["embeddings", "metadatas"]
                )
            except Exception as e:
                raise self._error("get records", e) from e

        embeddings = result.get("embeddings")
        metadatas = result.get("metadatas")
        found: dict[str, VectorStoreItem] = {}
        for index, item_id in enumerate(result.get("ids") or []):
            embedding = embeddings[index] if embeddings is not None else None
            metadata = metadatas[index] if metadatas is not None else None
            found[item_id] = VectorStoreItem(
                id=item_id,
                embedding=_as_floats(embedding),
                metadata=expand_metadata(dict(metadata or {})),
            )
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
                details={"ids": missing, "collection": self.collection_name},
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
        if not ids:
            return
        collection = await self._get_collection()
        async with self._timed("delete"):
            try:
                await asyncio.to_thread(collection.delete, ids=ids)
            except Exception as e:
                raise self._error("delete records", e) from e

    async def search_vectors(
        self,
        query_vector: list[float],
        limit: int = 10,
        filters: Filters | None = None,
    ) -> list[VectorSearchHit]:
        if limit <= 0:
            return []
        collection = await self._get_collection()
        async with self._timed("search"):
            try:
                result = await asyncio.to_thread(
                    collection.query,
                    query_embeddings=[query_vector],
                    n_results=limit,
                    where=build_where(filters),
                    include=["metadatas", "distances"],
                )
            except Exception as e:
                raise self._error("search", e) from e

        ids = _first(result.get("ids"))
        distances = _first(result.get("distances"))
        metadatas = _first(result.get("metadatas"))

        hits = []
        for index, item_id in enumerate(ids):
            distance = float(distances[index]) if index < len(distances) else 1.0
            metadata = metadatas[index] if index < len(metadatas) else None
            hits.append(
                VectorSearchHit(
                    id=item_id,
                    score=1.0 - distance,
                    metadata=expand_metadata(dict(metadata or {})),
                )
            )
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits

    async def get_vector_count(self) -> int:
        collection = await self._get_collection()
        try:
            return int(await asyncio.to_thread(collection.count))
        except Exception as e:
            raise self._error("count records", e) from e

    async def clear(self) -> None:
        """Drop and recreate the collection."""
        await self.initialize()
        async with self._lock, self._timed("clear"):
            try:
                await asyncio.to_thread(
                    self._client.delete_collection, name=self.collection_name
                )
                self._collection = await asyncio.to_thread(self._connect)
            except Exception as e:
                raise self._error("clear collection", e) from e
        logger.info(f"Cleared collection: {self.collection_name}")


class RelayedCloudVectorStore(VectorStore):
    """Cloud store reached through the server's relay routes."""

    backend = "cloud-relay"

    def __init__(
        self,
        relay: VectorStoreRelayClient,
        collection_name: str | None = None,
    ) -> None:
        self._relay = relay
        self._collection_name = collection_name

    @property
    def relay(self) -> VectorStoreRelayClient:
        return self._relay

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        await self._relay.close()

    async def batch_add_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        async with self._timed("add"):
            await self._relay.add_vectors(items)

    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        if not ids:
            return []
        async with self._timed("get"):
            items = await self._relay.get_vectors(ids)
        return [
            item.model_copy(update={"metadata": expand_metadata(item.metadata)})
            for item in items
        ]

    async def batch_update_vectors(self, items: list[VectorStoreItem]) -> None:
        async with self._timed("update"):
            for item in items:
                await self._relay.update_vector(item.id, item.embedding, item.metadata)

    async def batch_delete_vectors(self, ids: list[str]) -> None:
        async with self._timed("delete"):
            for item_id in ids:
                await self._relay.delete_vector(item_id)

    async def search_vectors(
        self,
        query_vector: list[float],
        limit: int = 10,
        filters: Filters | None = None,
    ) -> list[VectorSearchHit]:
        async with self._timed("search"):
            hits = await self._relay.search(
                query_embedding=query_vector,
                limit=limit,
                filters=filters,
                collection_name=self._collection_name,
            )
        return [
            hit.model_copy(update={"metadata": expand_metadata(hit.metadata)})
            for hit in hits
        ]

    async def has_vector(self, item_id: str) -> bool:
        return await self._relay.has_vector(item_id)

    async def get_vector_count(self) -> int:
        return await self._relay.count()

    async def clear(self) -> None:
        async with self._timed("clear"):
            await self._relay.clear()
