"""Vector store interface shared by every backend."""

import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from iconsearch.observability.metrics import track_vectorstore_operation
from iconsearch.vectorstore.models import (
    Filters,
    MetadataValue,
    VectorSearchHit,
    VectorStoreItem,
)


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Every backend offers the same contract: upsert on add, missing ids are
    absent rather than errors, updates merge metadata and replace the
    embedding, deletes are idempotent, and searches return hits ordered by
    descending similarity.
    """

    backend: str = "abstract"

    @asynccontextmanager
    async def _timed(self, operation: str) -> AsyncIterator[None]:
        """Record the duration of a backend call."""
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            track_vectorstore_operation(
                self.backend, operation, time.perf_counter() - start, success
            )

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend. Safe to call more than once.

        Raises:
            VectorStoreError: If the backend cannot be reached.
        """
        ...

    async def close(self) -> None:
        """Release clients owned by the store."""
        return None

    async def add_vector(self, item: VectorStoreItem) -> None:
        """Insert or replace one item."""
        await self.batch_add_vectors([item])

    @abstractmethod
    async def batch_add_vectors(self, items: list[VectorStoreItem]) -> None:
        """Insert or replace items by id.

        Args:
            items: Items to upsert.

        Raises:
            VectorStoreError: If the write fails.
        """
        ...

    async def get_vector(self, item_id: str) -> VectorStoreItem | None:
        """Return the item stored under ``item_id``, or None."""
        items = await self.get_vectors([item_id])
        return items[0] if items else None

    @abstractmethod
    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        """Return the stored items among ``ids``; unknown ids are skipped.

        Args:
            ids: Item identifiers.

        Returns:
            Items found, in request order.
        """
        ...

    async def update_vector(
        self,
        item_id: str,
        embedding: list[float],
        metadata: dict[str, MetadataValue] | None = None,
    ) -> None:
        """Replace the embedding of an existing item and merge its metadata.

        Raises:
            VectorStoreError: If the item does not exist.
        """
        await self.batch_update_vectors(
            [VectorStoreItem(id=item_id, embedding=embedding, metadata=metadata or {})]
        )

    @abstractmethod
    async def batch_update_vectors(self, items: list[VectorStoreItem]) -> None:
        """Update existing items.

        Each item's embedding replaces the stored one; its metadata is merged
        over the stored metadata.

        Raises:
            VectorStoreError: If any item does not exist or the write fails.
        """
        ...

    async def delete_vector(self, item_id: str) -> None:
        await self.batch_delete_vectors([item_id])

    @abstractmethod
    async def batch_delete_vectors(self, ids: list[str]) -> None:
        """Remove items by id. Unknown ids are ignored."""
        ...

    @abstractmethod
    async def search_vectors(
        self,
        query_vector: list[float],
        limit: int = 10,
        filters: Filters | None = None,
    ) -> list[VectorSearchHit]:
        """Search for similar vectors.

        Args:
            query_vector: Query embedding.
            limit: Maximum hits to return.
            filters: Metadata constraints; a string value must equal the
                stored value, a list value must contain it.

        Returns:
            Hits ordered by descending score.

        Raises:
            VectorStoreError: If the search fails.
        """
        ...

    async def has_vector(self, item_id: str) -> bool:
        return await self.get_vector(item_id) is not None

    @abstractmethod
    async def get_vector_count(self) -> int:
        """Number of stored items."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every item."""
        ...
