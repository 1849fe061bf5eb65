"""Brute-force in-process vector store."""

import asyncio

import numpy as np

from iconsearch.exceptions import ErrorCode, VectorStoreError
from iconsearch.logging_config import get_logger
from iconsearch.vectorstore.base import VectorStore
from iconsearch.vectorstore.models import (
    Filters,
    VectorSearchHit,
    VectorStoreItem,
    matches_filters,
    merge_metadata,
)

logger = get_logger(__name__)


def cosine_similarities(query: list[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of ``query`` against each row of ``matrix``.

    Rows or queries with zero norm score 0.
    """
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    dots = matrix @ q
    return np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)


class InMemoryVectorStore(VectorStore):
    """Items held in a dict, searched by cosine similarity over all vectors.

    Hits scoring below ``min_similarity`` are dropped before ranking. All
    vectors must share one length, fixed by the first item written.
    """

    backend = "memory"

    def __init__(self, min_similarity: float = 0.0) -> None:
        self._min_similarity = min_similarity
        self._items: dict[str, VectorStoreItem] = {}
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def min_similarity(self) -> float:
        return self._min_similarity

    @property
    def dimensions(self) -> int | None:
        """Vector length of the stored items, None while empty."""
        for item in self._items.values():
            return len(item.embedding)
        return None

    async def _load(self) -> dict[str, VectorStoreItem]:
        return {}

    async def _persist(self, items: dict[str, VectorStoreItem]) -> None:
        """Write the next state. Callers swap it in only once this returns."""
        return None

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized:
                return
            async with self._timed("initialize"):
                self._items = await self._load()
            self._initialized = True
            logger.info(
                f"Vector store ready with {len(self._items)} items",
                extra={"backend": self.backend},
            )

    def _check_dimensions(self, items: list[VectorStoreItem]) -> None:
        expected = self.dimensions
        for item in items:
            if expected is None:
                expected = len(item.embedding)
            if len(item.embedding) != expected:
                raise VectorStoreError(
                    f"Vector for {item.id} has {len(item.embedding)} dimensions, "
                    f"store holds {expected}",
                    code=ErrorCode.DIMENSION_MISMATCH,
                    details={"id": item.id, "expected": expected},
                )

    async def batch_add_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        await self.initialize()
        async with self._lock, self._timed("add"):
            self._check_dimensions(items)
            updated = dict(self._items)
            for item in items:
                updated[item.id] = item
            await self._persist(updated)
            self._items = updated
        logger.debug(f"Upserted {len(items)} vectors", extra={"backend": self.backend})

    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        await self.initialize()
        return [self._items[i] for i in ids if i in self._items]

    async def batch_update_vectors(self, items: list[VectorStoreItem]) -> None:
        if not items:
            return
        await self.initialize()
        async with self._lock, self._timed("update"):
            missing = [i.id for i in items if i.id not in self._items]
            if missing:
                raise VectorStoreError(
                    f"Cannot update missing vectors: {', '.join(missing)}",
                    code=ErrorCode.VECTOR_NOT_FOUND,
                    details={"ids": missing},
                )
            self._check_dimensions(items)
            updated = dict(self._items)
            for item in items:
                existing = updated[item.id]
                updated[item.id] = VectorStoreItem(
                    id=item.id,
                    embedding=item.embedding,
                    metadata=merge_metadata(existing.metadata, item.metadata),
                )
            await self._persist(updated)
            self._items = updated

    async def batch_delete_vectors(self, ids: list[str]) -> None:
        await self.initialize()
        async with self._lock, self._timed("delete"):
            doomed = {i for i in ids if i in self._items}
            if not doomed:
                return
            remaining = {k: v for k, v in self._items.items() if k not in doomed}
            await self._persist(remaining)
            self._items = remaining

    async def search_vectors(
        self,
        query_vector: list[float],
        limit: int = 10,
        filters: Filters | None = None,
    ) -> list[VectorSearchHit]:
        await self.initialize()
        async with self._timed("search"):
            candidates = [
                item
                for item in self._items.values()
                if matches_filters(item.metadata, filters)
            ]
            if not candidates or limit <= 0:
                return []

            expected = len(candidates[0].embedding)
            if len(query_vector) != expected:
                raise VectorStoreError(
                    f"Query has {len(query_vector)} dimensions, store holds {expected}",
                    code=ErrorCode.DIMENSION_MISMATCH,
                    details={"expected": expected, "actual": len(query_vector)},
                )

            matrix = np.asarray([item.embedding for item in candidates], dtype=np.float64)
            scores = cosine_similarities(query_vector, matrix)

            # Stable sort keeps insertion order among equal scores.
            order = np.argsort(-scores, kind="stable")
            hits: list[VectorSearchHit] = []
            for index in order:
                score = float(scores[index])
                if score < self._min_similarity:
                    break
                item = candidates[index]
                hits.append(
                    VectorSearchHit(id=item.id, score=score, metadata=dict(item.metadata))
                )
                if len(hits) >= limit:
                    break
            return hits

    async def get_vector_count(self) -> int:
        await self.initialize()
        return len(self._items)

    async def clear(self) -> None:
        await self.initialize()
        async with self._lock, self._timed("clear"):
            await self._persist({})
            self._items = {}
        logger.info("Vector store cleared", extra={"backend": self.backend})
