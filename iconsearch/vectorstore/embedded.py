"""Embedded persistent vector store.

All vectors of a store live in one serialized blob inside the local SQLite
key-value layer. Similarity is computed in process, so the store works with
no server at all.
"""

import json
from typing import Any

from pydantic import TypeAdapter

from iconsearch.exceptions import ErrorCode, VectorStoreError
from iconsearch.logging_config import get_logger
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.vectorstore.memory import InMemoryVectorStore
from iconsearch.vectorstore.models import VectorStoreItem

logger = get_logger(__name__)

KV_NAMESPACE = "vector-store"
DEFAULT_MIN_SIMILARITY = 0.4

_ITEMS = TypeAdapter(list[VectorStoreItem])


def decode_items(raw: bytes) -> list[VectorStoreItem]:
    """Decode a stored blob.

    Accepts the current list-of-items format and the older list of
    ``[id, item]`` pairs.
    """
    data: Any = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("vector blob is not a list")
    if data and isinstance(data[0], list):
        data = [pair[1] for pair in data if len(pair) == 2]
    return _ITEMS.validate_python(data)


class EmbeddedVectorStore(InMemoryVectorStore):
    """Cosine search over a persisted blob, with a minimum-similarity cutoff."""

    backend = "embedded"

    def __init__(
        self,
        store_name: str,
        kv: SQLiteKeyValueStore,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> None:
        """Initialize the store.

        Args:
            store_name: Key of the blob inside the key-value namespace.
            kv: Key-value layer; should address the ``vector-store`` namespace.
            min_similarity: Hits scoring below this are dropped.
        """
        super().__init__(min_similarity=min_similarity)
        self._store_name = store_name
        self._kv = kv

    @property
    def store_name(self) -> str:
        return self._store_name

    async def _load(self) -> dict[str, VectorStoreItem]:
        raw = await self._kv.get(self._store_name)
        if raw is None:
            return {}
        try:
            items = decode_items(raw)
        except ValueError as e:
            raise VectorStoreError(
                f"Stored vectors for {self._store_name} are unreadable: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"store": self._store_name},
            ) from e
        return {item.id: item for item in items}

    async def _persist(self, items: dict[str, VectorStoreItem]) -> None:
        await self._kv.set(self._store_name, _ITEMS.dump_json(list(items.values())))
