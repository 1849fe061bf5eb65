"""Durable cache of generated vectors.

The cache only spares regeneration; the active vector store stays the system
of record for search.
"""

from pydantic import TypeAdapter

from iconsearch.logging_config import get_logger
from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.vectorstore.models import VectorStoreItem

logger = get_logger(__name__)

_ITEMS = TypeAdapter(list[VectorStoreItem])


def vector_cache_key(prefix: str, model_id: str) -> str:
    """Cache key for a model, e.g. ``gimme_icons_Xenova_all-MiniLM-L6-v2``."""
    return f"{prefix}_{model_id.replace('/', '_')}"


class VectorCache:
    """Get/set of a whole vector item list per key."""

    def __init__(self, kv: SQLiteKeyValueStore) -> None:
        self._kv = kv

    async def get(self, key: str) -> list[VectorStoreItem] | None:
        """Return the cached items, or None when nothing is stored."""
        raw = await self._kv.get(key)
        if raw is None:
            return None
        items = _ITEMS.validate_json(raw)
        logger.debug(f"Vector cache hit: {len(items)} items", extra={"key": key})
        return items

    async def set(self, key: str, items: list[VectorStoreItem]) -> None:
        """Replace the cached items under ``key``."""
        await self._kv.set(key, _ITEMS.dump_json(items))
        logger.info(f"Cached {len(items)} vectors", extra={"key": key})

    async def delete(self, key: str) -> None:
        await self._kv.delete(key)
