"""Local persistence: key-value layer, vector cache and preferences."""

from iconsearch.storage.kv import SQLiteKeyValueStore
from iconsearch.storage.preferences import PreferenceStore
from iconsearch.storage.vector_cache import VectorCache, vector_cache_key

__all__ = [
    "PreferenceStore",
    "SQLiteKeyValueStore",
    "VectorCache",
    "vector_cache_key",
]
