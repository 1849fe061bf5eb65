"""Persisted user preferences."""

import json

from iconsearch.logging_config import get_logger
from iconsearch.storage.kv import SQLiteKeyValueStore

logger = get_logger(__name__)

SELECTED_LIBRARIES_KEY = "selectedIconLibraries"


class PreferenceStore:
    """JSON values stored in the key-value layer."""

    def __init__(self, kv: SQLiteKeyValueStore) -> None:
        self._kv = kv

    async def get_selected_libraries(self) -> list[str] | None:
        """Stored library selection, or None if absent or unreadable."""
        raw = await self._kv.get(SELECTED_LIBRARIES_KEY)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.error("Stored library selection is not valid JSON, ignoring it")
            return None
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            logger.error("Stored library selection is not a list of strings, ignoring it")
            return None
        return value

    async def set_selected_libraries(self, libraries: list[str]) -> None:
        await self._kv.set(SELECTED_LIBRARIES_KEY, json.dumps(libraries).encode("utf-8"))
