"""Icon catalog loaders."""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from iconsearch.catalog.models import Icon, make_icon_id, tags_from_name
from iconsearch.config import CatalogSettings, get_settings
from iconsearch.exceptions import CatalogError, ErrorCode, ValidationError
from iconsearch.logging_config import get_logger

logger = get_logger(__name__)

_ICON_LIST = TypeAdapter(list[Icon])


class CatalogLoader(ABC):
    """Source of icon records for a set of libraries."""

    @abstractmethod
    async def load_icons(self, libraries: list[str]) -> list[Icon]:
        """Load every icon of the given libraries.

        Args:
            libraries: Library identifiers.

        Returns:
            Icons in library order, then source order.

        Raises:
            CatalogError: If a library cannot be loaded.
        """
        ...

    async def close(self) -> None:
        """Release resources held by the loader."""
        return None


class WritableCatalog(CatalogLoader):
    """A catalog that can persist tag edits."""

    @abstractmethod
    async def add_tag(self, icon_id: str, tag: str) -> Icon:
        """Append ``tag`` to an icon and persist the catalog.

        Args:
            icon_id: Icon identifier.
            tag: Normalized tag.

        Returns:
            The updated icon record.

        Raises:
            CatalogError: If the icon does not exist.
            ValidationError: If the icon already has the tag.
        """
        ...


class IconifyCatalogLoader(CatalogLoader):
    """Loads icon collections from the Iconify API."""

    def __init__(
        self,
        settings: CatalogSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            settings: Catalog configuration.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().catalog
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.request_timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def load_icons(self, libraries: list[str]) -> list[Icon]:
        """Load all libraries concurrently."""
        collections = await asyncio.gather(
            *(self._load_library(library) for library in libraries)
        )
        icons = [icon for collection in collections for icon in collection]
        logger.info(
            f"Loaded {len(icons)} icons from {len(libraries)} libraries",
            extra={"libraries": libraries},
        )
        return icons

    async def _load_library(self, library: str) -> list[Icon]:
        client = await self._get_client()
        url = f"{self._settings.iconify_url}/collection"

        try:
            response = await client.get(url, params={"prefix": library})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"Icon library {library} returned {e.response.status_code}",
                details={"library": library, "status_code": e.response.status_code},
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise CatalogError(
                f"Failed to load icon library {library}: {e}",
                details={"library": library},
            ) from e

        return self._parse_collection(library, data)

    @staticmethod
    def _parse_collection(library: str, data: dict[str, Any]) -> list[Icon]:
        names: list[str] = list(data.get("uncategorized") or [])
        for members in (data.get("categories") or {}).values():
            names.extend(members)

        icons: list[Icon] = []
        seen: set[str] = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            icons.append(
                Icon(
                    id=make_icon_id(library, name),
                    name=name,
                    library=library,
                    category="",
                    tags=tags_from_name(name),
                    synonyms=[],
                )
            )
        return icons


class FileCatalogLoader(WritableCatalog):
    """JSON file catalog; the file holds a list of icon records."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> list[Icon]:
        if not self._path.exists():
            raise CatalogError(
                f"Catalog file not found: {self._path}",
                details={"path": str(self._path)},
            )
        try:
            return _ICON_LIST.validate_json(self._path.read_bytes())
        except PydanticValidationError as e:
            raise CatalogError(
                f"Invalid catalog file: {e.error_count()} errors",
                details={"path": str(self._path)},
            ) from e

    def _write(self, icons: list[Icon]) -> None:
        payload = [icon.model_dump() for icon in icons]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    async def load_icons(self, libraries: list[str]) -> list[Icon]:
        icons = await asyncio.to_thread(self._read)
        if libraries:
            wanted = set(libraries)
            icons = [icon for icon in icons if icon.library in wanted]
        return icons

    async def save_icons(self, icons: list[Icon]) -> None:
        """Replace the catalog file contents."""
        async with self._lock:
            await asyncio.to_thread(self._write, icons)

    async def add_tag(self, icon_id: str, tag: str) -> Icon:
        async with self._lock:
            icons = await asyncio.to_thread(self._read)

            for index, icon in enumerate(icons):
                if icon.id == icon_id:
                    break
            else:
                raise CatalogError(
                    f"Icon not found: {icon_id}",
                    code=ErrorCode.ICON_NOT_FOUND,
                    details={"id": icon_id},
                )

            if tag in icon.tags:
                raise ValidationError(
                    "Tag already exists",
                    code=ErrorCode.TAG_EXISTS,
                    details={"id": icon_id, "tag": tag},
                )

            updated = icon.with_tag(tag)
            icons[index] = updated
            await asyncio.to_thread(self._write, icons)

        logger.info(f"Added tag to {icon_id}", extra={"tag": tag})
        return updated
