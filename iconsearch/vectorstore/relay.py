"""HTTP client for the server's vector store relay routes."""

from typing import Any

import httpx

from iconsearch.exceptions import ErrorCode, VectorStoreError
from iconsearch.logging_config import get_logger
from iconsearch.vectorstore.models import Filters, VectorSearchHit, VectorStoreItem

logger = get_logger(__name__)

RELAY_PREFIX = "/api/vector-store"


class VectorStoreRelayClient:
    """Calls ``/api/vector-store/*`` on a search server.

    Every response carries ``success``; a false flag, a non-2xx status, a
    transport failure or a malformed body raises ``VectorStoreError`` with
    the ``RELAY_ERROR`` code.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the relay client.

        Args:
            base_url: Server base URL.
            timeout: Request timeout in seconds.
            client: Existing HTTP client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        operation: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._get_client()
        path = f"{RELAY_PREFIX}/{operation}"

        try:
            response = await client.request(method, path, json=payload)
            body = response.json()
        except httpx.HTTPError as e:
            raise VectorStoreError(
                f"Relay request failed: {e}",
                code=ErrorCode.RELAY_ERROR,
                details={"operation": operation, "error": str(e)},
            ) from e
        except ValueError as e:
            raise VectorStoreError(
                f"Relay returned invalid JSON for {operation}",
                code=ErrorCode.RELAY_ERROR,
                details={"operation": operation, "status_code": response.status_code},
            ) from e

        if not isinstance(body, dict) or not body.get("success"):
            error = body.get("error") if isinstance(body, dict) else None
            raise VectorStoreError(
                f"Relay {operation} failed: {error or 'unsuccessful response'}",
                code=ErrorCode.RELAY_ERROR,
                details={"operation": operation, "status_code": response.status_code},
            )
        return body

    async def search(
        self,
        query_embedding: list[float] | None = None,
        query: str | None = None,
        limit: int = 10,
        filters: Filters | None = None,
        collection_name: str | None = None,
    ) -> list[VectorSearchHit]:
        """Run a similarity search on the server.

        Either the embedding or the raw query text must be given; with only
        text the server embeds it.
        """
        payload: dict[str, Any] = {"limit": limit, "filters": filters or {}}
        if query_embedding is not None:
            payload["queryEmbedding"] = query_embedding
        if query is not None:
            payload["query"] = query
        if collection_name:
            payload["collectionName"] = collection_name

        body = await self._request("POST", "search", payload)
        results = body.get("results")
        if not isinstance(results, list):
            raise VectorStoreError(
                "Relay search returned no result list",
                code=ErrorCode.RELAY_ERROR,
                details={"operation": "search"},
            )
        try:
            return [VectorSearchHit.model_validate(hit) for hit in results]
        except ValueError as e:
            raise VectorStoreError(
                f"Relay search returned malformed hits: {e}",
                code=ErrorCode.RELAY_ERROR,
                details={"operation": "search"},
            ) from e

    async def add_vectors(self, items: list[VectorStoreItem]) -> None:
        await self._request(
            "POST", "add-vectors", {"items": [item.model_dump() for item in items]}
        )

    async def get_vectors(self, ids: list[str]) -> list[VectorStoreItem]:
        body = await self._request("POST", "get-vectors", {"ids": ids})
        return [VectorStoreItem.model_validate(v) for v in body.get("vectors") or []]

    async def update_vector(
        self,
        item_id: str,
        embedding: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._request(
            "POST",
            "update-vector",
            {"id": item_id, "embedding": embedding, "metadata": metadata},
        )

    async def delete_vector(self, item_id: str) -> None:
        await self._request("POST", "delete-vector", {"id": item_id})

    async def has_vector(self, item_id: str) -> bool:
        body = await self._request("POST", "has-vector", {"id": item_id})
        return bool(body.get("hasVector"))

    async def count(self) -> int:
        body = await self._request("GET", "count")
        return int(body.get("count", 0))

    async def clear(self) -> None:
        await self._request("POST", "clear", {})

    async def get_config(self) -> dict[str, Any]:
        body = await self._request("GET", "config")
        return dict(body.get("config") or {})

    async def push_config(self, config: dict[str, Any]) -> None:
        """Apply a store configuration on the server."""
        await self._request("POST", "config", config)
        logger.info("Pushed vector store config to server", extra={"type": config.get("type")})
