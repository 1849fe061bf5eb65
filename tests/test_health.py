"""Integration tests for health check endpoints."""

from httpx import AsyncClient

from iconsearch import __version__
from iconsearch.context import AppContext


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    async def test_health_returns_200(self, client: AsyncClient) -> None:
        """Health endpoint returns 200 OK."""
        response = await client.get("/health")
        assert response.status_code == 200

    async def test_health_returns_status(self, client: AsyncClient) -> None:
        """Health endpoint returns healthy status."""
        response = await client.get("/health")
        data = response.json()
        assert data["status"] == "healthy"

    async def test_health_returns_version(self, client: AsyncClient) -> None:
        """Health endpoint returns application version."""
        response = await client.get("/health")
        data = response.json()
        assert data["version"] == __version__

    async def test_health_returns_timestamp(self, client: AsyncClient) -> None:
        """Health endpoint returns ISO timestamp."""
        response = await client.get("/health")
        data = response.json()
        assert "timestamp" in data
        # Verify ISO format (contains T separator)
        assert "T" in data["timestamp"]


class TestReadinessEndpoint:
    """Tests for /health/ready endpoint."""

    async def test_not_ready_before_initialization(self, client: AsyncClient) -> None:
        """The service is not ready until the catalog is loaded."""
        response = await client.get("/health/ready")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "not_ready"
        assert data["checks"]["search"] == "initializing"

    async def test_ready_after_initialization(
        self, client: AsyncClient, context: AppContext
    ) -> None:
        """Readiness reports the store, embedding mode and catalog."""
        await context.search.initialize()

        response = await client.get("/health/ready")
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["config"] == "ok"
        assert data["embeddings"] == "model"
        assert data["vector_store"] == "memory"
        assert data["catalog"]["icons"] == 5
        assert data["catalog"]["fingerprint"] == context.search.catalog_fingerprint


class TestLivenessEndpoint:
    """Tests for /health/live endpoint."""

    async def test_liveness_returns_alive(self, client: AsyncClient) -> None:
        """Liveness endpoint returns alive status."""
        response = await client.get("/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
