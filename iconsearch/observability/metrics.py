"""Prometheus metrics for the icon search service.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Search latency by outcome (vector, substring fallback, ...)
- Embedding latency by mode (model or fallback)
- Vector store operation latency by backend
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from iconsearch.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Search Metrics
ICON_SEARCH_DURATION = Histogram(
    "icon_search_duration_seconds",
    "Icon search duration in seconds",
    ["outcome"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ICON_SEARCH_TOTAL = Counter(
    "icon_searches_total",
    "Total icon searches",
    ["outcome"],
)

ICON_SEARCH_RESULTS = Histogram(
    "icon_search_results",
    "Number of results returned per search",
    buckets=[0, 1, 5, 10, 25, 50, 100, 250],
)

CATALOG_ICONS = Gauge(
    "catalog_icons",
    "Icons in the current catalog snapshot",
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "mode"],
    buckets=[0.001, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "mode"],
)

EMBEDDING_FALLBACK_ACTIVE = Gauge(
    "embedding_fallback_active",
    "1 while the embedding provider runs in fallback mode",
    ["model"],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["backend", "operation", "status"],
    buckets=[0.001, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/"):
            return "/".join(path.split("/")[:4])
        return "other"


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_search_request(
    outcome: str,
    duration: float,
    results: int,
) -> None:
    """Track search metrics.

    Args:
        outcome: Which search path produced the results.
        duration: Search duration in seconds.
        results: Number of results returned.
    """
    ICON_SEARCH_DURATION.labels(outcome=outcome).observe(duration)
    ICON_SEARCH_TOTAL.labels(outcome=outcome).inc()
    ICON_SEARCH_RESULTS.observe(results)


def track_embedding_request(
    model: str,
    duration: float,
    fallback: bool = False,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        fallback: Whether the fallback vectorizer produced the vector.
    """
    mode = "fallback" if fallback else "model"

    EMBEDDING_REQUEST_DURATION.labels(model=model, mode=mode).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, mode=mode).inc()


def set_fallback_mode(model: str, active: bool) -> None:
    EMBEDDING_FALLBACK_ACTIVE.labels(model=model).set(1 if active else 0)


def set_catalog_size(icons: int) -> None:
    CATALOG_ICONS.set(icons)


def track_vectorstore_operation(
    backend: str,
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a vector store call.

    Args:
        backend: Store type label.
        operation: Operation name.
        duration: Call duration in seconds.
        success: Whether the call succeeded.
    """
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(
        backend=backend,
        operation=operation,
        status=status,
    ).observe(duration)
