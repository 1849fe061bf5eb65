"""Observability module for metrics and monitoring."""

from iconsearch.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    set_catalog_size,
    set_fallback_mode,
    track_embedding_request,
    track_search_request,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "set_catalog_size",
    "set_fallback_mode",
    "track_embedding_request",
    "track_search_request",
    "track_vectorstore_operation",
]
