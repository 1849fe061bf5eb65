"""FastAPI application entry point.

Configures the application with logging, exception handling, health checks
and metrics.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from iconsearch import __version__
from iconsearch.api.dependencies import get_context
from iconsearch.api.errors import get_status_code
from iconsearch.api.routes import router, vector_store_router
from iconsearch.config import Environment, get_settings
from iconsearch.context import AppContext, build_context
from iconsearch.exceptions import IconSearchError
from iconsearch.logging_config import get_logger, setup_logging
from iconsearch.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the application context if none was supplied, warms up the search
    service and closes clients on shutdown.
    """
    # Startup
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )
    logger.info(
        "Starting Icon Search",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    if getattr(app.state, "context", None) is None:
        app.state.context = build_context(settings)
    context: AppContext = app.state.context

    try:
        await context.search.initialize()
    except IconSearchError as e:
        logger.error(f"Search warm-up failed, will retry on first search: {e.message}")

    yield

    # Shutdown
    logger.info("Shutting down Icon Search")
    await context.close()


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        context: Prebuilt application context (for testing). Built from
            settings on startup or first request otherwise.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Icon Search",
        description="Semantic icon search with multi-backend vector stores",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.context = context

    # Register exception handlers
    app.add_exception_handler(IconSearchError, icon_search_exception_handler)

    # Register middleware
    app.add_middleware(MetricsMiddleware)

    # Register routes
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route(
        "/metrics",
        metrics_endpoint,
        methods=["GET"],
        tags=["Observability"],
        include_in_schema=False,
    )
    app.include_router(router)
    app.include_router(vector_store_router)

    return app


async def icon_search_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle IconSearchError exceptions.

    Converts exceptions to structured JSON responses.
    """
    # Type narrow to IconSearchError
    if not isinstance(exc, IconSearchError):
        # Should not happen, but handle gracefully
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "ICN-1000", "message": str(exc), "details": {}}},
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=get_status_code(exc.code),
        content=exc.to_dict(),
    )


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(context: AppContext = Depends(get_context)) -> dict[str, Any]:
    """Kubernetes readiness probe.

    Ready once the search service has loaded its catalog. Embedding fallback
    mode is reported but does not make the service unready.

    Returns:
        Readiness status with component checks.
    """
    search = context.search
    checks: dict[str, str] = {
        "config": "ok",
        "search": "ok" if search.is_initialized else "initializing",
    }

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "embeddings": "fallback" if context.embeddings.is_using_fallback() else "model",
        "vector_store": search.vector_store_config.type,
        "catalog": {
            "icons": len(search.icons),
            "fingerprint": search.catalog_fingerprint,
        },
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe.

    Simple check that the service is running.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
