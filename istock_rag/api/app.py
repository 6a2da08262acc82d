"""FastAPI application entry point.

Configures the application with logging, CORS, metrics, exception
handling and health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.routing import Match

from istock_rag import __version__
from istock_rag.api.cors import CORSGateMiddleware
from istock_rag.api.routes import add_query_routes, close_pipeline
from istock_rag.config import get_rag_engine_config, get_settings
from istock_rag.exceptions import ConfigurationError, ErrorCode, RAGPlatformError
from istock_rag.logging_config import get_logger, setup_logging
from istock_rag.observability import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)

METHOD_NOT_ALLOWED = "Method not allowed"
# Order in which allowed methods are reported on a 405
METHOD_ORDER = ("GET", "POST", "OPTIONS")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting iStock RAG API",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    yield

    # Shutdown
    await close_pipeline()
    logger.info("Shutting down iStock RAG API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="iStock RAG Query API",
        description="Livestock health answers grounded in a Vertex AI RAG corpus",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # Metrics wraps CORS so rejected origins are counted too
    app.add_middleware(CORSGateMiddleware)
    app.add_middleware(MetricsMiddleware)

    # Register exception handlers
    app.add_exception_handler(RAGPlatformError, rag_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Register routes
    app.add_api_route("/", root, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route(
        "/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"]
    )
    add_query_routes(app)

    return app


async def rag_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle RAGPlatformError exceptions.

    Converts exceptions to ``{"error": ..., "code": ...}`` bodies. Errors
    other than input validation carry the traceback under ``details``
    outside production.
    """
    # Type narrow to RAGPlatformError
    if not isinstance(exc, RAGPlatformError):
        return JSONResponse(
            status_code=500,
            content={"error": str(exc), "code": ErrorCode.INTERNAL_ERROR.value},
        )

    status_code = exc.status_code
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "status_code": status_code,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    include_trace = (
        exc.code != ErrorCode.VALIDATION_ERROR and not get_settings().is_production
    )
    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(include_trace=include_trace),
    )


async def http_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Render routing errors in the API's error shape."""
    if not isinstance(exc, StarletteHTTPException):
        return JSONResponse(status_code=500, content={"error": str(exc)})

    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={
                "error": METHOD_NOT_ALLOWED,
                "allowedMethods": _allowed_methods(request),
            },
            headers=exc.headers,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


def _allowed_methods(request: Request) -> list[str]:
    """Methods routed for the request's path, OPTIONS included."""
    methods = {"OPTIONS"}
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            methods.update(getattr(route, "methods", None) or ())
    return [method for method in METHOD_ORDER if method in methods]


async def root() -> dict[str, Any]:
    """Service banner and endpoint index.

    Returns:
        Status, endpoints and version.
    """
    return {
        "message": "iStock RAG Query API",
        "status": "online",
        "endpoints": {
            "root": "/",
            "ragQuery": "/ragQuery",
            "trpc": "/trpc",
        },
        "version": __version__,
    }


async def readiness_check() -> dict[str, Any]:
    """Readiness probe.

    Ready once the RAG engine coordinates resolve from the environment
    or the legacy runtime config.

    Returns:
        Readiness status with component checks.
    """
    checks: dict[str, str] = {}
    try:
        get_rag_engine_config()
        checks["rag_engine_config"] = "ok"
    except ConfigurationError as e:
        checks["rag_engine_config"] = e.message

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
