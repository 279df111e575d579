"""
Main FastAPI application entry point.
Configures logging, exception handlers, warm-up, and routers.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from recommender.api.dependencies import get_recommendation_service
from recommender.api.routers import health_router, recommendations_router
from recommender.config import get_settings
from recommender.config.logging import configure_logging, request_id_var
from recommender.core.exceptions import AppException
from recommender.core.telemetry import setup_telemetry

REQUEST_ID_HEADER = "X-Request-ID"


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Warm the feature cache on startup so the first request skips the rebuild."""
    logger = logging.getLogger(__name__)
    settings = get_settings()

    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Personalization enabled: {settings.PERSONALIZATION_ENABLED}")
    logger.info(f"Kill switch active: {settings.KILL_SWITCH_ACTIVE}")

    service = app.dependency_overrides.get(get_recommendation_service, get_recommendation_service)()
    try:
        await service.freshness.refresh()
    except AppException as e:
        # Lazy refresh on the first request will retry
        logger.warning(f"Feature cache warm-up failed: {e.message}")

    yield

    logger.info("Shutting down application")


# =============================================================================
# Middleware
# =============================================================================


async def request_context_middleware(request: Request, call_next):
    """Bind a request id to every log line emitted while serving the request."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex}"
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handle custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions - return generic error."""
    logger = logging.getLogger(__name__)
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    configure_logging(debug=settings.DEBUG)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
        Video Recommendation Engine

        Personalized video recommendations for a learning platform.

        ## Features
        - Five concurrent scoring strategies with weighted aggregation
        - Per-strategy timeouts and circuit breakers
        - TTL feature/preference caches with single-flight refresh
        - Similar videos, trending, discovery and learning paths
        - Observability: JSON logs, Prometheus, OpenTelemetry
        """,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(recommendations_router)

    setup_telemetry(app)

    return app


app = create_app()


# =============================================================================
# Development Entry Point
# =============================================================================


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recommender.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
