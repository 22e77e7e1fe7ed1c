"""Transaction Tracker Backend - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.api.health import router as health_router
from app.core import settings, setup_logging
from app.core.logging import get_logger
from app.middleware import SecurityHeadersMiddleware

# Import all models to ensure they're registered with Base for Alembic
from app.models import TokenRecord, User  # noqa: F401
from app.services.token_cleanup import TokenCleanupService

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    # Expired token records are swept in the background
    cleanup_service = TokenCleanupService.get_instance()
    cleanup_service.interval_seconds = settings.token_cleanup_interval_seconds
    await cleanup_service.start()

    yield

    logger.info("Shutting down...")
    await cleanup_service.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Portfolio and transaction tracking API",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 401s.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api/v1

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
