"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront_analytics import __version__
from storefront_analytics.core.config import get_settings
from storefront_analytics.core.exceptions import register_exception_handlers
from storefront_analytics.core.health import router as health_router
from storefront_analytics.core.logging import configure_logging, get_logger
from storefront_analytics.core.middleware import RequestIdMiddleware
from storefront_analytics.features.analytics.routes import router as analytics_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown.

    Args:
        _app: FastAPI application instance (unused, required by lifespan protocol).

    Yields:
        None after startup.
    """
    settings = get_settings()

    configure_logging()
    logger.info(
        "app.startup_started",
        app_name=settings.app_name,
        app_env=settings.app_env,
        debug=settings.debug,
        analytics_timezone=settings.analytics_timezone,
        analytics_parallel_aggregators=settings.analytics_parallel_aggregators,
    )

    yield

    logger.info("app.shutdown_completed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant storefront analytics aggregation engine",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(analytics_router)

    return app


app = create_app()
