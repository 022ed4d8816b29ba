"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderfeed.api.routes import api_router
from orderfeed.core.config import settings
from orderfeed.core.exceptions import ConfigurationException, register_exception_handlers
from orderfeed.core.logging import RequestLoggingMiddleware, setup_logging
from orderfeed.core.metrics import PrometheusMiddleware, metrics_endpoint, update_service_health
from orderfeed.core.sentry import init_sentry
from orderfeed.services.appwrite_client import AppwriteBackend
from orderfeed.services.realtime.backend import OrderBackend
from orderfeed.services.realtime.connection_manager import ChannelConnectionManager
from orderfeed.services.realtime.service import RealtimeService

# Setup logging
setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=not settings.DEBUG,
)

logger = logging.getLogger(__name__)

# Initialize Sentry (if configured)
init_sentry()


def build_lifespan(backend: Optional[OrderBackend] = None):
    """Lifespan that owns the realtime service for the life of the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting application...")
        try:
            settings.validate_production_settings()
        except ValueError as e:
            raise ConfigurationException(str(e))

        order_backend = backend or AppwriteBackend()
        app.state.realtime_service = RealtimeService(order_backend)
        app.state.connection_manager = ChannelConnectionManager(
            max_connections_per_channel=settings.WS_MAX_CONNECTIONS_PER_CHANNEL,
        )

        await _check_backend(order_backend)

        logger.info("Application started successfully")
        yield

        logger.info("Shutting down application...")
        app.state.realtime_service.unsubscribe_all()
        await order_backend.close()
        logger.info("Application shutdown complete")

    return lifespan


async def _check_backend(backend: OrderBackend) -> None:
    """Report health of the order backend on startup."""
    try:
        healthy = await backend.health_check()
        update_service_health("appwrite", healthy)
        if healthy:
            logger.info("Appwrite backend: healthy")
        else:
            logger.warning("Appwrite backend: unhealthy")
    except Exception as e:
        update_service_health("appwrite", False)
        logger.warning(f"Appwrite backend check failed: {e}")


def create_app(backend: Optional[OrderBackend] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Realtime order feed for customers, restaurants and drivers",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        lifespan=build_lifespan(backend),
    )

    # Standardized exception handlers (must be registered first)
    register_exception_handlers(app)

    if settings.METRICS_ENABLED:
        app.add_middleware(PrometheusMiddleware)

    app.add_middleware(RequestLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    # Metrics endpoint (outside API prefix)
    if settings.METRICS_ENABLED:
        app.add_api_route(
            settings.METRICS_PATH,
            metrics_endpoint,
            methods=["GET"],
            include_in_schema=False,
        )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": f"{settings.API_V1_PREFIX}/docs",
            "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None,
        }

    logger.info(f"Application configured: {settings.APP_NAME} v{settings.APP_VERSION}")

    return app


app = create_app()
