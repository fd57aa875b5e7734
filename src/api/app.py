"""
FastAPI Application Factory.

Usage:
    # Development
    uvicorn api.app:create_app --factory --reload

    # Production
    uvicorn api.app:create_app --factory --host 0.0.0.0 --port 8080
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings
from core.logging import configure_logging, get_logger
from core.middleware import RequestTracingMiddleware
from marketplace.storage import Storage
from services.session_manager import SessionManager


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Configures logging on startup and closes every live session
    (flushing queued dwell, stopping aggregate workers) on shutdown.
    """
    settings: Settings = app.state.settings

    configure_logging(
        json_logs=settings.use_json_logs,
        log_level="DEBUG" if settings.debug else settings.log_level,
    )

    logger.info(
        "Starting marketplace ranking API",
        environment=settings.environment,
        storage_backend=settings.storage_backend,
        port=settings.port,
    )

    yield

    app.state.session_manager.close_all()
    logger.info("Shutting down marketplace ranking API")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        storage: Storage backend shared by all sessions
            (defaults to one built from settings)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Marketplace Ranking API",
        description="""
        Adaptive relevance ranking for an automation catalog.

        ## Main Endpoints

        - `/api/marketplace/sessions` - Open a ranking session
        - `/api/marketplace/sessions/{id}/dwell` - Report dwell time
        - `/api/marketplace/sessions/{id}/exposure` - Report browsing exposure
        - `/api/marketplace/sessions/{id}/ranking` - Ranked (optionally filtered) catalog
        - `/api/marketplace/sessions/{id}/insights` - Aggregates, recommendations, clusters

        ## Health Checks

        - `/health` - Basic health check
        - `/health/detailed` - Health with session and storage status
        - `/live` - Liveness probe
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.state.settings = settings
    app.state.session_manager = SessionManager(settings, storage=storage)

    # =========================================================================
    # Middleware (order matters - first added = outermost)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request tracing (adds X-Request-ID, logs timing)
    app.add_middleware(RequestTracingMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================

    from api.routes.health import router as health_router
    app.include_router(health_router)

    from api.routes.marketplace import router as marketplace_router
    app.include_router(marketplace_router)

    return app
