"""
Stealth discovery FastAPI application entry point.

Pipeline: adapters → raw signals → entity resolution → signal store → scoring → query API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stealth import __version__
from stealth.config import get_settings
from stealth.db.session import check_db_connection, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("Stealth discovery starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        # A malformed adapters.yaml fails startup instead of the first ingestion run
        try:
            from stealth.ingestion.registry import load_adapter_file

            adapters = load_adapter_file()
            logger.info("Adapter config validated (%d adapters)", len(adapters))
        except Exception as e:
            logger.critical("Adapter config validation failed at startup: %s", e)
            raise

        yield
    finally:
        logger.info("Stealth discovery shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    from stealth.api.admin import router as admin_router
    from stealth.api.entities import router as entities_router

    app.include_router(entities_router, prefix="/api", tags=["entities"])

    # Admin endpoints (operators, cron, scripts; token-authenticated)
    app.include_router(admin_router, tags=["internal"])

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            from fastapi.responses import JSONResponse

            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
