"""
Shop Quotes API - Main Application

Quote management for an auto-repair shop: itemized quotes persisted to
Postgres, rendered to PDF and announced through a notification webhook.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from shopquotes import __version__
from shopquotes.api.router import api_router
from shopquotes.config import Settings, get_settings
from shopquotes.database import dispose_engines, init_db
from shopquotes.exceptions import (
    ShopQuotesException,
    http_exception_handler,
    make_generic_exception_handler,
    shopquotes_exception_handler,
    validation_exception_handler,
)
from shopquotes.middleware import RequestContextMiddleware, RequestIdLogFilter
# Import models to register them with SQLAlchemy metadata before init_db()
from shopquotes.models import Quote, CompanySettings  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdLogFilter())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one Settings instance."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting Shop Quotes API...")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        if settings.database_configured:
            try:
                await init_db(settings)
                logger.info("Database initialized successfully")
            except Exception as e:
                # Don't log exception details, they may contain credentials
                logger.error(f"Database initialization failed: {type(e).__name__}")
                logger.warning("App starting without database - requests will fail until it is reachable")
        else:
            logger.warning("DATABASE_URL not set - quote and settings endpoints will return 500")
        if not settings.webhook_configured:
            logger.warning("NOTIFY_WEBHOOK_URL not set - quotes will be saved without notification")
        yield
        logger.info("Shutting down Shop Quotes API...")
        await dispose_engines()

    app = FastAPI(
        title="Shop Quotes API",
        description="Quote (orçamento) management for an auto-repair shop",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allowed_origins = [settings.FRONTEND_URL]
    if not settings.is_production:
        allowed_origins.extend([
            "http://localhost:3000",
            "http://localhost:5173",
        ])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID", "X-Response-Time"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(ShopQuotesException, shopquotes_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, make_generic_exception_handler(settings.DEBUG))

    app.include_router(api_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "shopquotes.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().DEBUG,
    )
