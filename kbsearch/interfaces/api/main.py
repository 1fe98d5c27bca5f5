"""
FastAPI Main Application - API entry point.

Run with: uvicorn kbsearch.interfaces.api:create_app --factory
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kbsearch import __version__
from kbsearch.config import get_settings

from .deps import cleanup_services, init_services
from .middleware import ErrorHandlerMiddleware, RequestContextMiddleware
from .routes import health, search

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting KBSearch API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info("  Embedding model: %s", settings.embedding_model)

    await init_services(app)
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down KBSearch API...")
    await cleanup_services(app)


def create_app() -> FastAPI:
    """Create FastAPI application."""
    app = FastAPI(
        title="KBSearch API",
        description="Hybrid knowledge-base retrieval for event safety guidance",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added is outermost: the request context wraps the error handler,
    # so error responses still get the request ID and timing headers.
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health.router, tags=["Health"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])

    return app
