"""
Notes Retrieval Service Entry Point

This module defines the FastAPI application instance, registers all routers,
configures logging and global exception handling, and provides a
test-friendly application factory.

Design Goals
------------
- Deterministic startup
- Centralized router registration
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from . import __version__
from .config import settings
from .core.errors import NotesRagError, notes_rag_exception_handler, unhandled_exception_handler

from .api import (
    chat_routes,
    health_routes,
    index_routes,
    search_routes,
    suggest_routes,
)
from .api.dependencies import get_index_scheduler
from .db import dispose_engine


logger = logging.getLogger("notes_rag.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Fail-fast validation at startup; cancel pending index runs at shutdown.
    """
    logger.info("Starting notes-rag (vector backend: %s)", settings.vector_backend)

    # Touch critical secrets to force validation now (not at first use)
    _ = settings.openai_api_key.get_secret_value()
    _ = settings.jwt_secret.get_secret_value()

    logger.info("Configuration validated successfully")

    yield

    logger.info("Shutting down notes-rag")
    await get_index_scheduler().shutdown()
    if settings.vector_backend == "pgvector":
        await dispose_engine()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory pattern allows:
    - Clean test instantiation
    - Controlled dependency overrides in pytest

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="notes-rag",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(NotesRagError, notes_rag_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(index_routes.router)
    app.include_router(search_routes.router)
    app.include_router(chat_routes.router)
    app.include_router(suggest_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn)
# ---------------------------------------------------------------------

app = create_app()
