"""
Chat Server Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures global exception handling, and provides a test-friendly application
factory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.errors import (
    FallbackQueryFailure,
    UpstreamProviderError,
    unhandled_exception_handler,
    upstream_exception_handler,
)
from .api import admin_routes, chat_routes, health_routes
from .api.dependencies import get_title_dictionary, get_vector_store


logger = logging.getLogger("blograg.app")


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Load read-only process state (vector store, title dictionary) once
    before the first request is served.
    """
    logger.info("Starting blog-rag-server")

    store = get_vector_store()
    titles = get_title_dictionary()
    logger.info("Ready: %d vectors, %d title translations", store.count(), len(titles))

    yield

    logger.info("Shutting down blog-rag-server")


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    app = FastAPI(
        title="blog-rag-server",
        version="1.0.0",
        lifespan=lifespan,
    )

    # The chat widget is embedded on arbitrary site pages
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(FallbackQueryFailure, upstream_exception_handler)
    app.add_exception_handler(UpstreamProviderError, upstream_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(chat_routes.router)
    app.include_router(admin_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
