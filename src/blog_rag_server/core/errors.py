"""
Global Error Handling

This module defines the error kinds shared across ingestion and retrieval,
and the application-wide exception handlers for the chat server.

Every error response is a JSON object with ``error`` and ``detail`` keys.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("blograg.errors")


# ---------------------------------------------------------------------
# Error Kinds
# ---------------------------------------------------------------------

class InvalidPathError(ValueError):
    """Raised when a document path cannot be made relative to the content root."""


class FallbackQueryFailure(RuntimeError):
    """Raised when the unfiltered fallback query fails. Surfaced to the caller."""


class UpstreamProviderError(RuntimeError):
    """Base error for embedding / LLM provider failures."""


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def upstream_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Handler for failures of collaborators the request depends on
    (fallback vector query, embedding provider, LLM provider).

    Returns a 502 with the error kind so the widget can show an explicit
    error state instead of a partial answer.
    """
    logger.error(
        "Upstream failure during request %s %s: %s",
        request.method,
        request.url.path,
        exc,
    )

    payload: Dict[str, Any] = {
        "error": type(exc).__name__,
        "detail": str(exc) or "Upstream service failure",
    }

    return JSONResponse(
        status_code=502,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Log the traceback and return a generic 500 that carries no internals.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
