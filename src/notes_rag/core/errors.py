"""
Error Taxonomy and Global Error Handling

This module defines the service's exception hierarchy and the application-wide
exception handlers that render it.

Design Goals
------------
- One exception class per failure class, each carrying its HTTP status and a
  stable machine-readable code
- Never leak internal exception details to clients
- Log full stack traces internally for unexpected failures
- No retries: every error is terminal for the request that raised it
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("notes_rag.errors")


# ---------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------

class NotesRagError(RuntimeError):
    """Base class for all errors that map onto a deterministic HTTP response."""

    status_code: int = 500
    code: str = "internal_server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailedError(NotesRagError):
    """Raised when request input is rejected before any external call."""

    status_code = 400
    code = "validation_failed"


class QueryTooShortError(ValidationFailedError):
    code = "query_too_short"


class NoteNotFoundError(NotesRagError):
    """
    Raised when a note does not exist for the requesting owner.

    Notes owned by someone else raise this too, so the existence of another
    owner's data is never revealed.
    """

    status_code = 404
    code = "not_found"


class UpstreamError(NotesRagError):
    """Raised when the embedding provider or language model fails."""

    status_code = 502
    code = "upstream_error"


class EmbeddingError(UpstreamError):
    """Raised when embedding generation fails."""


class LLMError(UpstreamError):
    """Raised when a chat completion request fails."""


class VectorSearchUnavailableError(NotesRagError):
    """
    Raised by a vector store when the similarity search path is structurally
    unavailable (missing extension, broken index function, ...).
    """

    status_code = 503
    code = "vector_search_unavailable"


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def notes_rag_exception_handler(
    request: Request,
    exc: NotesRagError,
) -> JSONResponse:
    """
    Render a known service error as ``{"error": code, "detail": message}``.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s during request %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
        )
    else:
        logger.info(
            "Rejected request %s %s: %s",
            request.method,
            request.url.path,
            exc.code,
        )

    payload: Dict[str, Any] = {
        "error": exc.code,
        "detail": exc.message,
    }

    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.

    Parameters
    ----------
    request : Request
        The incoming HTTP request that triggered the exception.

    exc : Exception
        The uncaught exception instance.

    Returns
    -------
    JSONResponse
        A JSON 500 response with a minimal error payload.
    """

    # Log full traceback internally (never returned to client)
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
