"""API middleware: CORS, request logging and error handling.

Starlette runs middleware last-added-first.  ``create_app`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``, so the
request path is::

    client -> RequestLogging -> ErrorHandling -> route handler

and the logged status is the final one, after application errors have been
turned into JSON bodies.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bookbuddy.api.schemas import ErrorResponse
from bookbuddy.utils.errors import (
    BookBuddyError,
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
)
from bookbuddy.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Checked in order; the first matching class wins.
_STATUS_BY_ERROR: tuple[tuple[type[BookBuddyError], int], ...] = (
    (InputValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
)


def status_for(exc: BookBuddyError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins are allowed unless *allowed_origins* is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                user_id=request.headers.get("x-user-id"),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``BookBuddyError`` subclasses into JSON :class:`ErrorResponse` bodies.

    Input errors map to 400, permission errors to 403, missing resources
    to 404 and every other application error to 500.  Details of 500s stay
    in the server log; the client sees a generic message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except BookBuddyError as exc:
            status = status_for(exc)
            log = _logger.error if status >= 500 else _logger.warning
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message if status < 500 else "Internal server error",
            )
            return JSONResponse(status_code=status, content=body.model_dump())
