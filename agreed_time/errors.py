"""Standardized error handling for the API.

This module provides:
1. One exception class per failure kind, each carrying an HTTP status and a
   machine-readable code
2. Exception handlers for FastAPI
3. The standard `{error, code}` response body

Usage:
    from agreed_time.errors import NotFoundError, ParticipantLimitError

    # In controllers:
    if event is None:
        raise NotFoundError()

    # Register handlers in main.py:
    from agreed_time.errors import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

import psycopg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    code: str


class APIError(Exception):
    """Base class for API errors."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.message
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(error=self.message, code=self.code)


class BadRequestError(APIError):
    """Invalid input, rejected before touching persistence (400)."""

    status_code = 400
    code = "BAD_REQUEST"
    message = "Invalid request"


class NotFoundError(APIError):
    """Unknown token (404)."""

    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class ParticipantLimitError(APIError):
    """The event already holds the maximum number of participants (400)."""

    status_code = 400
    code = "PARTICIPANT_LIMIT_REACHED"

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Event has reached maximum limit of {limit} participants")


class RateLimitedError(APIError):
    """Too many requests from one client identity (429)."""

    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many requests, slow down"


class DatabaseError(APIError):
    """Persistence failure; details stay in the logs (500)."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    message = "Database error"


def error_response(exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors."""
    logger.warning(
        "API error: %s (status=%d, code=%s, path=%s)",
        exc.message,
        exc.status_code,
        exc.code,
        request.url.path,
    )
    return error_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report body/path validation failures as 400 with the first problem."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        message = str(first.get("msg", message))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
    logger.warning("Validation failed: %s (path=%s)", message, request.url.path)
    return error_response(BadRequestError(message))


async def database_exception_handler(request: Request, exc: psycopg.Error) -> JSONResponse:
    """Log persistence failures in full and answer with an opaque 500."""
    logger.error("Database error: %r (path=%s)", exc, request.url.path, exc_info=exc)
    return error_response(DatabaseError())


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception("Unhandled exception: %s (path=%s)", exc, request.url.path)
    return error_response(APIError())


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(psycopg.Error, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
