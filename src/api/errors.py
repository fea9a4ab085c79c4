"""
Exception handlers
==================

Maps domain errors to HTTP responses.  Every error body has the shape::

    {"status": 404, "error": "Not Found", "message": "...",
     "path": "/api/v1/trips/7", "timestamp": "2024-01-01T00:00:00+00:00"}
"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.errors import (
    AuthenticationError,
    CabBookingError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
    ValidationError,
)
from src.infrastructure.locks import LockTimeout

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type, int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    UnavailableError: 409,
    ConflictError: 409,
}


def status_for(exc: CabBookingError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


def error_body(status: int, message: str, path: str) -> dict:
    return {
        "status": status,
        "error": HTTPStatus(status).phrase,
        "message": message,
        "path": path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _respond(request: Request, status: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=error_body(status, message, request.url.path),
        headers=headers,
    )


async def handle_domain_error(request: Request, exc: CabBookingError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(
        "%s %s -> %d %s: %s",
        request.method, request.url.path, status, type(exc).__name__, exc,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return _respond(request, status, str(exc), headers)


async def handle_lock_timeout(request: Request, exc: LockTimeout) -> JSONResponse:
    logger.warning("%s %s -> 503: %s", request.method, request.url.path, exc)
    return _respond(request, 503, "Resource is busy, try again")


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _respond(request, 400, "; ".join(messages) or "Invalid request")


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _respond(request, exc.status_code, str(exc.detail), exc.headers)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s at %s",
        request.method,
        request.url.path,
        datetime.now(timezone.utc).isoformat(),
    )
    return _respond(request, 500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CabBookingError, handle_domain_error)
    app.add_exception_handler(LockTimeout, handle_lock_timeout)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
