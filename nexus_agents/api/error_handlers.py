"""Error Handlers — global exception handlers for the REST API.

Invariants:
    - NexusError → structured JSON envelope from to_response(), http_status kept
    - RequestValidationError → 400 with field-level details
    - Exception (catch-all) → 500, never leaks internal details
    - Streaming routes never reach these handlers after the first chunk:
      the turn engine converts failures into error chunks itself

Design Decisions:
    - Client errors (< 500) logged at WARNING, server errors at ERROR
    - retry_after_ms in the error context becomes a Retry-After header
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from nexus_agents.core.errors import ErrorCategory, ErrorSeverity, NexusError

logger = logging.getLogger(__name__)

_INTERNAL_BODY = {
    "error": {
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "category": ErrorCategory.INTERNAL.value,
        "severity": ErrorSeverity.CRITICAL.value,
    },
}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    app.add_exception_handler(NexusError, nexus_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)


async def nexus_error_handler(request: Request, exc: NexusError) -> JSONResponse:
    level = logging.WARNING if exc.http_status < 500 else logging.ERROR
    logger.log(
        level, "%s on %s: %s", exc.code, request.url.path, exc.message,
        extra={"error_code": exc.code, "session_id": exc.context.session_id},
    )
    headers = None
    if exc.context.retry_after_ms:
        headers = {"Retry-After": str(math.ceil(exc.context.retry_after_ms / 1000))}
    return JSONResponse(
        status_code=exc.http_status, content=exc.to_response(), headers=headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_validation_error_response(exc),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}", exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_INTERNAL_BODY,
    )


def build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": ErrorCategory.VALIDATION.value,
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
