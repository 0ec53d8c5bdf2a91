"""
Error Handling
==============

Two layers turn failures into HTTP responses:

1. ``powertick_error_handler`` (FastAPI exception handler) maps the typed
   errors of the database core to status codes:
   - CircuitOpenError, AcquisitionTimeoutError, PoolInitializationError,
     PoolClosedError -> 503 (the database is unavailable, retry later)
   - ValidationError and subclasses -> 400
   - any other PowertickError -> 500
2. ``ErrorHandlingMiddleware`` is the catch-all for anything else: logs it
   with the stack trace and answers a generic 500 without internal details.

Every error body carries the correlation ID; the response header is added
by the correlation middleware in ``powertick_db.app``.
"""

import traceback
from collections.abc import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from powertick_db.core.config.constants import HEADER_CORRELATION_ID
from powertick_db.core.exceptions import (
    AcquisitionTimeoutError,
    CircuitOpenError,
    PoolClosedError,
    PoolInitializationError,
    PowertickError,
    ValidationError,
)
from powertick_db.core.logging.logger import get_correlation_id, get_logger

logger = get_logger(__name__)

# Checked in order; first match wins
_STATUS_MAP: tuple[tuple[type[PowertickError], int], ...] = (
    (CircuitOpenError, 503),
    (AcquisitionTimeoutError, 503),
    (PoolInitializationError, 503),
    (PoolClosedError, 503),
    (ValidationError, 400),
)


def status_code_for(exc: PowertickError) -> int:
    for error_type, status_code in _STATUS_MAP:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def powertick_error_handler(request: Request, exc: PowertickError) -> JSONResponse:
    """Translate a core error into a JSON response with the mapped status."""
    status_code = status_code_for(exc)
    correlation_id = exc.correlation_id or get_correlation_id()
    if exc.correlation_id is None:
        exc.correlation_id = correlation_id

    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        stage="API.ERROR",
        method=request.method,
        path=request.url.path,
        status_code=status_code,
        error_type=type(exc).__name__,
        error_code=exc.code,
    )

    headers = {HEADER_CORRELATION_ID: correlation_id} if correlation_id else None
    if isinstance(exc, CircuitOpenError):
        retry_after = exc.details.get("retry_after_s")
        if retry_after is not None:
            headers = {**(headers or {}), "Retry-After": str(max(1, round(retry_after)))}

    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Catch-all for exceptions no exception handler claimed.

    Full details go to the log; the client gets a generic message unless
    ``include_traceback`` is enabled (local development only).
    """

    def __init__(self, app, include_traceback: bool = False):
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            error_type = type(e).__name__
            logger.error(
                f"Unhandled exception in request: {request.method} {request.url.path}",
                stage="API.ERROR",
                method=request.method,
                path=request.url.path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            error_response = {
                "error": "internal_server_error",
                "message": "An unexpected error occurred while processing your request",
                "error_type": error_type,
                "correlation_id": get_correlation_id(),
            }
            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            return JSONResponse(status_code=500, content=error_response)


def register_error_handling(app: FastAPI, include_traceback: bool = False) -> None:
    """Install the exception handler and the catch-all middleware."""
    app.add_exception_handler(PowertickError, powertick_error_handler)
    app.add_middleware(ErrorHandlingMiddleware, include_traceback=include_traceback)
    logger.info("Error handling registered", include_traceback=include_traceback)
