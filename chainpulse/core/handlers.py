"""Exception handlers rendering every error as an ErrorResponse."""

import logging
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chainpulse.core.exceptions import MonitorError, ServiceError
from chainpulse.models.common import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        error_code=error_code,
        request_id=getattr(request.state, "request_id", None),
        details=details or None,
    )
    return JSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True)
    )


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "request_id": getattr(request.state, "request_id", None),
        "path": request.url.path,
        "method": request.method,
    }


async def monitor_error_handler(request: Request, exc: MonitorError) -> JSONResponse:
    """Render a MonitorError with its own status and code.

    Client-side errors (unknown service, no monitor yet) log at WARNING;
    server-side ones at ERROR, with a traceback for ServiceError.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Request failed: {exc.message}",
        extra={
            **_request_context(request),
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
        },
        exc_info=isinstance(exc, ServiceError),
    )
    return _error_response(
        request, exc.status_code, exc.message, exc.error_code, exc.details
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Invalid query or path parameters, e.g. a non-positive history limit."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Invalid request parameters",
        extra={**_request_context(request), "errors": errors},
    )
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation failed",
        "VALIDATION_ERROR",
        {"validation_errors": errors},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Routing errors such as unknown paths or wrong methods."""
    if exc.detail:
        message = str(exc.detail)
    else:
        try:
            message = HTTPStatus(exc.status_code).phrase
        except ValueError:
            message = "HTTP error occurred"

    logger.warning(
        f"HTTP {exc.status_code}",
        extra={**_request_context(request), "status_code": exc.status_code},
    )
    return _error_response(
        request, exc.status_code, message, f"HTTP_{exc.status_code}"
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        extra={**_request_context(request), "error_type": type(exc).__name__},
        exc_info=True,
    )
    # Internals stay in the log
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal error occurred",
        "INTERNAL_ERROR",
    )
