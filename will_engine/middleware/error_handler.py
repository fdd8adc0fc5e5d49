"""
Unified Error Handling for FastAPI.

Provides:
- Exception handlers mapping the domain error taxonomy to HTTP statuses
- A middleware turning anything else into a 500
- One JSON error shape: {"error": {"message", "type"}, "request_id"}
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..domain.errors import (
    AuthorizationError,
    CircleNotFound,
    CommitmentNotFound,
    DomainError,
    DomainValidationError,
    TransientStoreError,
    WillNotFound,
)
from ..utils.logging import RequestContext

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS_CODES = (
    (DomainValidationError, 400),
    (AuthorizationError, 403),
    (WillNotFound, 404),
    (CircleNotFound, 404),
    (CommitmentNotFound, 404),
    (TransientStoreError, 503),
)


def _request_id(request: Request) -> Optional[str]:
    return RequestContext.get_request_id() or getattr(request.state, "request_id", None)


def status_code_for(error: Exception) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def error_body(
    message: Any,
    error_type: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """The one JSON error shape; ``details`` and ``request_id`` appear only when set."""
    body: Dict[str, Any] = {"error": {"message": message, "type": error_type}}
    if details:
        body["error"]["details"] = details
    if request_id:
        body["request_id"] = request_id
    return body


def get_error_response(error: Exception, request_id: Optional[str] = None) -> Dict[str, Any]:
    return error_body(
        getattr(error, "reason", None) or str(error),
        type(error).__name__,
        request_id=request_id,
        details=getattr(error, "details", None),
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Last line of defence: anything unhandled becomes a logged 500."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = _request_id(request)
            logger.error(
                f"Unhandled {type(e).__name__} [{request_id}] on "
                f"{request.method} {request.url.path}: {e}",
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content=error_body("Internal server error", "InternalError", request_id),
            )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_code_for(exc)
    request_id = _request_id(request)
    if status_code >= 500:
        logger.warning(f"Transient failure [{request_id}] on {request.url.path}: {exc}")
    else:
        logger.info(f"Rejected [{request_id}] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=get_error_response(exc, request_id=request_id),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, "HTTPException", _request_id(request)),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
