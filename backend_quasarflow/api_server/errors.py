"""
Exception handlers: translate AppError, request validation and HTTP errors into
the response envelope. Unexpected exceptions are left to RecoveryMiddleware.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend_quasarflow.api_server import responses
from backend_quasarflow.core.exceptions import AppError
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

_HTTP_ERROR_TYPES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def format_validation_errors(exc: RequestValidationError) -> str:
    """Field-level detail: "body.signature: Field required; path.public_key: ..."."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


async def app_error_handler(request: Request, exc: AppError):
    level = logger.error if exc.status_code >= 500 else logger.info
    level(
        "app_error",
        type=exc.type,
        status=exc.status_code,
        error=exc.message,
        detail=exc.detail,
        path=request.url.path,
        request_id=_request_id(request),
    )
    return responses.app_error(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    detail = format_validation_errors(exc)
    logger.info("request_validation_failed", path=request.url.path, detail=detail, request_id=_request_id(request))
    return responses.error(400, "Invalid request", type_="VALIDATION_ERROR", detail=detail)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    type_ = _HTTP_ERROR_TYPES.get(exc.status_code, "ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return responses.error(exc.status_code, message, type_=type_, headers=getattr(exc, "headers", None))


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
