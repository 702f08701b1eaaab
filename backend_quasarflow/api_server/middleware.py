"""
HTTP middleware: logging, panic recovery, security headers, CORS, request IDs, rate limiting.

install_middleware() fixes the order. Outermost first:

    Logging -> Recovery -> SecurityHeaders -> CORS -> RequestID -> RateLimit -> router

Starlette wraps the most recently added middleware outermost, so they are added
in reverse. CORS answers preflight OPTIONS with 204 before request IDs or rate
limits are applied; Recovery sits inside Logging so crashed requests are still
logged with their 500 status.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Awaitable, Callable, Iterable
from urllib.parse import urlparse

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from backend_quasarflow.api_server import responses
from backend_quasarflow.auth.rate_limiter import RateLimiter, client_key
from backend_quasarflow.config import Settings
from backend_quasarflow.core.exceptions import RateLimitError
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[\x21-\x7e]{1,128}$")

CORS_ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH")
CORS_ALLOWED_HEADERS = ("Content-Type", "Authorization", "X-Request-ID", "Accept", "Origin")
CORS_MAX_AGE = 3600

HSTS_VALUE = "max-age=31536000; includeSubDomains; preload"

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."

CallNext = Callable[[Request], Awaitable[Response]]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


class LoggingMiddleware(BaseHTTPMiddleware):
    """One structured log line per request: method, path, status, duration, size, client."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000.0
        status = response.status_code
        log = logger.error if status >= 500 else logger.warning if status >= 400 else logger.info
        log(
            "http_request",
            method=request.method,
            path=request.url.path,
            query=request.url.query or None,
            status=status,
            duration_ms=round(duration_ms, 2),
            bytes=int(response.headers.get("content-length") or 0),
            client=client_key(request),
            user_agent=request.headers.get("user-agent"),
            request_id=_request_id(request),
        )
        return response


class RecoveryMiddleware(BaseHTTPMiddleware):
    """Turn any exception escaping the inner stack into a generic 500 envelope."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "unhandled_exception",
                error=str(e),
                error_type=type(e).__name__,
                method=request.method,
                path=request.url.path,
                request_id=_request_id(request),
            )
            headers = {REQUEST_ID_HEADER: _request_id(request)} if _request_id(request) else None
            return responses.error(
                500,
                "An unexpected error occurred",
                type_="INTERNAL_ERROR",
                headers=headers,
            )


def build_csp(connect_sources: Iterable[str]) -> str:
    connect = " ".join(["'self'", *connect_sources])
    return (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "font-src 'self'; "
        f"connect-src {connect}; "
        "frame-ancestors 'none'; "
        "base-uri 'self'; "
        "form-action 'self'"
    )


def _is_https(request: Request) -> bool:
    if request.url.scheme == "https":
        return True
    return request.headers.get("x-forwarded-proto", "").split(",")[0].strip().lower() == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, connect_sources: Iterable[str] = (), enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.csp = build_csp(connect_sources)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        response = await call_next(request)
        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["X-XSS-Protection"] = "1; mode=block"
        headers["X-Permitted-Cross-Domain-Policies"] = "none"
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        headers["Content-Security-Policy"] = self.csp
        if self.enable_hsts and _is_https(request):
            headers["Strict-Transport-Security"] = HSTS_VALUE
        return response


def is_origin_allowed(origin: str, allowed_origins: Iterable[str]) -> bool:
    """
    Exact match, or "*.domain" wildcard matching any subdomain of domain.
    The wildcard requires a label boundary: "*.example.com" does not match "evilexample.com".
    """
    host = (urlparse(origin).hostname or "").lower()
    for allowed in allowed_origins:
        if origin == allowed:
            return True
        if allowed.startswith("*."):
            domain = allowed[2:].lower()
            if domain and host.endswith("." + domain):
                return True
    return False


class CORSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, allowed_origins: Iterable[str] = ()) -> None:
        super().__init__(app)
        self.allowed_origins = list(allowed_origins)

    def _apply(self, request: Request, response: Response) -> Response:
        origin = request.headers.get("origin")
        headers = response.headers
        if origin and is_origin_allowed(origin, self.allowed_origins):
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        headers["Access-Control-Allow-Methods"] = ", ".join(CORS_ALLOWED_METHODS)
        headers["Access-Control-Allow-Headers"] = ", ".join(CORS_ALLOWED_HEADERS)
        headers["Access-Control-Expose-Headers"] = REQUEST_ID_HEADER
        headers["Access-Control-Max-Age"] = str(CORS_MAX_AGE)
        headers["Access-Control-Allow-Credentials"] = "true"
        return response

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        if request.method == "OPTIONS":
            return self._apply(request, Response(status_code=204))
        response = await call_next(request)
        return self._apply(request, response)


def sanitize_request_id(raw: str | None) -> str | None:
    value = (raw or "").strip()
    return value if _REQUEST_ID_RE.match(value) else None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse a sane inbound X-Request-ID or mint a uuid4; expose it on request.state and the response."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request_id = sanitize_request_id(request.headers.get(REQUEST_ID_HEADER)) or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: RateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        key = client_key(request)
        if not self.limiter.allow(key):
            retry_after = self.limiter.retry_after(key)
            logger.warning(
                "rate_limit_exceeded",
                client=key,
                method=request.method,
                path=request.url.path,
                request_id=_request_id(request),
            )
            return responses.app_error(RateLimitError(RATE_LIMIT_MESSAGE), headers={"Retry-After": str(retry_after)})
        return await call_next(request)


def install_middleware(app: FastAPI, settings: Settings, limiter: RateLimiter) -> None:
    """Add the pipeline innermost-first so the final order is Logging outermost."""
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(CORSMiddleware, allowed_origins=settings.origins())
    app.add_middleware(
        SecurityHeadersMiddleware,
        connect_sources=settings.connect_sources(),
        enable_hsts=settings.enable_hsts,
    )
    app.add_middleware(RecoveryMiddleware)
    app.add_middleware(LoggingMiddleware)
