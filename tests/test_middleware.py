"""
Tests for the HTTP middleware pipeline: order, security headers, CORS, request IDs,
panic recovery, rate limiting and request logging.
"""

from __future__ import annotations

from unittest.mock import patch

from fastapi.testclient import TestClient

from backend_quasarflow.api_server.middleware import is_origin_allowed, sanitize_request_id
from backend_quasarflow.api_server.server import create_app
from conftest import make_settings


def test_middleware_order(app):
    """Logging is outermost, rate limiting innermost."""
    names = [m.cls.__name__ for m in app.user_middleware]
    assert names == [
        "LoggingMiddleware",
        "RecoveryMiddleware",
        "SecurityHeadersMiddleware",
        "CORSMiddleware",
        "RequestIDMiddleware",
        "RateLimitMiddleware",
    ]


def test_security_headers(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-XSS-Protection"] == "1; mode=block"
    assert r.headers["X-Permitted-Cross-Domain-Policies"] == "none"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    csp = r.headers["Content-Security-Policy"]
    assert "connect-src 'self' https://horizon-testnet.stellar.org" in csp
    assert "frame-ancestors 'none'" in csp
    assert "Strict-Transport-Security" not in r.headers


def test_hsts_only_in_production_over_https(tmp_path, fake_horizon):
    app = create_app(make_settings(tmp_path, env="production"), horizons={"testnet": fake_horizon})
    with TestClient(app) as client:
        plain = client.get("/health")
        secure = client.get("/health", headers={"X-Forwarded-Proto": "https"})
    assert "Strict-Transport-Security" not in plain.headers
    assert secure.headers["Strict-Transport-Security"].startswith("max-age=31536000")


def test_cors_preflight_short_circuits(client, services):
    """OPTIONS returns 204 before request IDs or rate limiting run."""
    r = client.options(
        "/api/v1/wallets",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 204
    assert r.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
    assert r.headers["Access-Control-Allow-Credentials"] == "true"
    assert r.headers["Access-Control-Max-Age"] == "3600"
    assert r.headers["Access-Control-Expose-Headers"] == "X-Request-ID"
    assert "X-Request-ID" not in r.headers
    assert len(services.rate_limiter) == 0


def test_cors_disallowed_origin(client):
    r = client.get("/health", headers={"Origin": "https://evil.test"})
    assert r.status_code == 200
    assert "Access-Control-Allow-Origin" not in r.headers


def test_cors_wildcard_subdomain(client):
    r = client.get("/health", headers={"Origin": "https://app.example.com"})
    assert r.headers["Access-Control-Allow-Origin"] == "https://app.example.com"


def test_is_origin_allowed_wildcard_needs_label_boundary():
    allowed = ["http://localhost:3000", "*.example.com"]
    assert is_origin_allowed("http://localhost:3000", allowed) is True
    assert is_origin_allowed("https://a.b.example.com", allowed) is True
    assert is_origin_allowed("https://evilexample.com", allowed) is False
    assert is_origin_allowed("https://example.com", allowed) is False
    assert is_origin_allowed("http://localhost:3001", allowed) is False


def test_request_id_generated_and_echoed(client):
    generated = client.get("/health").headers["X-Request-ID"]
    assert len(generated) == 36
    echoed = client.get("/health", headers={"X-Request-ID": "req-abc-123"})
    assert echoed.headers["X-Request-ID"] == "req-abc-123"
    replaced = client.get("/health", headers={"X-Request-ID": "x" * 200})
    assert replaced.headers["X-Request-ID"] != "x" * 200


def test_sanitize_request_id():
    assert sanitize_request_id("abc") == "abc"
    assert sanitize_request_id("has space") is None
    assert sanitize_request_id("") is None
    assert sanitize_request_id(None) is None


def test_recovery_returns_generic_500(app):
    """Unhandled exception becomes the 500 envelope and is still logged with status 500."""

    def boom():
        raise RuntimeError("kaboom")

    app.add_api_route("/boom", boom, methods=["GET"])
    with patch("backend_quasarflow.api_server.middleware.logger") as mock_logger:
        with TestClient(app) as client:
            r = client.get("/boom")
    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"]["type"] == "INTERNAL_ERROR"
    assert body["error"]["message"] == "An unexpected error occurred"
    assert "kaboom" not in r.text
    assert mock_logger.exception.called
    request_logs = [c for c in mock_logger.error.call_args_list if c.args and c.args[0] == "http_request"]
    assert request_logs and request_logs[0].kwargs["status"] == 500


def test_rate_limit_returns_429(tmp_path, fake_horizon):
    settings = make_settings(tmp_path, rate_limit_burst=2, rate_limit_requests_per_second=0.001)
    app = create_app(settings, horizons={"testnet": fake_horizon})
    with TestClient(app) as client:
        codes = [client.get("/health").status_code for _ in range(3)]
        r = client.get("/health")
    assert codes == [200, 200, 429]
    assert r.status_code == 429
    assert r.json() == {
        "success": False,
        "error": {"type": "RATE_LIMIT_EXCEEDED", "message": "Rate limit exceeded. Please try again later."},
    }
    assert int(r.headers["Retry-After"]) >= 1
    assert r.headers["X-Request-ID"]


def test_request_logged_with_request_id(client):
    with patch("backend_quasarflow.api_server.middleware.logger") as mock_logger:
        r = client.get("/health?verbose=1")
    calls = [c for c in mock_logger.info.call_args_list if c.args and c.args[0] == "http_request"]
    assert len(calls) == 1
    fields = calls[0].kwargs
    assert fields["method"] == "GET"
    assert fields["path"] == "/health"
    assert fields["query"] == "verbose=1"
    assert fields["status"] == 200
    assert fields["request_id"] == r.headers["X-Request-ID"]
    assert fields["bytes"] > 0
