"""
Application-level exceptions.

Every error surfaced to API clients is an AppError with a stable type code,
an HTTP status and a human-readable message. Exception handlers in
api_server.errors render them into the response envelope.
"""

from __future__ import annotations

import enum
from typing import Any


class AppError(Exception):
    """Base application error: type code, message, optional detail and HTTP status."""

    type: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.type}: {self.message} ({self.detail})"
        return f"{self.type}: {self.message}"

    @property
    def exposes_detail(self) -> bool:
        """Auth failures and server-side errors never leak detail to clients."""
        return self.status_code not in (401, 403) and self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.detail and self.exposes_detail:
            body["detail"] = self.detail
        return body


class ValidationError(AppError):
    type = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(AppError):
    type = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(AppError):
    type = "FORBIDDEN"
    status_code = 403


class NotFoundError(AppError):
    type = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    type = "CONFLICT"
    status_code = 409


class RateLimitError(AppError):
    type = "RATE_LIMIT_EXCEEDED"
    status_code = 429


class InternalError(AppError):
    type = "INTERNAL_ERROR"
    status_code = 500


class DatabaseError(AppError):
    type = "DATABASE_ERROR"
    status_code = 500


class CryptoError(AppError):
    type = "CRYPTO_ERROR"
    status_code = 500


class BlockchainError(AppError):
    """Horizon / Friendbot failure. Surfaces as 502 Bad Gateway."""

    type = "BLOCKCHAIN_ERROR"
    status_code = 502


class TokenErrorKind(str, enum.Enum):
    MALFORMED = "malformed"
    WRONG_ALGORITHM = "wrong_algorithm"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_ISSUER = "invalid_issuer"
    EXPIRED = "expired"
    INVALID_CLAIMS = "invalid_claims"


class TokenError(UnauthorizedError):
    """Bearer token rejected. kind says why; clients only ever see a generic message."""

    def __init__(self, kind: TokenErrorKind, detail: str | None = None) -> None:
        super().__init__("Invalid or expired token", detail)
        self.kind = kind
