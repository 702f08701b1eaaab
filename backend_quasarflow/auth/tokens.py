"""
JWT bearer tokens (HMAC-signed).

Validation order matters: the header algorithm is checked before the key is
used, so tokens declaring "none" or an asymmetric algorithm are rejected without
ever reaching signature verification.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import jwt

from backend_quasarflow.core.exceptions import TokenError, TokenErrorKind
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

ALLOWED_ALGORITHMS = ("HS256", "HS384", "HS512")
SIGNING_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("sub", "user_id", "role", "iss", "exp")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, passed explicitly to route handlers."""

    subject: str
    role: str

    def to_dict(self) -> dict[str, str]:
        return {"user_id": self.subject, "role": self.role}


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: str
    issuer: str
    subject: str
    issued_at: int
    expires_at: int
    not_before: int | None = None

    @property
    def identity(self) -> Identity:
        return Identity(subject=self.subject, role=self.role)


class TokenService:
    """Issues and validates bearer tokens for one secret and issuer."""

    def __init__(
        self,
        secret: str,
        issuer: str,
        duration_sec: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret
        self.issuer = issuer
        self.duration_sec = float(duration_sec)
        self._clock = clock

    def generate_token(self, identity: str, role: str) -> str:
        now = int(self._clock())
        payload: dict[str, Any] = {
            "user_id": identity,
            "role": role,
            "iss": self.issuer,
            "sub": identity,
            "iat": now,
            "nbf": now,
            "exp": now + int(self.duration_sec),
        }
        return jwt.encode(payload, self._secret, algorithm=SIGNING_ALGORITHM)

    def validate_token(self, token: str) -> TokenClaims:
        """Return the token's claims or raise TokenError with the failure kind."""
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as e:
            raise TokenError(TokenErrorKind.MALFORMED, str(e)) from e

        alg = header.get("alg")
        if alg not in ALLOWED_ALGORITHMS:
            logger.warning("token_algorithm_rejected", alg=alg)
            raise TokenError(TokenErrorKind.WRONG_ALGORITHM, f"unexpected signing method: {alg}")

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[alg],
                options={
                    "verify_exp": False,
                    "verify_iss": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                    "verify_aud": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise TokenError(TokenErrorKind.INVALID_SIGNATURE, str(e)) from e
        except jwt.InvalidTokenError as e:
            raise TokenError(TokenErrorKind.MALFORMED, str(e)) from e

        missing = [name for name in REQUIRED_CLAIMS if name not in claims]
        if missing:
            raise TokenError(TokenErrorKind.INVALID_CLAIMS, f"missing claims: {', '.join(missing)}")

        if claims["iss"] != self.issuer:
            raise TokenError(TokenErrorKind.INVALID_ISSUER, "invalid token issuer")

        now = self._clock()
        try:
            expires_at = int(claims["exp"])
            issued_at = int(claims.get("iat") or 0)
            not_before = int(claims["nbf"]) if claims.get("nbf") is not None else None
        except (TypeError, ValueError) as e:
            raise TokenError(TokenErrorKind.INVALID_CLAIMS, "numeric claims expected") from e
        if expires_at < now:
            raise TokenError(TokenErrorKind.EXPIRED, "token has expired")
        if not_before is not None and not_before > now:
            raise TokenError(TokenErrorKind.INVALID_CLAIMS, "token not yet valid")

        user_id, role, subject = claims["user_id"], claims["role"], claims["sub"]
        if not all(isinstance(v, str) and v for v in (user_id, role, subject)):
            raise TokenError(TokenErrorKind.INVALID_CLAIMS, "user_id, role and sub must be non-empty strings")

        return TokenClaims(
            user_id=user_id,
            role=role,
            issuer=claims["iss"],
            subject=subject,
            issued_at=issued_at,
            expires_at=expires_at,
            not_before=not_before,
        )
