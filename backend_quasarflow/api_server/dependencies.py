"""
FastAPI dependencies: application services and route-scoped authentication.

Services are built once in create_app() and stored on app.state; handlers
receive them (and the caller's Identity) through Depends().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping

from fastapi import Depends, Request

from backend_quasarflow.auth import CredentialStore, Identity, RateLimiter, TokenService
from backend_quasarflow.config import Settings
from backend_quasarflow.core.exceptions import ForbiddenError, TokenError, UnauthorizedError
from backend_quasarflow.database import Database
from backend_quasarflow.logging import get_logger
from backend_quasarflow.ownership import ChallengeGenerator, OwnershipService
from backend_quasarflow.stellar import HorizonClient
from backend_quasarflow.wallets import WalletService

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass
class Services:
    settings: Settings
    database: Database
    tokens: TokenService
    credentials: CredentialStore
    rate_limiter: RateLimiter
    challenges: ChallengeGenerator
    ownership: OwnershipService
    horizons: Mapping[str, HorizonClient]
    wallets: WalletService

    @property
    def horizon(self) -> HorizonClient:
        """Client for the configured STELLAR_NETWORK."""
        return self.horizons[self.settings.stellar_network]


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_identity(request: Request, services: Services = Depends(get_services)) -> Identity:
    """Validate the Bearer token. 401 with a generic message on any failure."""
    header = request.headers.get("authorization")
    if not header:
        raise UnauthorizedError("Authorization header is required")
    if not header.startswith(BEARER_PREFIX):
        raise UnauthorizedError("Authorization header must use the Bearer scheme")
    token = header[len(BEARER_PREFIX):].strip()
    try:
        claims = services.tokens.validate_token(token)
    except TokenError as e:
        logger.warning(
            "token_rejected",
            reason=e.kind.value,
            path=request.url.path,
            request_id=getattr(request.state, "request_id", None),
        )
        raise UnauthorizedError("Invalid or expired token") from e
    identity = claims.identity
    request.state.identity = identity
    return identity


def require_role(role: str) -> Callable[..., Identity]:
    """Dependency factory: authenticated caller whose role equals role, else 403."""

    def _dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role != role:
            logger.warning("role_forbidden", user_id=identity.subject, role=identity.role, required=role)
            raise ForbiddenError("Insufficient permissions")
        return identity

    return _dependency
