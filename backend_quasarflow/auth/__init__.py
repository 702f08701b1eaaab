"""Authentication and request throttling: JWT tokens, credentials, per-client rate limiting."""

from backend_quasarflow.auth.credentials import CredentialStore
from backend_quasarflow.auth.rate_limiter import RateLimiter, TokenBucket, client_key
from backend_quasarflow.auth.tokens import Identity, TokenClaims, TokenService

__all__ = [
    "CredentialStore",
    "Identity",
    "RateLimiter",
    "TokenBucket",
    "TokenClaims",
    "TokenService",
    "client_key",
]
