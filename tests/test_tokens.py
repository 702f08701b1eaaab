"""
Tests for JWT issuing and validation, including algorithm confusion and expiry.
"""

from __future__ import annotations

import base64
import json
import time

import jwt
import pytest

from backend_quasarflow.auth import TokenService
from backend_quasarflow.core.exceptions import TokenError, TokenErrorKind
from conftest import TEST_JWT_SECRET

ISSUER = "quasarflow-api"


def _b64url(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _claims(**overrides) -> dict:
    now = int(time.time())
    claims = {"user_id": "alice", "role": "user", "iss": ISSUER, "sub": "alice", "iat": now, "nbf": now, "exp": now + 600}
    claims.update(overrides)
    return claims


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_JWT_SECRET, ISSUER, 3600)


def _kind(tokens: TokenService, token: str) -> TokenErrorKind:
    with pytest.raises(TokenError) as exc_info:
        tokens.validate_token(token)
    return exc_info.value.kind


def test_generate_and_validate(tokens):
    """Issued token validates and carries identity, role and timing claims."""
    token = tokens.generate_token("alice", "admin")
    claims = tokens.validate_token(token)
    assert claims.user_id == "alice"
    assert claims.subject == "alice"
    assert claims.role == "admin"
    assert claims.issuer == ISSUER
    assert claims.expires_at - claims.issued_at == 3600
    assert claims.identity.role == "admin"
    header = jwt.get_unverified_header(token)
    assert header["alg"] == "HS256"


def test_other_hmac_algorithms_accepted(tokens):
    """Any HMAC-family algorithm signed with the secret is accepted."""
    for alg in ("HS384", "HS512"):
        token = jwt.encode(_claims(), TEST_JWT_SECRET, algorithm=alg)
        assert tokens.validate_token(token).user_id == "alice"


def test_alg_none_rejected(tokens):
    """Unsigned token is rejected on its header before the key is used."""
    token = f"{_b64url({'alg': 'none', 'typ': 'JWT'})}.{_b64url(_claims())}."
    assert _kind(tokens, token) == TokenErrorKind.WRONG_ALGORITHM


def test_asymmetric_alg_rejected(tokens):
    """RS256 header is rejected even though the payload is well-formed."""
    token = f"{_b64url({'alg': 'RS256', 'typ': 'JWT'})}.{_b64url(_claims())}.c2lnbmF0dXJl"
    assert _kind(tokens, token) == TokenErrorKind.WRONG_ALGORITHM


def test_malformed_token(tokens):
    assert _kind(tokens, "not-a-token") == TokenErrorKind.MALFORMED
    assert _kind(tokens, "") == TokenErrorKind.MALFORMED


def test_wrong_secret(tokens):
    token = jwt.encode(_claims(), "another-secret-" + "x" * 64, algorithm="HS256")
    assert _kind(tokens, token) == TokenErrorKind.INVALID_SIGNATURE


def test_wrong_issuer(tokens):
    other = TokenService(TEST_JWT_SECRET, "someone-else", 3600)
    assert _kind(tokens, other.generate_token("alice", "user")) == TokenErrorKind.INVALID_ISSUER


def test_expired(tokens):
    """Token issued two hours ago with a one hour lifetime is expired."""
    past = TokenService(TEST_JWT_SECRET, ISSUER, 3600, clock=lambda: time.time() - 7200)
    assert _kind(tokens, past.generate_token("alice", "user")) == TokenErrorKind.EXPIRED


def test_missing_claims(tokens):
    claims = _claims()
    del claims["role"]
    token = jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")
    assert _kind(tokens, token) == TokenErrorKind.INVALID_CLAIMS


def test_token_error_is_generic_401(tokens):
    """Every token failure surfaces as the same 401 message."""
    with pytest.raises(TokenError) as exc_info:
        tokens.validate_token("not-a-token")
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid or expired token"
    assert "detail" not in exc_info.value.to_dict()


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        TokenService("", ISSUER, 60)
