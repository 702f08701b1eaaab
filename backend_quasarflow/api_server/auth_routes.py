"""Login, logout and current-identity routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from backend_quasarflow.api_server import responses
from backend_quasarflow.api_server.dependencies import Services, get_services, require_identity
from backend_quasarflow.auth import Identity
from backend_quasarflow.auth.rate_limiter import client_key
from backend_quasarflow.core.exceptions import UnauthorizedError
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    """POST /auth/login body."""

    username: str = Field(..., min_length=1, max_length=128, description="Account username")
    password: str = Field(..., min_length=1, max_length=256, description="Account password")


class LoginResponse(BaseModel):
    token: str = Field(..., description="Signed JWT")
    token_type: str = Field("Bearer", description="Always 'Bearer'")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user_id: str = Field(..., description="Authenticated user id")
    role: str = Field(..., description="Role carried in the token")


@router.post("/auth/login")
def login(body: LoginRequest, request: Request, services: Services = Depends(get_services)):
    role = services.credentials.authenticate(body.username, body.password)
    if role is None:
        logger.warning("login_failed", username=body.username, client=client_key(request))
        raise UnauthorizedError("Invalid credentials")
    token = services.tokens.generate_token(body.username, role)
    logger.info("login_succeeded", user_id=body.username, role=role, client=client_key(request))
    payload = LoginResponse(
        token=token,
        token_type="Bearer",
        expires_in=int(services.tokens.duration_sec),
        user_id=body.username,
        role=role,
    )
    return responses.success(payload.model_dump())


@router.post("/auth/logout")
def logout():
    """Tokens are stateless; the client discards its token."""
    logger.info("logout")
    return responses.success({"message": "Logged out successfully"})


@router.get("/api/v1/auth/me")
def me(identity: Identity = Depends(require_identity)):
    return responses.success(identity.to_dict())
