"""
Account routes: ownership challenge, the three ownership verification strategies,
and live balance / history lookups for arbitrary Stellar accounts.

All routes require a Bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from backend_quasarflow.api_server import responses
from backend_quasarflow.api_server.dependencies import Services, get_services, require_identity
from backend_quasarflow.auth import Identity
from backend_quasarflow.core.exceptions import ValidationError
from backend_quasarflow.logging import get_logger
from backend_quasarflow.ownership import VerificationResult, is_valid_public_key
from backend_quasarflow.ownership.challenge import INVALID_KEY_MESSAGE
from backend_quasarflow.ownership.signature import decode_signature

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/accounts", tags=["accounts"])


class VerifyOwnershipRequest(BaseModel):
    """POST /verify-ownership body: base64 ed25519 signature over message (normally a challenge)."""

    signature: str = Field(..., min_length=1, description="Base64 signature of message")
    message: str = Field(..., min_length=1, description="Exact message that was signed")

    @field_validator("signature")
    @classmethod
    def _signature_is_base64(cls, value: str) -> str:
        try:
            decode_signature(value)
        except ValidationError as e:
            raise ValueError("signature must be standard base64") from e
        return value


class VerifyTransactionRequest(BaseModel):
    """POST /verify-transaction body."""

    transaction_hash: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$", description="Transaction hash (64 hex chars)")


def _require_public_key(public_key: str) -> None:
    if not is_valid_public_key(public_key):
        raise ValidationError(INVALID_KEY_MESSAGE)


def _verification_response(result: VerificationResult, strategy: str, public_key: str):
    status = 200 if result.is_owner else 401
    logger.info(
        "ownership_verification_completed",
        strategy=strategy,
        public_key=public_key,
        is_owner=result.is_owner,
        status_code=status,
    )
    return responses.success(result.to_dict(), status_code=status)


@router.get("/{public_key}/challenge")
def get_challenge(
    public_key: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    """Issue a challenge for public_key to sign."""
    _require_public_key(public_key)
    output = services.challenges.generate(public_key)
    return responses.success(output.to_dict())


@router.post("/{public_key}/verify-ownership")
def verify_ownership(
    public_key: str,
    body: VerifyOwnershipRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    """200 with is_owner=true when the signature checks out, 401 with is_owner=false otherwise."""
    result = services.ownership.verify_signature(public_key, body.signature, body.message)
    return _verification_response(result, "signature", public_key)


@router.post("/{public_key}/verify-transaction")
def verify_transaction(
    public_key: str,
    body: VerifyTransactionRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    result = services.ownership.verify_by_transaction(public_key, body.transaction_hash)
    return _verification_response(result, "transaction", public_key)


@router.get("/{public_key}/verify-account")
def verify_account(
    public_key: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    _require_public_key(public_key)
    result = services.ownership.verify_by_account(public_key)
    return _verification_response(result, "account", public_key)


@router.get("/{public_key}/balance")
def get_account_balance(
    public_key: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    _require_public_key(public_key)
    balances = services.horizon.get_account_balances(public_key)
    return responses.success(
        {
            "public_key": public_key,
            "network": services.settings.stellar_network,
            "balances": [b.to_dict() for b in balances],
        }
    )


@router.get("/{public_key}/transactions")
def get_account_transactions(
    public_key: str,
    limit: int = Query(10, ge=1, le=200),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    cursor: str | None = Query(None, max_length=64),
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    _require_public_key(public_key)
    records = services.horizon.get_transactions(public_key, limit=limit, order=order, cursor=cursor)
    has_next = len(records) == limit
    return responses.success(
        {
            "public_key": public_key,
            "network": services.settings.stellar_network,
            "transactions": [r.to_dict() for r in records],
            "has_next": has_next,
            "next_cursor": records[-1].paging_token if has_next and records else None,
        }
    )
