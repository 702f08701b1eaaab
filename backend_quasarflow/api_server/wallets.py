"""
Custodial wallet routes. Listing all wallets is restricted to the admin role.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from backend_quasarflow.api_server import responses
from backend_quasarflow.api_server.dependencies import Services, get_services, require_identity, require_role
from backend_quasarflow.auth import Identity
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/wallets", tags=["wallets"])

ADMIN_ROLE = "admin"


class CreateWalletRequest(BaseModel):
    network: Literal["testnet", "mainnet"] = Field("testnet", description="Stellar network for the wallet")


class FundWalletRequest(BaseModel):
    amount: str | None = Field(None, max_length=32, description="XLM amount; Friendbot default when omitted")


class SendPaymentRequest(BaseModel):
    to_address: str = Field(..., min_length=56, max_length=56, description="Destination account (G...)")
    amount: str = Field(..., min_length=1, max_length=32, description="Decimal amount, up to 7 places")
    asset_code: str | None = Field(None, min_length=1, max_length=12, description="Asset code; XLM when omitted")
    asset_issuer: str | None = Field(None, min_length=56, max_length=56, description="Issuer for non-native assets")
    memo: str | None = Field(None, max_length=28, description="Text memo")


@router.post("")
def create_wallet(
    body: CreateWalletRequest | None = None,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    network = body.network if body is not None else "testnet"
    record = services.wallets.create(network)
    return responses.success(record.to_dict(), status_code=201)


@router.get("")
def list_wallets(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_role(ADMIN_ROLE)),
    services: Services = Depends(get_services),
):
    records, total = services.wallets.list(limit, offset)
    return responses.success(
        {
            "wallets": [r.to_dict() for r in records],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    )


@router.get("/{wallet_id}")
def get_wallet(
    wallet_id: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    return responses.success(services.wallets.get(wallet_id).to_dict())


@router.get("/{wallet_id}/balance")
def get_wallet_balance(
    wallet_id: str,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    return responses.success(services.wallets.balance(wallet_id))


@router.get("/{wallet_id}/transactions")
def get_wallet_transactions(
    wallet_id: str,
    limit: int = Query(10, ge=1, le=200),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    cursor: str | None = Query(None, max_length=64),
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    return responses.success(services.wallets.history(wallet_id, limit, order, cursor))


@router.post("/{wallet_id}/fund")
def fund_wallet(
    wallet_id: str,
    body: FundWalletRequest | None = None,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    result = services.wallets.fund(wallet_id, body.amount if body is not None else None)
    return responses.success(result)


@router.post("/{wallet_id}/payments")
def send_payment(
    wallet_id: str,
    body: SendPaymentRequest,
    identity: Identity = Depends(require_identity),
    services: Services = Depends(get_services),
):
    logger.info("payment_requested", wallet_id=wallet_id, user_id=identity.subject)
    result = services.wallets.send_payment(
        wallet_id,
        body.to_address,
        body.amount,
        asset_code=body.asset_code,
        asset_issuer=body.asset_issuer,
        memo=body.memo,
    )
    return responses.success(result)
