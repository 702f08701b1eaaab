"""
Custodial wallet service: create wallets, read balances and history from Horizon,
fund via Friendbot, and send payments signed with the stored (encrypted) seed.
"""

from __future__ import annotations

import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from stellar_sdk import Keypair

from backend_quasarflow.config.env import MAINNET, NETWORKS
from backend_quasarflow.core.exceptions import ValidationError
from backend_quasarflow.crypto import AESEncryptor
from backend_quasarflow.database import WalletRecord, WalletRepository
from backend_quasarflow.logging import get_logger
from backend_quasarflow.ownership.signature import is_valid_public_key
from backend_quasarflow.stellar import FriendbotResult, HorizonClient

logger = get_logger(__name__)

MAX_TEXT_MEMO_BYTES = 28
MAX_AMOUNT_DECIMALS = 7


def parse_wallet_id(wallet_id: str) -> str:
    try:
        return str(uuid.UUID(wallet_id))
    except (ValueError, AttributeError, TypeError) as e:
        raise ValidationError("Invalid wallet ID format", "wallet id must be a UUID") from e


def validate_amount(amount: str) -> str:
    """Positive decimal with at most 7 fractional digits (Stellar stroop precision)."""
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError) as e:
        raise ValidationError("Invalid amount", "amount must be a decimal string") from e
    if not value.is_finite() or value <= 0:
        raise ValidationError("Invalid amount", "amount must be positive")
    if -value.as_tuple().exponent > MAX_AMOUNT_DECIMALS:
        raise ValidationError("Invalid amount", f"at most {MAX_AMOUNT_DECIMALS} decimal places")
    return amount


class WalletService:
    def __init__(
        self,
        repository: WalletRepository,
        encryptor: AESEncryptor,
        horizons: Mapping[str, HorizonClient],
        friendbot_url: str | None,
    ) -> None:
        self.repository = repository
        self.encryptor = encryptor
        self.horizons = horizons
        self.friendbot_url = friendbot_url

    def _horizon(self, network: str) -> HorizonClient:
        try:
            return self.horizons[network]
        except KeyError as e:
            raise ValidationError("Unsupported network", network) from e

    def create(self, network: str) -> WalletRecord:
        if network not in NETWORKS:
            raise ValidationError("Invalid network", "network must be 'testnet' or 'mainnet'")
        keypair = Keypair.random()
        encrypted = self.encryptor.encrypt(keypair.secret)
        record = self.repository.create(keypair.public_key, encrypted, network)
        logger.info("wallet_created", wallet_id=record.id, public_key=record.public_key, network=network)
        return record

    def get(self, wallet_id: str) -> WalletRecord:
        return self.repository.find_by_id(parse_wallet_id(wallet_id))

    def list(self, limit: int, offset: int) -> tuple[list[WalletRecord], int]:
        return self.repository.list(limit, offset), self.repository.count()

    def balance(self, wallet_id: str) -> dict[str, Any]:
        wallet = self.get(wallet_id)
        balances = self._horizon(wallet.network).get_account_balances(wallet.public_key)
        return {
            "wallet_id": wallet.id,
            "public_key": wallet.public_key,
            "network": wallet.network,
            "balances": [b.to_dict() for b in balances],
        }

    def history(self, wallet_id: str, limit: int, order: str = "desc", cursor: str | None = None) -> dict[str, Any]:
        wallet = self.get(wallet_id)
        order = order if order in ("asc", "desc") else "desc"
        records = self._horizon(wallet.network).get_transactions(wallet.public_key, limit, order, cursor)
        has_next = len(records) == limit
        logger.info(
            "wallet_history_fetched",
            wallet_id=wallet.id,
            count=len(records),
            order=order,
        )
        return {
            "wallet_id": wallet.id,
            "public_key": wallet.public_key,
            "network": wallet.network,
            "transactions": [r.to_dict() for r in records],
            "has_next": has_next,
            "next_cursor": records[-1].paging_token if has_next and records else None,
        }

    def fund(self, wallet_id: str, amount: str | None = None) -> dict[str, Any]:
        wallet = self.get(wallet_id)
        if amount is not None:
            validate_amount(amount)
        if wallet.network == MAINNET or not self.friendbot_url:
            result = FriendbotResult(False, "Friendbot is not available on mainnet. Please fund this wallet manually.")
        else:
            logger.info("wallet_funding", wallet_id=wallet.id, public_key=wallet.public_key)
            result = self._horizon(wallet.network).fund(self.friendbot_url, wallet.public_key, amount)
        return {
            "wallet_id": wallet.id,
            "public_key": wallet.public_key,
            "network": wallet.network,
            "success": result.success,
            "message": result.message,
            "transaction_id": result.transaction_hash,
        }

    def send_payment(
        self,
        wallet_id: str,
        to_address: str,
        amount: str,
        asset_code: str | None = None,
        asset_issuer: str | None = None,
        memo: str | None = None,
    ) -> dict[str, Any]:
        if not is_valid_public_key(to_address):
            raise ValidationError("Invalid destination address", "to_address must be a Stellar public key")
        validate_amount(amount)
        if asset_issuer and not is_valid_public_key(asset_issuer):
            raise ValidationError("Invalid asset issuer", "asset_issuer must be a Stellar public key")
        if memo and len(memo.encode("utf-8")) > MAX_TEXT_MEMO_BYTES:
            raise ValidationError("Memo too long", f"text memo is limited to {MAX_TEXT_MEMO_BYTES} bytes")

        wallet = self.get(wallet_id)
        seed = self.encryptor.decrypt(wallet.encrypted_key)
        logger.info(
            "payment_submitting",
            wallet_id=wallet.id,
            source=wallet.public_key,
            destination=to_address,
            amount=amount,
            asset=asset_code or "XLM",
        )
        resp = self._horizon(wallet.network).submit_payment(
            seed, to_address, amount, asset_code=asset_code, asset_issuer=asset_issuer, memo=memo
        )
        native = not asset_code or asset_code.upper() == "XLM"
        logger.info("payment_submitted", wallet_id=wallet.id, hash=resp.get("hash"), ledger=resp.get("ledger"))
        return {
            "transaction_hash": resp.get("hash"),
            "from_address": wallet.public_key,
            "to_address": to_address,
            "amount": amount,
            "asset_code": "XLM" if native else asset_code,
            "asset_issuer": None if native else asset_issuer,
            "memo": memo,
            "network": wallet.network,
            "ledger": resp.get("ledger"),
            "success": bool(resp.get("successful", True)),
        }
