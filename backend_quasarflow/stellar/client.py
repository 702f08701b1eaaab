"""
Horizon client over stellar-sdk.

Every call carries the configured request timeout. Horizon 404s surface as
NotFoundError; any other Horizon or transport failure as BlockchainError (502).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests
from stellar_sdk import Asset, Keypair, Server, TransactionBuilder
from stellar_sdk.client.requests_client import RequestsClient
from stellar_sdk.exceptions import BaseHorizonError, SdkError
from stellar_sdk.exceptions import NotFoundError as HorizonNotFoundError

from backend_quasarflow.core.exceptions import BlockchainError, NotFoundError, ValidationError
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

BASE_FEE = 100
TX_TIMEOUT_SEC = 30
MAX_HISTORY_LIMIT = 200
DEFAULT_HISTORY_LIMIT = 10
DEFAULT_FRIENDBOT_AMOUNT = "10000"


def parse_horizon_time(value: str | None) -> datetime | None:
    """Horizon timestamps are RFC 3339 UTC, e.g. '2024-05-01T12:00:00Z'."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00")).astimezone(timezone.utc)


@dataclass(frozen=True)
class Balance:
    asset_type: str
    balance: str
    asset_code: str = "XLM"
    asset_issuer: str | None = None
    limit: str | None = None

    @classmethod
    def from_horizon(cls, raw: dict[str, Any]) -> "Balance":
        asset_type = raw.get("asset_type", "")
        return cls(
            asset_type=asset_type,
            balance=raw.get("balance", "0"),
            asset_code="XLM" if asset_type == "native" else raw.get("asset_code", ""),
            asset_issuer=raw.get("asset_issuer"),
            limit=raw.get("limit"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class TransactionInfo:
    hash: str
    source_account: str
    created_at: datetime
    ledger: int | None = None
    successful: bool = True
    operation_count: int = 0
    fee_charged: str | None = None
    memo_type: str | None = None
    memo: str | None = None
    paging_token: str | None = None

    @classmethod
    def from_horizon(cls, raw: dict[str, Any]) -> "TransactionInfo":
        return cls(
            hash=raw.get("hash", ""),
            source_account=raw.get("source_account", ""),
            created_at=parse_horizon_time(raw.get("created_at")) or datetime.fromtimestamp(0, timezone.utc),
            ledger=raw.get("ledger"),
            successful=bool(raw.get("successful", True)),
            operation_count=int(raw.get("operation_count") or 0),
            fee_charged=str(raw["fee_charged"]) if raw.get("fee_charged") is not None else None,
            memo_type=raw.get("memo_type"),
            memo=raw.get("memo"),
            paging_token=raw.get("paging_token"),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class AccountInfo:
    account_id: str
    sequence: str
    last_modified_time: datetime | None
    balances: list[Balance] = field(default_factory=list)

    @classmethod
    def from_horizon(cls, raw: dict[str, Any]) -> "AccountInfo":
        return cls(
            account_id=raw.get("account_id") or raw.get("id", ""),
            sequence=str(raw.get("sequence", "")),
            last_modified_time=parse_horizon_time(raw.get("last_modified_time")),
            balances=[Balance.from_horizon(b) for b in raw.get("balances", [])],
        )


@dataclass(frozen=True)
class FriendbotResult:
    success: bool
    message: str
    status_code: int | None = None
    transaction_hash: str | None = None


class HorizonClient:
    def __init__(self, horizon_url: str, network_passphrase: str, timeout_sec: float = 15.0) -> None:
        self.horizon_url = horizon_url
        self.network_passphrase = network_passphrase
        self.timeout_sec = timeout_sec
        self._server = Server(
            horizon_url=horizon_url,
            client=RequestsClient(request_timeout=timeout_sec, post_timeout=timeout_sec),
        )

    def _call(self, what: str, builder) -> dict[str, Any]:
        try:
            return builder.call()
        except HorizonNotFoundError as e:
            raise NotFoundError(f"{what} not found", str(e)) from e
        except BaseHorizonError as e:
            logger.warning("horizon_error", what=what, status=e.status, title=e.title)
            raise BlockchainError(f"Horizon request failed: {what}", e.detail or e.title) from e
        except SdkError as e:
            logger.warning("horizon_unreachable", what=what, error=str(e))
            raise BlockchainError(f"Horizon request failed: {what}", str(e)) from e

    def get_account(self, public_key: str) -> AccountInfo:
        raw = self._call("account", self._server.accounts().account_id(public_key))
        return AccountInfo.from_horizon(raw)

    def get_account_balances(self, public_key: str) -> list[Balance]:
        return self.get_account(public_key).balances

    def get_transaction(self, transaction_hash: str) -> TransactionInfo:
        raw = self._call("transaction", self._server.transactions().transaction(transaction_hash))
        return TransactionInfo.from_horizon(raw)

    def get_transactions(
        self,
        public_key: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
        order: str = "desc",
        cursor: str | None = None,
    ) -> list[TransactionInfo]:
        """Most recent transactions for an account; limit clamped to 1..200."""
        limit = max(1, min(int(limit or DEFAULT_HISTORY_LIMIT), MAX_HISTORY_LIMIT))
        builder = self._server.transactions().for_account(public_key).limit(limit).order(desc=order != "asc")
        if cursor:
            builder = builder.cursor(cursor)
        raw = self._call("transactions", builder)
        records = raw.get("_embedded", {}).get("records", [])
        return [TransactionInfo.from_horizon(r) for r in records]

    def submit_payment(
        self,
        secret_seed: str,
        destination: str,
        amount: str,
        asset_code: str | None = None,
        asset_issuer: str | None = None,
        memo: str | None = None,
    ) -> dict[str, Any]:
        """Build, sign, and submit a payment. Returns the Horizon response (contains 'hash')."""
        source_kp = Keypair.from_secret(secret_seed)
        if not asset_code or asset_code.upper() == "XLM":
            asset = Asset.native()
        else:
            if not asset_issuer:
                raise ValidationError("Asset issuer is required for non-native assets")
            asset = Asset(asset_code, asset_issuer)
        try:
            source_account = self._server.load_account(source_kp.public_key)
            builder = (
                TransactionBuilder(
                    source_account=source_account,
                    network_passphrase=self.network_passphrase,
                    base_fee=BASE_FEE,
                )
                .append_payment_op(destination=destination, asset=asset, amount=str(amount))
                .set_timeout(TX_TIMEOUT_SEC)
            )
            if memo:
                builder.add_text_memo(memo)
            tx = builder.build()
            tx.sign(source_kp)
            return self._server.submit_transaction(tx)
        except HorizonNotFoundError as e:
            raise NotFoundError("Source account not found on Stellar network", str(e)) from e
        except BaseHorizonError as e:
            logger.warning("payment_rejected", status=e.status, title=e.title, extras=e.extras)
            raise BlockchainError("Transaction failed", e.detail or e.title) from e
        except SdkError as e:
            logger.warning("payment_failed", error=str(e))
            raise BlockchainError("Failed to submit transaction", str(e)) from e

    def fund(self, friendbot_url: str, public_key: str, amount: str | None = None) -> FriendbotResult:
        """Ask Friendbot to fund public_key. Non-200 answers are reported, not raised."""
        params = {"addr": public_key}
        if amount:
            params["amount"] = amount
        try:
            resp = requests.get(friendbot_url, params=params, timeout=self.timeout_sec)
        except requests.RequestException as e:
            logger.error("friendbot_unreachable", error=str(e))
            raise BlockchainError("Failed to fund wallet", str(e)) from e
        if resp.status_code != 200:
            messages = {
                400: "Invalid wallet address or request parameters",
                404: "Friendbot service not available",
                429: "Rate limit exceeded. Please try again later",
            }
            message = messages.get(resp.status_code, f"Friendbot request failed with status: {resp.status_code}")
            logger.warning("friendbot_request_failed", status_code=resp.status_code)
            return FriendbotResult(False, message, status_code=resp.status_code)
        tx_hash = None
        if "json" in resp.headers.get("content-type", ""):
            tx_hash = resp.json().get("hash")
        funded = amount or DEFAULT_FRIENDBOT_AMOUNT
        return FriendbotResult(True, f"Wallet successfully funded with {funded} XLM", 200, tx_hash)
