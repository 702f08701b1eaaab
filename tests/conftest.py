"""
Pytest fixtures for QuasarFlow tests. Uses a temporary SQLite DB and a fake Horizon client.
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone

import pytest
from stellar_sdk import Keypair

from backend_quasarflow.core.exceptions import NotFoundError
from backend_quasarflow.stellar import AccountInfo, Balance, FriendbotResult, TransactionInfo

TEST_JWT_SECRET = "quasarflow-test-secret-" + "0123456789abcdef" * 4
TEST_ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"


class FakeHorizon:
    """In-memory stand-in for HorizonClient. Unknown hashes/accounts raise NotFoundError."""

    horizon_url = "https://horizon.test"

    def __init__(self) -> None:
        self.transactions: dict[str, TransactionInfo] = {}
        self.accounts: dict[str, AccountInfo] = {}
        self.history: list[TransactionInfo] = []
        self.payments: list[dict] = []
        self.funded: list[tuple[str, str | None]] = []

    def add_transaction(self, tx_hash: str, source: str, age: timedelta) -> TransactionInfo:
        tx = TransactionInfo(
            hash=tx_hash,
            source_account=source,
            created_at=datetime.now(timezone.utc) - age,
            ledger=1000,
            paging_token=f"{tx_hash}-token",
        )
        self.transactions[tx_hash] = tx
        return tx

    def add_account(self, public_key: str, age: timedelta | None, balance: str = "100.0000000") -> AccountInfo:
        modified = datetime.now(timezone.utc) - age if age is not None else None
        account = AccountInfo(
            account_id=public_key,
            sequence="123",
            last_modified_time=modified,
            balances=[Balance(asset_type="native", balance=balance)],
        )
        self.accounts[public_key] = account
        return account

    def get_transaction(self, transaction_hash: str) -> TransactionInfo:
        if transaction_hash not in self.transactions:
            raise NotFoundError("transaction not found", transaction_hash)
        return self.transactions[transaction_hash]

    def get_account(self, public_key: str) -> AccountInfo:
        if public_key not in self.accounts:
            raise NotFoundError("account not found", public_key)
        return self.accounts[public_key]

    def get_account_balances(self, public_key: str) -> list[Balance]:
        return self.get_account(public_key).balances

    def get_transactions(self, public_key, limit=10, order="desc", cursor=None) -> list[TransactionInfo]:
        return self.history[:limit]

    def submit_payment(self, secret_seed, destination, amount, asset_code=None, asset_issuer=None, memo=None):
        self.payments.append(
            {
                "seed": secret_seed,
                "destination": destination,
                "amount": amount,
                "asset_code": asset_code,
                "asset_issuer": asset_issuer,
                "memo": memo,
            }
        )
        return {"hash": "f" * 64, "ledger": 4242, "successful": True}

    def fund(self, friendbot_url: str, public_key: str, amount: str | None = None) -> FriendbotResult:
        self.funded.append((public_key, amount))
        return FriendbotResult(True, f"Wallet successfully funded with {amount or '10000'} XLM", 200, "a" * 64)


def sign_b64(keypair: Keypair, message: str) -> str:
    """Base64 ed25519 signature of message, as a wallet would produce it."""
    return base64.b64encode(keypair.sign(message.encode("utf-8"))).decode("ascii")


def make_settings(tmp_path, **overrides):
    from backend_quasarflow.config import Settings

    values = {
        "env": "development",
        "database_url": f"sqlite:///{tmp_path / 'quasarflow_test.db'}",
        "stellar_network": "testnet",
        "jwt_secret": TEST_JWT_SECRET,
        "encryption_key": TEST_ENCRYPTION_KEY,
        "jwt_expiration": "24h",
        "api_base_url": "http://localhost:8080",
        "allowed_origins": "http://localhost:3000,*.example.com",
        "rate_limit_requests_per_second": 1000,
        "rate_limit_burst": 1000,
        "challenge_strict_mode": True,
        "challenge_ttl": "5m",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def fake_horizon() -> FakeHorizon:
    return FakeHorizon()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def app(settings, fake_horizon):
    from backend_quasarflow.api_server.server import create_app

    return create_app(settings, horizons={"testnet": fake_horizon, "mainnet": fake_horizon})


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app):
    """FastAPI TestClient. Entering the context runs the lifespan (tables, rate limiter sweep)."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_headers(services) -> dict[str, str]:
    token = services.tokens.generate_token("user", "user")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(services) -> dict[str, str]:
    token = services.tokens.generate_token("admin", "admin")
    return {"Authorization": f"Bearer {token}"}
