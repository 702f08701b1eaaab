"""
QuasarFlow API Python client example.

Uses the requests library for HTTP and stellar-sdk to sign ownership challenges.
Run: pip install requests stellar-sdk

Usage:
    from docs.python_sdk_example import QuasarFlowClient
    client = QuasarFlowClient("http://localhost:8080")
    client.login("user", "user123")
    result = client.prove_ownership(Keypair.from_secret("S..."))
"""

from __future__ import annotations

import base64
from typing import Any

import requests
from stellar_sdk import Keypair


class QuasarFlowClientError(Exception):
    """Raised when the API returns an error envelope."""

    def __init__(self, message: str, status_code: int | None = None, error_type: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type


class QuasarFlowClient:
    """Client for the QuasarFlow wallet gateway. Any requests-compatible session can be passed in."""

    def __init__(self, base_url: str = "http://localhost:8080", timeout: float = 30.0, session: Any = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: str | None = None
        self._session = session if session is not None else requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        allow_statuses: tuple[int, ...] = (),
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        resp = self._session.request(
            method,
            f"{self.base_url}{path}",
            params=params,
            json=json,
            headers=headers,
            timeout=self.timeout,
        )
        body = resp.json() if "json" in resp.headers.get("content-type", "") else {}
        if resp.status_code >= 400 and resp.status_code not in allow_statuses:
            error = body.get("error") or {}
            raise QuasarFlowClientError(
                error.get("message", resp.text),
                status_code=resp.status_code,
                error_type=error.get("type"),
            )
        return body.get("data", body)

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and keep the bearer token for subsequent calls."""
        data = self._request("POST", "/auth/login", json={"username": username, "password": password})
        self.token = data["token"]
        return data

    def me(self) -> dict[str, Any]:
        return self._request("GET", "/api/v1/auth/me")

    def get_challenge(self, public_key: str) -> dict[str, Any]:
        return self._request("GET", f"/api/v1/accounts/{public_key}/challenge")

    def verify_ownership(self, public_key: str, message: str, signature: str) -> dict[str, Any]:
        """Returns the verification result; a denied proof (401) is returned, not raised."""
        body = {"message": message, "signature": signature}
        path = f"/api/v1/accounts/{public_key}/verify-ownership"
        return self._request("POST", path, json=body, allow_statuses=(401,))

    def prove_ownership(self, keypair: Keypair) -> dict[str, Any]:
        """Fetch a challenge, sign it with keypair, and submit the signature."""
        challenge = self.get_challenge(keypair.public_key)
        message = challenge["challenge"]
        signature = base64.b64encode(keypair.sign(message.encode("utf-8"))).decode("ascii")
        return self.verify_ownership(keypair.public_key, message, signature)

    def create_wallet(self, network: str = "testnet") -> dict[str, Any]:
        return self._request("POST", "/api/v1/wallets", json={"network": network})

    def get_wallet_balance(self, wallet_id: str) -> dict[str, Any]:
        return self._request("GET", f"/api/v1/wallets/{wallet_id}/balance")

    def fund_wallet(self, wallet_id: str) -> dict[str, Any]:
        return self._request("POST", f"/api/v1/wallets/{wallet_id}/fund")

    def send_payment(self, wallet_id: str, to_address: str, amount: str, memo: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"to_address": to_address, "amount": amount}
        if memo is not None:
            body["memo"] = memo
        return self._request("POST", f"/api/v1/wallets/{wallet_id}/payments", json=body)


# -----------------------------------------------------------------------------
# Example usage
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    client = QuasarFlowClient("http://localhost:8080")

    print("Health:", client.health())
    client.login("user", "user123")
    print("Me:", client.me())

    keypair = Keypair.random()
    result = client.prove_ownership(keypair)
    print("Ownership verified:", result.get("is_owner"), result.get("message"))

    wallet = client.create_wallet("testnet")
    print("Wallet:", wallet["id"], wallet["public_key"])
    print("Funding:", client.fund_wallet(wallet["id"]).get("message"))
