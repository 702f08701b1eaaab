"""
Drive the documented Python client against the app through TestClient.
"""

from __future__ import annotations

import base64

import pytest
from stellar_sdk import Keypair

from docs.python_sdk_example import QuasarFlowClient, QuasarFlowClientError


@pytest.fixture
def api(client) -> QuasarFlowClient:
    return QuasarFlowClient("http://testserver", session=client)


def test_client_login_and_prove_ownership(api):
    assert api.health()["status"] == "healthy"
    api.login("user", "user123")
    assert api.me() == {"user_id": "user", "role": "user"}

    result = api.prove_ownership(Keypair.random())
    assert result["is_owner"] is True


def test_client_rejected_proof_is_returned(api, keypair):
    api.login("user", "user123")
    challenge = api.get_challenge(keypair.public_key)["challenge"]
    forged = Keypair.random()
    signature = base64.b64encode(forged.sign(challenge.encode())).decode()
    result = api.verify_ownership(keypair.public_key, challenge, signature)
    assert result["is_owner"] is False


def test_client_raises_on_error_envelope(api):
    with pytest.raises(QuasarFlowClientError) as exc:
        api.login("user", "wrong")
    assert exc.value.status_code == 401
    assert exc.value.error_type == "UNAUTHORIZED"
    with pytest.raises(QuasarFlowClientError) as exc:
        api.me()
    assert exc.value.status_code == 401
