"""
Tests for Stellar address validation and ed25519 signature verification.
"""

from __future__ import annotations

import base64

import pytest
from stellar_sdk import Keypair

from backend_quasarflow.core.exceptions import ValidationError
from backend_quasarflow.ownership.signature import is_valid_public_key, verify_signature
from conftest import sign_b64

FIXED_KEYPAIR = Keypair.from_raw_ed25519_seed(bytes(range(32)))


def test_is_valid_public_key_accepts_account_address():
    """A freshly generated G... address is valid."""
    assert is_valid_public_key(FIXED_KEYPAIR.public_key) is True
    assert is_valid_public_key(Keypair.random().public_key) is True


def test_is_valid_public_key_rejects_malformed():
    """Wrong length, wrong prefix, secret seeds, non-base32 and non-strings are rejected."""
    pk = FIXED_KEYPAIR.public_key
    assert is_valid_public_key("") is False
    assert is_valid_public_key(pk[:-1]) is False
    assert is_valid_public_key(pk + "A") is False
    assert is_valid_public_key(FIXED_KEYPAIR.secret) is False
    assert is_valid_public_key("G" + "1" * 55) is False
    assert is_valid_public_key(pk.lower()) is False
    assert is_valid_public_key(None) is False


def test_is_valid_public_key_rejects_bad_checksum():
    """Changing one character in the body breaks the CRC16 checksum."""
    pk = FIXED_KEYPAIR.public_key
    replacement = "A" if pk[20] != "A" else "B"
    mutated = pk[:20] + replacement + pk[21:]
    assert is_valid_public_key(mutated) is False


def test_verify_signature_valid():
    """A signature made with the matching secret key verifies."""
    kp = Keypair.random()
    message = "1700000000.1700000000000000000.localhost.GABC"
    assert verify_signature(kp.public_key, message, sign_b64(kp, message)) is True


def test_verify_signature_wrong_message_or_key():
    """Signature over another message, or by another key, is a plain False."""
    kp = Keypair.random()
    other = Keypair.random()
    signature = sign_b64(kp, "hello")
    assert verify_signature(kp.public_key, "hello!", signature) is False
    assert verify_signature(other.public_key, "hello", signature) is False


def test_verify_signature_wrong_length_is_false():
    """Well-formed base64 of the wrong length does not raise."""
    kp = Keypair.random()
    short = base64.b64encode(b"\x01" * 10).decode()
    assert verify_signature(kp.public_key, "hello", short) is False


def test_verify_signature_malformed_inputs_raise():
    """Invalid address or non-base64 signature raise ValidationError."""
    kp = Keypair.random()
    with pytest.raises(ValidationError):
        verify_signature("not-a-key", "hello", sign_b64(kp, "hello"))
    with pytest.raises(ValidationError):
        verify_signature(kp.public_key, "hello", "not base64!!")
