"""
Tests for AES-256-GCM encryption of wallet seeds.
"""

from __future__ import annotations

import base64

import pytest

from backend_quasarflow.core.exceptions import CryptoError
from backend_quasarflow.crypto import AESEncryptor
from conftest import TEST_ENCRYPTION_KEY

SEED = "SBKGCMBY56MHTT4EGE3YJIYL4CPWKSGJ7VDEQF4J3B3YO576KNL7DOYJ"


def test_encrypt_decrypt():
    enc = AESEncryptor(TEST_ENCRYPTION_KEY)
    ciphertext = enc.encrypt(SEED)
    assert SEED not in ciphertext
    assert enc.decrypt(ciphertext) == SEED


def test_nonce_is_random():
    """Same plaintext encrypts differently each time (nonce prefix)."""
    enc = AESEncryptor(TEST_ENCRYPTION_KEY)
    first, second = enc.encrypt(SEED), enc.encrypt(SEED)
    assert first != second
    assert base64.b64decode(first)[:12] != base64.b64decode(second)[:12]


def test_key_size_enforced():
    with pytest.raises(CryptoError):
        AESEncryptor("too-short")
    with pytest.raises(CryptoError):
        AESEncryptor(TEST_ENCRYPTION_KEY + "x")
    AESEncryptor(b"\x00" * 32)


def test_decrypt_rejects_bad_input():
    enc = AESEncryptor(TEST_ENCRYPTION_KEY)
    with pytest.raises(CryptoError):
        enc.decrypt("not base64!!")
    with pytest.raises(CryptoError):
        enc.decrypt(base64.b64encode(b"short").decode())
    tampered = bytearray(base64.b64decode(enc.encrypt(SEED)))
    tampered[-1] ^= 0x01
    with pytest.raises(CryptoError):
        enc.decrypt(base64.b64encode(bytes(tampered)).decode())


def test_wrong_key_cannot_decrypt():
    ciphertext = AESEncryptor(TEST_ENCRYPTION_KEY).encrypt(SEED)
    with pytest.raises(CryptoError):
        AESEncryptor("fedcba9876543210fedcba9876543210").decrypt(ciphertext)
