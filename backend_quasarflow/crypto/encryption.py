"""
AES-256-GCM encryption for secret seeds stored in the wallet table.

Ciphertext layout: base64(nonce(12) || ciphertext || tag(16)).
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from backend_quasarflow.core.exceptions import CryptoError

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class AESEncryptor:
    """Encrypt/decrypt strings with a 32-byte key (ENCRYPTION_KEY, UTF-8 encoded)."""

    def __init__(self, key: str | bytes) -> None:
        raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        if len(raw) != KEY_SIZE:
            raise CryptoError("Invalid encryption key size", f"expected {KEY_SIZE} bytes, got {len(raw)}")
        self._aesgcm = AESGCM(raw)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), associated_data=None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            data = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError("Invalid ciphertext", "invalid base64 encoding") from e
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise CryptoError("Invalid ciphertext", "ciphertext too short")
        nonce, sealed = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, sealed, associated_data=None)
        except InvalidTag as e:
            raise CryptoError("Decryption failed", "authentication tag mismatch") from e
        return plaintext.decode("utf-8")
