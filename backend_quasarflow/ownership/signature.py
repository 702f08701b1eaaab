"""
Stellar ed25519 signature verification.

Pure functions, no I/O. A wrong signature is a normal negative answer (False);
only malformed input (bad address, non-base64 signature) raises ValidationError.
"""

from __future__ import annotations

import base64
import binascii

from stellar_sdk import Keypair, StrKey
from stellar_sdk.exceptions import BadSignatureError

from backend_quasarflow.core.exceptions import ValidationError

PUBLIC_KEY_LENGTH = 56


def is_valid_public_key(public_key: str | None) -> bool:
    """
    True if public_key is a Stellar account address: 56 chars, 'G' prefix,
    base32 strkey with the ed25519 version byte and a valid checksum.
    """
    if not isinstance(public_key, str):
        return False
    if len(public_key) != PUBLIC_KEY_LENGTH or not public_key.startswith("G"):
        return False
    return StrKey.is_valid_ed25519_public_key(public_key)


def decode_signature(signature_b64: str) -> bytes:
    """Strict standard base64 decode; raises ValidationError on anything else."""
    try:
        return base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid signature encoding", "signature must be standard base64") from e


def verify_signature(public_key: str, message: str, signature_b64: str) -> bool:
    """
    Check that signature_b64 is the ed25519 signature of message (UTF-8) by public_key.

    Raises ValidationError for an invalid address or a non-base64 signature.
    Returns False for a well-formed but wrong signature, including wrong length.
    """
    if not is_valid_public_key(public_key):
        raise ValidationError("Invalid Stellar public key format", "public key failed strkey validation")
    signature = decode_signature(signature_b64)
    keypair = Keypair.from_public_key(public_key)
    try:
        keypair.verify(message.encode("utf-8"), signature)
    except (BadSignatureError, ValueError):
        return False
    return True
