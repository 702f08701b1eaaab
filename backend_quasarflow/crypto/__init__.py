"""Symmetric encryption of wallet secret keys at rest."""

from backend_quasarflow.crypto.encryption import AESEncryptor

__all__ = ["AESEncryptor"]
