"""Custodial wallet operations."""

from backend_quasarflow.wallets.service import WalletService

__all__ = ["WalletService"]
