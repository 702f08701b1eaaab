"""Stellar network access: Horizon queries, transaction submission, Friendbot funding."""

from backend_quasarflow.stellar.client import AccountInfo, Balance, FriendbotResult, HorizonClient, TransactionInfo

__all__ = ["AccountInfo", "Balance", "FriendbotResult", "HorizonClient", "TransactionInfo"]
