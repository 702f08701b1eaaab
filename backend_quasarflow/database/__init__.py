"""Wallet persistence: SQLAlchemy engine, ORM model, repository."""

from backend_quasarflow.database.connection import Database
from backend_quasarflow.database.models import Base, WalletRecord
from backend_quasarflow.database.repositories import WalletRepository

__all__ = ["Base", "Database", "WalletRecord", "WalletRepository"]
