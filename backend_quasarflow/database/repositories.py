"""
Wallet repository over SQLAlchemy.

Returns detached WalletRecord instances with all columns loaded, so callers
never hold a session.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend_quasarflow.core.exceptions import ConflictError, DatabaseError, NotFoundError
from backend_quasarflow.database.connection import Database
from backend_quasarflow.database.models import WalletRecord
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)


class WalletRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    def create(self, public_key: str, encrypted_key: str, network: str) -> WalletRecord:
        record = WalletRecord(public_key=public_key, encrypted_key=encrypted_key, network=network)
        try:
            with self.db.session_scope() as session:
                session.add(record)
                session.flush()
                session.refresh(record)
                session.expunge(record)
        except IntegrityError as e:
            raise ConflictError("Wallet already exists", f"public key {public_key} is already stored") from e
        except SQLAlchemyError as e:
            logger.error("wallet_create_failed", public_key=public_key, error=str(e))
            raise DatabaseError("Failed to create wallet") from e
        return record

    def find_by_id(self, wallet_id: str) -> WalletRecord:
        return self._find_one(WalletRecord.id == wallet_id, f"wallet {wallet_id}")

    def find_by_public_key(self, public_key: str) -> WalletRecord:
        return self._find_one(WalletRecord.public_key == public_key, f"wallet {public_key}")

    def list(self, limit: int, offset: int) -> list[WalletRecord]:
        try:
            with self.db.session_scope() as session:
                rows = (
                    session.query(WalletRecord)
                    .order_by(WalletRecord.created_at.desc(), WalletRecord.id)
                    .limit(limit)
                    .offset(offset)
                    .all()
                )
                for row in rows:
                    session.expunge(row)
                return rows
        except SQLAlchemyError as e:
            logger.error("wallet_list_failed", error=str(e))
            raise DatabaseError("Failed to list wallets") from e

    def count(self) -> int:
        try:
            with self.db.session_scope() as session:
                return session.query(WalletRecord).count()
        except SQLAlchemyError as e:
            logger.error("wallet_count_failed", error=str(e))
            raise DatabaseError("Failed to count wallets") from e

    def _find_one(self, criterion, label: str) -> WalletRecord:
        try:
            with self.db.session_scope() as session:
                row = session.query(WalletRecord).filter(criterion).first()
                if row is None:
                    raise NotFoundError("Wallet not found", label)
                session.expunge(row)
                return row
        except SQLAlchemyError as e:
            logger.error("wallet_lookup_failed", lookup=label, error=str(e))
            raise DatabaseError("Failed to load wallet") from e
