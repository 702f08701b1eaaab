"""SQLAlchemy models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WalletRecord(Base):
    """
    Custodial Stellar wallet: public address plus the AES-GCM encrypted secret seed.
    """

    __tablename__ = "wallets"
    __table_args__ = (CheckConstraint("network IN ('testnet', 'mainnet')", name="wallets_network_check"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    public_key = Column(String(56), unique=True, nullable=False, index=True)
    encrypted_key = Column(Text, nullable=False)
    network = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Public view: never includes the encrypted key."""
        return {
            "id": self.id,
            "public_key": self.public_key,
            "network": self.network,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
