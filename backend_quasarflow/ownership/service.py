"""
Ownership verification service: three ways to decide whether the caller controls
a Stellar account.

- verify_signature: the caller signed a message (normally a challenge) with the
  account's secret key. Cryptographic proof.
- verify_by_transaction: the caller points at a recent transaction whose source
  account is the wallet. Evidence only; anyone can cite a public transaction.
- verify_by_account: the account exists and was modified recently. Weakest;
  proves nothing about who is asking.

Negative outcomes are VerificationResult(is_owner=False); exceptions are
reserved for failures the caller cannot fix by retrying with other input.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from backend_quasarflow.core.exceptions import AppError, BlockchainError, InternalError, ValidationError
from backend_quasarflow.logging import get_logger
from backend_quasarflow.ownership.challenge import INVALID_KEY_MESSAGE, ChallengeStore
from backend_quasarflow.ownership.signature import is_valid_public_key, verify_signature

logger = get_logger(__name__)

TRANSACTION_MAX_AGE = timedelta(hours=24)
ACCOUNT_ACTIVITY_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class VerificationResult:
    is_owner: bool
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


class LedgerReader(Protocol):
    def get_transaction(self, transaction_hash: str): ...

    def get_account(self, public_key: str): ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class OwnershipService:
    """
    Ownership checks over a Horizon client and, optionally, a challenge store.

    With strict_challenges the signature strategy only accepts messages that are
    live challenges issued for the same key, and consumes them on success.
    """

    def __init__(
        self,
        horizon: LedgerReader,
        challenges: ChallengeStore | None = None,
        strict_challenges: bool = False,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        if strict_challenges and challenges is None:
            raise ValueError("strict_challenges requires a ChallengeStore")
        self.horizon = horizon
        self.challenges = challenges
        self.strict_challenges = strict_challenges
        self._now = now

    def verify_signature(self, public_key: str, signature: str, message: str) -> VerificationResult:
        logger.info("ownership_verification_started", strategy="signature", public_key=public_key)
        if not is_valid_public_key(public_key):
            logger.warning("ownership_invalid_public_key", public_key=public_key)
            return VerificationResult(False, INVALID_KEY_MESSAGE)

        if self.strict_challenges and not self.challenges.is_active(message, public_key):
            logger.warning("ownership_challenge_rejected", public_key=public_key)
            return VerificationResult(False, "Challenge is unknown, expired or already used")

        try:
            valid = verify_signature(public_key, message, signature)
        except ValidationError as e:
            logger.error("ownership_signature_error", public_key=public_key, error=str(e))
            raise InternalError("Failed to verify signature", str(e)) from e

        if not valid:
            logger.warning("ownership_verification_failed", public_key=public_key, reason="invalid signature")
            return VerificationResult(False, "Invalid signature or message")

        if self.strict_challenges and not self.challenges.consume(message, public_key):
            # Another request verified the same challenge first.
            logger.warning("ownership_challenge_replayed", public_key=public_key)
            return VerificationResult(False, "Challenge is unknown, expired or already used")

        logger.info("ownership_verified", strategy="signature", public_key=public_key)
        return VerificationResult(True, "Ownership verified successfully")

    def verify_by_transaction(self, public_key: str, transaction_hash: str) -> VerificationResult:
        logger.info(
            "ownership_verification_started",
            strategy="transaction",
            public_key=public_key,
            transaction_hash=transaction_hash,
        )
        if not is_valid_public_key(public_key):
            return VerificationResult(False, INVALID_KEY_MESSAGE)

        try:
            tx = self.horizon.get_transaction(transaction_hash)
        except AppError as e:
            logger.error("ownership_transaction_fetch_failed", transaction_hash=transaction_hash, error=str(e))
            raise BlockchainError("Failed to fetch transaction", str(e)) from e

        if tx.source_account != public_key:
            logger.warning(
                "ownership_transaction_source_mismatch",
                public_key=public_key,
                source_account=tx.source_account,
                transaction_hash=transaction_hash,
            )
            return VerificationResult(False, "Transaction was not signed by the specified wallet")

        closed_at = _as_utc(tx.created_at)
        if self._now() - closed_at > TRANSACTION_MAX_AGE:
            logger.warning(
                "ownership_transaction_too_old",
                public_key=public_key,
                ledger_close_time=closed_at.isoformat(),
                transaction_hash=transaction_hash,
            )
            return VerificationResult(False, "Transaction is too old for ownership verification")

        logger.info("ownership_verified", strategy="transaction", public_key=public_key)
        return VerificationResult(True, "Ownership verified via transaction")

    def verify_by_account(self, public_key: str) -> VerificationResult:
        logger.info("ownership_verification_started", strategy="account", public_key=public_key)
        if not is_valid_public_key(public_key):
            return VerificationResult(False, INVALID_KEY_MESSAGE)

        try:
            account = self.horizon.get_account(public_key)
        except AppError as e:
            logger.warning("ownership_account_not_found", public_key=public_key, error=str(e))
            return VerificationResult(False, "Account not found on Stellar network")

        last_modified = account.last_modified_time
        if last_modified is None or self._now() - _as_utc(last_modified) >= ACCOUNT_ACTIVITY_WINDOW:
            logger.warning(
                "ownership_account_inactive",
                public_key=public_key,
                last_modified=last_modified.isoformat() if last_modified else None,
            )
            return VerificationResult(False, "Account has no recent activity")

        logger.info("ownership_verified", strategy="account", public_key=public_key)
        return VerificationResult(True, "Account exists and has recent activity")
