"""Wallet ownership verification: signatures, SEP-10 style challenges, verification strategies."""

from backend_quasarflow.ownership.challenge import ChallengeGenerator, ChallengeOutput, ChallengeStore
from backend_quasarflow.ownership.service import OwnershipService, VerificationResult
from backend_quasarflow.ownership.signature import is_valid_public_key, verify_signature

__all__ = [
    "ChallengeGenerator",
    "ChallengeOutput",
    "ChallengeStore",
    "OwnershipService",
    "VerificationResult",
    "is_valid_public_key",
    "verify_signature",
]
