"""
SEP-10 style ownership challenges.

Challenge format: "{unix_seconds}.{unix_nanoseconds}.{domain}.{public_key}".
The client signs the exact UTF-8 bytes of the challenge with the wallet's secret
key and posts it back to /verify-ownership.

ChallengeStore remembers issued challenges so a signed challenge can be checked
for freshness and used only once. The store is in-process memory: with several
worker processes a challenge must be verified by the process that issued it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from backend_quasarflow.logging import get_logger
from backend_quasarflow.ownership.signature import PUBLIC_KEY_LENGTH, is_valid_public_key

logger = get_logger(__name__)

CHALLENGE_MESSAGE = "Sign this challenge with your private key to verify ownership"
CHALLENGE_INSTRUCTIONS = "Use Stellar SDK to sign the challenge with your private key"
INVALID_KEY_MESSAGE = "Invalid Stellar public key format"

DEFAULT_MAX_CHALLENGES = 10_000


@dataclass(frozen=True)
class ChallengeOutput:
    challenge: str
    message: str
    public_key: str
    instructions: str

    def to_dict(self) -> dict[str, str]:
        return {
            "challenge": self.challenge,
            "message": self.message,
            "public_key": self.public_key,
            "instructions": self.instructions,
        }


@dataclass(frozen=True)
class ParsedChallenge:
    timestamp: int
    nonce: int
    domain: str
    public_key: str


def parse_challenge(challenge: str) -> ParsedChallenge | None:
    """
    Split a challenge into its fields. The domain may contain dots, so the
    public key is taken from the right and the two integers from the left.
    Returns None when the string is not a challenge.
    """
    head, sep, public_key = challenge.rpartition(".")
    if not sep or len(public_key) != PUBLIC_KEY_LENGTH:
        return None
    parts = head.split(".", 2)
    if len(parts) != 3 or not parts[2]:
        return None
    timestamp, nonce, domain = parts
    if not (timestamp.isdigit() and nonce.isdigit()):
        return None
    return ParsedChallenge(int(timestamp), int(nonce), domain, public_key)


@dataclass
class _IssuedChallenge:
    public_key: str
    expires_at: float
    used: bool = False


class ChallengeStore:
    """
    Thread-safe in-memory record of issued challenges with a TTL.

    consume() is atomic: of two concurrent verifications of the same challenge,
    exactly one succeeds. At most max_entries challenges are held; when full,
    the oldest outstanding challenge is evicted to make room.
    """

    def __init__(
        self,
        ttl_sec: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_CHALLENGES,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_sec = float(ttl_sec)
        self.max_entries = int(max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._issued: dict[str, _IssuedChallenge] = {}

    def remember(self, challenge: str, public_key: str) -> None:
        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            evicted = 0
            while len(self._issued) >= self.max_entries:
                del self._issued[next(iter(self._issued))]
                evicted += 1
            self._issued[challenge] = _IssuedChallenge(public_key, now + self.ttl_sec)
        if evicted:
            logger.warning("challenge_store_full", evicted=evicted, max_entries=self.max_entries)

    def is_active(self, challenge: str, public_key: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._issued.get(challenge)
            return self._usable(entry, public_key, now)

    def consume(self, challenge: str, public_key: str) -> bool:
        """Mark challenge used. False if unknown, expired, already used or issued for another key."""
        now = self._clock()
        with self._lock:
            entry = self._issued.get(challenge)
            if not self._usable(entry, public_key, now):
                return False
            entry.used = True
            return True

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._issued)

    @staticmethod
    def _usable(entry: _IssuedChallenge | None, public_key: str, now: float) -> bool:
        return entry is not None and not entry.used and entry.public_key == public_key and now < entry.expires_at

    def _purge_locked(self, now: float) -> int:
        expired = [c for c, entry in self._issued.items() if entry.used or now >= entry.expires_at]
        for challenge in expired:
            del self._issued[challenge]
        return len(expired)


class ChallengeGenerator:
    """Issues challenges bound to a configured domain; records them in the store when one is attached."""

    def __init__(
        self,
        domain: str,
        store: ChallengeStore | None = None,
        clock_ns: Callable[[], int] = time.time_ns,
    ) -> None:
        self.domain = domain
        self.store = store
        self._clock_ns = clock_ns
        self._lock = threading.Lock()
        self._last_nonce = 0

    def _next_nonce(self) -> int:
        # Nonces are strictly increasing even if the clock stalls or steps back.
        with self._lock:
            nonce = max(self._clock_ns(), self._last_nonce + 1)
            self._last_nonce = nonce
            return nonce

    def generate(self, public_key: str) -> ChallengeOutput:
        if not is_valid_public_key(public_key):
            logger.warning("challenge_rejected_invalid_key", public_key=public_key)
            return ChallengeOutput(
                challenge="",
                message=INVALID_KEY_MESSAGE,
                public_key=public_key,
                instructions="",
            )
        nonce = self._next_nonce()
        challenge = f"{nonce // 1_000_000_000}.{nonce}.{self.domain}.{public_key}"
        if self.store is not None:
            self.store.remember(challenge, public_key)
        logger.info("challenge_generated", public_key=public_key, challenge=challenge)
        return ChallengeOutput(
            challenge=challenge,
            message=CHALLENGE_MESSAGE,
            public_key=public_key,
            instructions=CHALLENGE_INSTRUCTIONS,
        )
