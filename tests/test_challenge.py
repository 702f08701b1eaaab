"""
Tests for challenge generation and the issued-challenge store.
"""

from __future__ import annotations

import pytest
from stellar_sdk import Keypair

from backend_quasarflow.ownership.challenge import (
    CHALLENGE_INSTRUCTIONS,
    CHALLENGE_MESSAGE,
    ChallengeGenerator,
    ChallengeStore,
    parse_challenge,
)

FROZEN_NS = 1_700_000_000_123_456_789


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_challenge_format():
    """Challenge is timestamp.nonce.domain.public_key with matching timestamp and nonce."""
    kp = Keypair.random()
    gen = ChallengeGenerator("localhost:8080", clock_ns=lambda: FROZEN_NS)
    out = gen.generate(kp.public_key)
    parts = out.challenge.split(".")
    assert len(parts) == 4
    assert parts[0] == "1700000000"
    assert parts[1] == str(FROZEN_NS)
    assert parts[2] == "localhost:8080"
    assert parts[3] == kp.public_key
    assert out.message == CHALLENGE_MESSAGE
    assert out.instructions == CHALLENGE_INSTRUCTIONS
    assert out.public_key == kp.public_key


def test_challenge_invalid_key_returns_empty_challenge():
    """Invalid key yields an output with an empty challenge, not an exception."""
    gen = ChallengeGenerator("localhost")
    out = gen.generate("GBAD")
    assert out.challenge == ""
    assert out.message == "Invalid Stellar public key format"
    assert out.instructions == ""
    assert out.public_key == "GBAD"


def test_challenges_unique_when_clock_stalls():
    """Two challenges in the same nanosecond still get distinct, increasing nonces."""
    kp = Keypair.random()
    gen = ChallengeGenerator("localhost", clock_ns=lambda: FROZEN_NS)
    first = parse_challenge(gen.generate(kp.public_key).challenge)
    second = parse_challenge(gen.generate(kp.public_key).challenge)
    assert first is not None and second is not None
    assert second.nonce == first.nonce + 1


def test_parse_challenge_with_dotted_domain():
    """Domain may contain dots; the key is taken from the right."""
    kp = Keypair.random()
    gen = ChallengeGenerator("api.quasarflow.io", clock_ns=lambda: FROZEN_NS)
    parsed = parse_challenge(gen.generate(kp.public_key).challenge)
    assert parsed.domain == "api.quasarflow.io"
    assert parsed.public_key == kp.public_key
    assert parsed.timestamp == 1700000000
    assert parse_challenge("hello") is None
    assert parse_challenge("a.b.c." + kp.public_key) is None


def test_store_records_generated_challenges():
    """Generator with a store remembers each challenge for its key."""
    kp = Keypair.random()
    store = ChallengeStore(ttl_sec=300)
    gen = ChallengeGenerator("localhost", store=store)
    challenge = gen.generate(kp.public_key).challenge
    assert store.is_active(challenge, kp.public_key) is True
    assert store.is_active(challenge, Keypair.random().public_key) is False
    assert gen.generate("GBAD").challenge == ""
    assert len(store) == 1


def test_store_consume_is_single_use():
    """consume() succeeds once; the challenge is then inactive."""
    store = ChallengeStore(ttl_sec=300)
    store.remember("c1", "GKEY")
    assert store.consume("c1", "GKEY") is True
    assert store.consume("c1", "GKEY") is False
    assert store.is_active("c1", "GKEY") is False
    assert store.consume("unknown", "GKEY") is False


def test_store_expiry():
    """Challenges expire after the TTL and are purged."""
    clock = FakeClock()
    store = ChallengeStore(ttl_sec=60, clock=clock)
    store.remember("c1", "GKEY")
    clock.now += 59
    assert store.is_active("c1", "GKEY") is True
    clock.now += 2
    assert store.is_active("c1", "GKEY") is False
    assert store.consume("c1", "GKEY") is False
    assert store.purge_expired() == 1
    assert len(store) == 0


def test_store_is_bounded_and_evicts_oldest():
    """A full store drops its oldest outstanding challenge to admit a new one."""
    store = ChallengeStore(ttl_sec=300, max_entries=3)
    for i in range(5):
        store.remember(f"c{i}", "GKEY")
    assert len(store) == 3
    assert store.is_active("c0", "GKEY") is False
    assert store.is_active("c1", "GKEY") is False
    assert all(store.is_active(f"c{i}", "GKEY") for i in (2, 3, 4))
    with pytest.raises(ValueError):
        ChallengeStore(ttl_sec=300, max_entries=0)
