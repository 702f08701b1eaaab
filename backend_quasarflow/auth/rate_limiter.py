"""
Per-client token-bucket rate limiting.

One bucket per client key (IP address), created lazily. A background sweep
thread evicts buckets idle for more than twice the cleanup interval so the map
stays bounded by the number of recently active clients. The limiter is owned by
the application: create_app() builds it, the lifespan starts and closes it.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from starlette.requests import Request

from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

CLEANUP_MULTIPLIER = 2
SHUTDOWN_JOIN_TIMEOUT_SEC = 5.0


@dataclass
class TokenBucket:
    """Token bucket: refills at rate tokens/sec up to burst; each request takes one token."""

    rate: float
    burst: int
    tokens: float = -1.0
    last_update: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.tokens < 0:
            self.tokens = float(self.burst)

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.last_update)
        self.tokens = min(float(self.burst), self.tokens + elapsed * self.rate)
        self.last_update = now

    def allow(self, now: float) -> bool:
        with self._lock:
            self._refill(now)
            if self.tokens >= 1.0:
                self.tokens -= 1.0
                return True
            return False

    def retry_after(self, now: float) -> float:
        """Seconds until one token is available."""
        with self._lock:
            self._refill(now)
            if self.tokens >= 1.0:
                return 0.0
            return (1.0 - self.tokens) / self.rate


@dataclass
class _Entry:
    bucket: TokenBucket
    last_seen: float


class RateLimiter:
    """Thread-safe map of client key to token bucket, with a periodic idle sweep."""

    def __init__(
        self,
        requests_per_second: float,
        burst: int,
        cleanup_interval_sec: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        if cleanup_interval_sec <= 0:
            raise ValueError("cleanup_interval_sec must be positive")
        self.requests_per_second = float(requests_per_second)
        self.burst = int(burst)
        self.cleanup_interval_sec = float(cleanup_interval_sec)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _entry(self, key: str, now: float) -> _Entry:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                bucket = TokenBucket(self.requests_per_second, self.burst, last_update=now)
                entry = _Entry(bucket=bucket, last_seen=now)
                self._entries[key] = entry
            else:
                entry.last_seen = now
            return entry

    def allow(self, key: str) -> bool:
        """Take one token from the key's bucket. Never blocks on the bucket refill."""
        now = self._clock()
        return self._entry(key, now).bucket.allow(now)

    def retry_after(self, key: str) -> int:
        """Whole seconds a throttled client should wait (at least 1)."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return 1
        return max(1, math.ceil(entry.bucket.retry_after(now)))

    def sweep(self, now: float | None = None) -> int:
        """Evict entries idle longer than CLEANUP_MULTIPLIER x cleanup interval. Returns count removed."""
        now = self._clock() if now is None else now
        cutoff = CLEANUP_MULTIPLIER * self.cleanup_interval_sec
        with self._lock:
            stale = [key for key, entry in self._entries.items() if now - entry.last_seen > cutoff]
            for key in stale:
                del self._entries[key]
            remaining = len(self._entries)
        if stale:
            logger.debug("rate_limiter_sweep", removed=len(stale), active_limiters=remaining)
        return len(stale)

    def _run_sweeper(self) -> None:
        while not self._stop.wait(self.cleanup_interval_sec):
            try:
                self.sweep()
            except Exception as e:
                logger.exception("rate_limiter_sweep_error", error=str(e))

    def start(self) -> None:
        """Start the background sweep thread. No-op if already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_sweeper, name="rate-limiter-sweep", daemon=True)
        self._thread.start()
        logger.info("rate_limiter_started", cleanup_interval_sec=self.cleanup_interval_sec)

    def close(self) -> None:
        """Stop the sweep thread and wait for it to exit."""
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                logger.warning("rate_limiter_join_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
        logger.info("rate_limiter_stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        return {
            "active_limiters": len(self),
            "requests_per_second": self.requests_per_second,
            "burst_size": self.burst,
            "cleanup_interval_sec": self.cleanup_interval_sec,
        }


def _strip_port(host: str) -> str:
    host = host.strip()
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def client_key(request: Request) -> str:
    """
    Client identifier for rate limiting.
    Order: first X-Forwarded-For entry > X-Real-IP > connection host.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return _strip_port(first)
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return _strip_port(real_ip)
    if request.client and request.client.host:
        return _strip_port(request.client.host)
    return "unknown"
