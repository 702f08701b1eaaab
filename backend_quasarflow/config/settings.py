"""
Application configuration.

Pydantic Settings loaded from environment variables or the project .env file.
Durations accept Go-style strings ("24h", "10m", "1h30m", "500ms") or plain seconds.
"""

from __future__ import annotations

import re
import secrets
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend_quasarflow.config.env import (
    ENV_PATH,
    friendbot_url_for,
    horizon_url_for,
    normalize_network,
    passphrase_for,
)
from backend_quasarflow.logging import get_logger

logger = get_logger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

DEFAULT_AUTH_USERS = "admin:admin123:admin,user:user123:user"


def parse_duration(value: str | int | float) -> float:
    """
    Parse a duration into seconds.

    >>> parse_duration("1h30m")
    5400.0
    >>> parse_duration(90)
    90.0
    """
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    try:
        return float(text)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variable names are the upper-case field names (ENV, JWT_SECRET, ...).
    """

    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Database
    database_url: str = "sqlite:///quasarflow.db"

    # Stellar
    stellar_network: str = "testnet"
    stellar_horizon_url: str = ""
    friendbot_url: str = ""
    horizon_timeout: float = 15.0

    # Security
    encryption_key: str = ""
    jwt_secret: str = ""
    jwt_expiration: float = 24 * 3600.0
    jwt_issuer: str = "quasarflow-api"
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"
    auth_users: str = DEFAULT_AUTH_USERS

    # Frontend and API URLs
    api_base_url: str = "http://localhost:8080"
    challenge_domain: str = ""
    csp_connect_sources: str = (
        "https://horizon-testnet.stellar.org,https://horizon.stellar.org,http://localhost:8000"
    )

    # Logging
    log_level: str = "info"
    log_format: str = "json"

    # Rate limiting
    rate_limit_requests_per_second: float = 100.0
    rate_limit_burst: int = 200
    rate_limit_cleanup_interval: float = 600.0

    # Ownership challenges
    challenge_ttl: float = 300.0
    challenge_strict_mode: bool = True
    challenge_max_entries: int = 10_000

    @field_validator(
        "jwt_expiration",
        "rate_limit_cleanup_interval",
        "challenge_ttl",
        "horizon_timeout",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, value):
        return parse_duration(value)

    @field_validator("stellar_network", mode="before")
    @classmethod
    def _normalize_network(cls, value):
        return normalize_network(value)

    @field_validator(
        "rate_limit_requests_per_second",
        "rate_limit_cleanup_interval",
        "jwt_expiration",
        "challenge_ttl",
    )
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("rate_limit_burst", "challenge_max_entries")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() == "production"

    @property
    def enable_hsts(self) -> bool:
        return self.is_production

    @property
    def horizon_url(self) -> str:
        return horizon_url_for(self.stellar_network, self.stellar_horizon_url)

    @property
    def network_passphrase(self) -> str:
        return passphrase_for(self.stellar_network)

    @property
    def friendbot(self) -> str | None:
        return friendbot_url_for(self.stellar_network, self.friendbot_url)

    def origins(self) -> list[str]:
        """Parse allowed origins from comma-separated string."""
        return _split_csv(self.allowed_origins)

    def connect_sources(self) -> list[str]:
        return _split_csv(self.csp_connect_sources)

    def resolved_challenge_domain(self) -> str:
        """CHALLENGE_DOMAIN if set, else the host[:port] of API_BASE_URL."""
        if self.challenge_domain.strip():
            return self.challenge_domain.strip()
        parsed = urlparse(self.api_base_url)
        return parsed.netloc or self.api_base_url.strip() or "localhost"

    def auth_user_entries(self) -> list[tuple[str, str, str]]:
        """AUTH_USERS as (username, password, role) triples; malformed entries are skipped."""
        entries: list[tuple[str, str, str]] = []
        for raw in _split_csv(self.auth_users):
            parts = raw.split(":")
            if len(parts) != 3 or not all(parts):
                logger.warning("auth_user_entry_invalid", entry_index=len(entries))
                continue
            entries.append((parts[0], parts[1], parts[2]))
        return entries

    def ensure_secrets(self) -> "Settings":
        """
        Fill missing JWT_SECRET / ENCRYPTION_KEY with random values outside production.

        Generated secrets only live for the process: issued tokens and stored
        wallet keys do not survive a restart. Production refuses to start.
        """
        if self.is_production:
            missing = [
                name
                for name, value in (("JWT_SECRET", self.jwt_secret), ("ENCRYPTION_KEY", self.encryption_key))
                if not value
            ]
            if missing:
                raise ValueError(f"Required settings missing in production: {', '.join(missing)}")
            return self
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_urlsafe(32)
            logger.warning("jwt_secret_generated", message="JWT_SECRET not set; using a random per-process secret")
        if not self.encryption_key:
            self.encryption_key = secrets.token_hex(16)
            logger.warning(
                "encryption_key_generated",
                message="ENCRYPTION_KEY not set; stored wallet keys will not decrypt after restart",
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache so settings are only loaded once per process.
    """
    return Settings().ensure_secrets()
