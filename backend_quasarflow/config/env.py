"""
Environment variable loading and Stellar network resolution for QuasarFlow.

- STELLAR_NETWORK: testnet | mainnet (default: testnet)
- STELLAR_HORIZON_URL: Horizon endpoint (overrides the network default)
- FRIENDBOT_URL: Friendbot endpoint (testnet only)
- Loads .env from project root when available.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from stellar_sdk import Network

# Project root: config is backend_quasarflow/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
ENV_PATH = _ROOT / ".env"

TESTNET = "testnet"
MAINNET = "mainnet"
NETWORKS = (TESTNET, MAINNET)

TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
MAINNET_HORIZON_URL = "https://horizon.stellar.org"
TESTNET_FRIENDBOT_URL = "https://friendbot.stellar.org"


def load_quasarflow_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(ENV_PATH, override=False)


def normalize_network(raw: str | None) -> str:
    """
    Map a network name to testnet | mainnet.
    Accepts "public" and "pubnet" as aliases for mainnet; anything else is testnet.
    """
    value = (raw or TESTNET).strip().lower()
    if value in (MAINNET, "public", "pubnet"):
        return MAINNET
    return TESTNET


def horizon_url_for(network: str, override: str | None = None) -> str:
    """
    Resolve Horizon URL.
    Order: explicit override (STELLAR_HORIZON_URL) > network default.
    """
    url = (override or "").strip()
    if url:
        return url.rstrip("/")
    return MAINNET_HORIZON_URL if normalize_network(network) == MAINNET else TESTNET_HORIZON_URL


def passphrase_for(network: str) -> str:
    """Network passphrase used when signing transactions."""
    if normalize_network(network) == MAINNET:
        return Network.PUBLIC_NETWORK_PASSPHRASE
    return Network.TESTNET_NETWORK_PASSPHRASE


def friendbot_url_for(network: str, override: str | None = None) -> str | None:
    """Friendbot exists only on testnet; returns None for mainnet."""
    if normalize_network(network) == MAINNET:
        return None
    url = (override or "").strip()
    return url or TESTNET_FRIENDBOT_URL
