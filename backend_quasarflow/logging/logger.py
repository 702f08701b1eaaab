"""
Structured JSON logging: timestamp, level, event_type, request_id.

structlog with ISO timestamps and consistent keys for aggregation. All modules
use get_logger() and log a snake_case event_type plus keyword context, e.g.
logger.info("ownership_verified", public_key=pk, strategy="signature").

Uses only Python stdlib logging and structlog; no backend_quasarflow imports to
avoid circular imports (config imports this module).
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy

# Default log level from env
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output for production (LOG_FORMAT=json); human-readable for local
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601)."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure structlog: JSON (or console) renderer, timestamp, level, event_type.

    Called once at import with LOG_LEVEL / LOG_FORMAT from env; the server calls
    it again with the values from Settings. Loggers from get_logger() are lazy
    proxies, so module-level loggers pick up the new level and renderer.
    Output goes to whatever sys.stdout is when each event is emitted.
    """
    level_value = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    output = (fmt or LOG_FORMAT).strip().lower()
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
    ]
    if output == "json":
        shared_processors.extend([_normalize_event, structlog.processors.JSONRenderer()])
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# One-time configuration on first import
if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("wallet_created", wallet_id=str(wallet.id), network="testnet")

    Output (JSON): {"event_type": "wallet_created", "wallet_id": "...", "network": "testnet",
    "timestamp": "...", "level": "info", "logger": "module.name"}
    """
    return BoundLoggerLazyProxy(None, initial_values={"logger": name})

