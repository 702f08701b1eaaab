"""Structured logging for QuasarFlow."""

from backend_quasarflow.logging.logger import configure_structlog, get_logger

__all__ = ["configure_structlog", "get_logger"]
