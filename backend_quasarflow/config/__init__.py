"""Configuration: environment loading, Stellar network resolution, application settings."""

from backend_quasarflow.config.settings import Settings, get_settings, parse_duration

__all__ = ["Settings", "get_settings", "parse_duration"]
