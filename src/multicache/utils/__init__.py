"""Shared utilities."""

from .logging_config import LoggingConfig, LogLevel, setup_logging

__all__ = ["LoggingConfig", "LogLevel", "setup_logging"]
