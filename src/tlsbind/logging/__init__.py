"""Logging utilities."""

from .structured import configure_logging, get_logger, redact_secrets_processor

__all__ = [
    "configure_logging",
    "get_logger",
    "redact_secrets_processor",
]
