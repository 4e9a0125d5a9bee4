"""Structured logging built on structlog.

Loggers emit event names with keyword context, e.g.
``logger.info("endpoint_configured", name="Web", tls=True)``.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

REDACTED = "***"

# Keys whose values never reach a log sink.
SECRET_KEYS = frozenset({"password", "private_key", "secret"})


def redact_secrets_processor(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Mask secret values in the event dictionary.

    Certificate passwords travel alongside paths and subjects in the
    configuration, so any key named in ``SECRET_KEYS`` is replaced
    before rendering. Empty values are left alone so that "no password"
    stays distinguishable from "password set".

    Args:
        logger: The wrapped logger (unused).
        method_name: The log method name (unused).
        event_dict: The event dictionary to process.

    Returns:
        The event dictionary with secrets masked.
    """
    for key in SECRET_KEYS:
        if event_dict.get(key):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog on top of the standard library logging module.

    Args:
        level: Minimum log level name.
        json_output: Render JSON lines instead of the console renderer.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        context_class=dict,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            redact_secrets_processor,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
