"""
Logging configuration.

Provides a single entry point for configuring structured logging.
Configuration is read from arguments first, then environment variables:

- SHIPWRIGHT_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
- SHIPWRIGHT_LOG_FORMAT: json | console (default: console)

Usage:
    from shipwright.logging import configure_logging
    configure_logging()

    # Or with explicit settings
    configure_logging(level="DEBUG", format="json")
"""

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from shipwright.logging.context import add_context_processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once per CLI invocation. Subsequent calls are no-ops
    unless force=True.

    Args:
        level: Log level (overrides SHIPWRIGHT_LOG_LEVEL env var)
        format: Output format (overrides SHIPWRIGHT_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("SHIPWRIGHT_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("SHIPWRIGHT_LOG_FORMAT", "console")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        # Run context (run_id, phase, step) from contextvars
        add_context_processor,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging to stderr so stdout stays clean for --json output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )
    logging.getLogger("shipwright").setLevel(numeric_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    _configured = True


def is_debug_enabled() -> bool:
    """Check if DEBUG level logging is enabled."""
    return logging.getLogger("shipwright").isEnabledFor(logging.DEBUG)
