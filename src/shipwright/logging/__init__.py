"""
Structured, run-aware logging for shipwright.

Usage:
    from shipwright.logging import configure_logging, get_logger, set_context

    configure_logging()
    log = get_logger(__name__)
    set_context(run_id="3f9c0a1b2d4e", command="deploy")
    log.info("deploy.phase", phase="preflight")
"""

from shipwright.logging.config import configure_logging, is_debug_enabled
from shipwright.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    push_context,
    set_context,
)

__all__ = [
    "configure_logging",
    "is_debug_enabled",
    "get_logger",
    "set_context",
    "clear_context",
    "get_context",
    "bind_context",
    "push_context",
    "LogContext",
]
