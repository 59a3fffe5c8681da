"""
Logging context management using contextvars.

The run context (run_id, command, phase, step) is attached to every log
entry without passing it through each call. Orchestrators push a phase
when they enter it and restore the previous context when they leave.
"""

from contextvars import ContextVar
from dataclasses import asdict, dataclass
from typing import Any

import structlog


@dataclass
class LogContext:
    """
    Invocation context attached to all log entries.

    run_id: Unique invocation ID
    command: CLI command (deploy, rollback, verify)
    phase: Current orchestrator phase
    step: Current step within the phase
    revision: Revision being deployed or rolled back to
    """

    run_id: str | None = None
    command: str | None = None
    phase: str | None = None
    step: str | None = None
    revision: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs: Any) -> "LogContext":
        """Create new context with merged values."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if v is not None and k in current})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def set_context(
    run_id: str | None = None,
    command: str | None = None,
    phase: str | None = None,
    step: str | None = None,
    revision: str | None = None,
) -> LogContext:
    """
    Set the current log context.

    This replaces the current context. Use bind_context() to add to existing.
    """
    ctx = LogContext(run_id=run_id, command=command, phase=phase, step=step, revision=revision)
    _log_context.set(ctx)
    return ctx


def bind_context(**kwargs: Any) -> LogContext:
    """Merge values into the current context."""
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Clear the current context (reset to empty)."""
    _log_context.set(LogContext())


class _ContextToken:
    """Token for restoring context after a scoped operation."""

    def __init__(self, token):
        self._token = token

    def restore(self):
        """Restore the previous context."""
        _log_context.reset(self._token)


def push_context(**kwargs: Any) -> _ContextToken:
    """
    Push new context values, returning a token to restore later.

    Usage:
        token = push_context(phase="verifying")
        try:
            run_probes()
        finally:
            token.restore()
    """
    updated = get_context().merge(**kwargs)
    token = _log_context.set(updated)
    return _ContextToken(token)


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds the run context to every log entry."""
    for key, value in get_context().to_dict().items():
        if key not in event_dict:
            event_dict[key] = value
    return event_dict


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger that includes the run context."""
    return structlog.get_logger(name)
