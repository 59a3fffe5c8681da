"""
Structured error types for shipwright.

Every failure the deploy pipeline can raise is a ``ShipwrightError``
subclass carrying a category, a retryable flag, a structured context
and an optional chained cause. The orchestrators branch on the type:
configuration and cancellation errors are terminal as-is, execution,
timeout and deployment failures escalate to an automatic rollback, and
probe failures never leave the verification suite.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      ShipwrightError                          │
        │  (category, retryable, context, cause)                       │
        ├──────────────────────────────────────────────────────────────┤
        │  ConfigurationError   ExecutionError    ProbeFailure          │
        │  (CONFIG)             (EXECUTION)       (PROBE)               │
        │                                                               │
        │  DeploymentFailedError                  UserCancelled         │
        │  (DEPLOYMENT)                           (CANCELLED)           │
        │       │                                                       │
        │  TimeoutError         DeployAndRollbackError                  │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ExecutionError("railway up", "exit status 1", stderr="boom")
    >>> error.category
    <ErrorCategory.EXECUTION: 'EXECUTION'>
    >>> error.with_context(phase="deploying").context.phase
    'deploying'

Tags:
    error-handling, exception-hierarchy, deploy, rollback, shipwright
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and reporting."""

    CONFIG = "CONFIG"                # Missing tool, env var, descriptor file
    EXECUTION = "EXECUTION"          # External command failed or timed out
    DEPLOYMENT = "DEPLOYMENT"        # Remote platform reports failure
    PROBE = "PROBE"                  # Single verification probe assertion
    CANCELLED = "CANCELLED"          # Interactive decline
    INTERNAL = "INTERNAL"            # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging.

    Attributes:
        run_id: Invocation identifier
        phase: Orchestrator phase when the error was raised
        step: Step name within the phase
        command: External command line, if any
        url: Target URL, if any
        revision: Revision id involved, if any
        metadata: Additional key-value pairs
    """

    run_id: str | None = None
    phase: str | None = None
    step: str | None = None
    command: str | None = None
    url: str | None = None
    revision: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["run_id", "phase", "step", "command", "url", "revision"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ShipwrightError(Exception):
    """
    Base exception for all shipwright errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = ShipwrightError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'ShipwrightError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ShipwrightError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DeploymentFailedError("Railway deployment failed").with_context(
                phase="waitingForReadiness",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(ShipwrightError):
    """
    Preflight or configuration error.

    Raised before any remote mutation. Never retryable - the environment
    must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(ShipwrightError):
    """An external command failed, timed out, or could not be spawned."""

    default_category = ErrorCategory.EXECUTION
    default_retryable = False

    def __init__(
        self,
        command: str,
        message: str,
        *,
        stderr: str = "",
        cause: Exception | None = None,
    ):
        self.command = command
        self.stderr = stderr
        text = f"Command failed: {command}\n{message}"
        if stderr:
            text = f"{text}\n{stderr.strip()}"
        super().__init__(text, cause=cause, context=ErrorContext(command=command))


# =============================================================================
# DEPLOYMENT ERRORS
# =============================================================================


class DeploymentFailedError(ShipwrightError):
    """The remote platform reported a failed deployment, or verification failed."""

    default_category = ErrorCategory.DEPLOYMENT
    default_retryable = False


class TimeoutError(DeploymentFailedError):  # noqa: A001
    """A bounded wait was exceeded. Handled exactly like a deployment failure."""

    def __init__(self, message: str, *, waited_ms: int | None = None, **kwargs: Any):
        self.waited_ms = waited_ms
        super().__init__(message, **kwargs)


class DeployAndRollbackError(DeploymentFailedError):
    """A deployment failed and the automatic rollback failed as well.

    Both errors are kept; ``str()`` shows both messages.
    """

    def __init__(self, deploy_error: Exception, rollback_error: Exception):
        self.deploy_error = deploy_error
        self.rollback_error = rollback_error
        super().__init__(
            f"Deployment failed: {deploy_error}\nRollback also failed: {rollback_error}",
            cause=deploy_error,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["deploy_error"] = str(self.deploy_error)
        result["rollback_error"] = str(self.rollback_error)
        return result


# =============================================================================
# PROBE / INTERACTION ERRORS
# =============================================================================


class ProbeFailure(ShipwrightError):
    """A single verification probe assertion failed.

    Recorded in the report by the suite; never escapes it.
    """

    default_category = ErrorCategory.PROBE
    default_retryable = True


class UserCancelled(ShipwrightError):
    """The operator declined an interactive confirmation."""

    default_category = ErrorCategory.CANCELLED
    default_retryable = False

    def __init__(self, message: str = "Rollback cancelled by user", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def triggers_rollback(error: Exception) -> bool:
    """Whether a failure in the deploy path should escalate to a rollback."""
    return isinstance(error, (ExecutionError, DeploymentFailedError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ShipwrightError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ShipwrightError",
    "ConfigurationError",
    "ExecutionError",
    "DeploymentFailedError",
    "TimeoutError",
    "DeployAndRollbackError",
    "ProbeFailure",
    "UserCancelled",
    "triggers_rollback",
    "categorize_error",
]
