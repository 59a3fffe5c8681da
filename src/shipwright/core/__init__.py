"""
Core primitives shared by the deploy pipeline and the CLI.

- :mod:`shipwright.core.errors` - typed error hierarchy
- :mod:`shipwright.core.settings` - environment-driven settings
"""

from shipwright.core.errors import (
    ConfigurationError,
    DeployAndRollbackError,
    DeploymentFailedError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    ProbeFailure,
    ShipwrightError,
    TimeoutError,
    UserCancelled,
)
from shipwright.core.settings import ShipwrightSettings

__all__ = [
    "ConfigurationError",
    "DeployAndRollbackError",
    "DeploymentFailedError",
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "ProbeFailure",
    "ShipwrightError",
    "ShipwrightSettings",
    "TimeoutError",
    "UserCancelled",
]
