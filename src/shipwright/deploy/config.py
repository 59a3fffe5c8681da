"""Per-run configuration models for shipwright.

Each CLI command builds one of these models via ``from_env()``. Every
field can be set from a ``SHIPWRIGHT_*`` environment variable, and
keyword overrides (usually CLI flags) win over the environment.

Key Concepts:
    DeployConfig: Timeouts, poll cadence and flags for ``shipwright deploy``.
    RollbackConfig: Target selection and flags for ``shipwright rollback``.
    VerifyConfig: Target URL and probe timing for ``shipwright verify``.

Architecture Decisions:
    - All durations are integer milliseconds. Conversion to seconds happens
      only at the ``subprocess``/``httpx``/``time.sleep`` boundary.
    - ``model_validator(mode="after")`` auto-generates ``run_id`` so every
      invocation is traceable in logs.
    - Override precedence: kwargs > env vars > field defaults.

Related Modules:
    - :mod:`shipwright.core.settings` - Process-wide settings (paths, tools)
    - :mod:`shipwright.deploy.deployer` - Consumer of DeployConfig
    - :mod:`shipwright.deploy.rollback` - Consumer of RollbackConfig

Tags:
    config, pydantic, deployment, rollback, verification, environment
"""

from __future__ import annotations

import os
import uuid
from typing import Any

from pydantic import BaseModel, Field, model_validator

DEFAULT_COMMAND_TIMEOUT_MS = 30_000
DEFAULT_DEPLOY_TIMEOUT_MS = 300_000
DEFAULT_MAX_WAIT_MS = 180_000
DEFAULT_POLL_INTERVAL_MS = 10_000
DEFAULT_STABILIZATION_MS = 30_000
DEFAULT_PROBE_TIMEOUT_MS = 10_000
DEFAULT_INTER_PROBE_DELAY_MS = 500

_TRUE_VALUES = ("true", "1", "yes")


def _values_from_env(env_map: dict[str, str], model: type[BaseModel]) -> dict[str, Any]:
    """Read the mapped env vars, coercing ints and bools by field annotation."""
    values: dict[str, Any] = {}
    for field_name, env_var in env_map.items():
        env_val = os.environ.get(env_var)
        if env_val is None:
            continue
        annotation = model.model_fields[field_name].annotation
        if annotation is bool:
            values[field_name] = env_val.lower() in _TRUE_VALUES
        elif annotation is int:
            values[field_name] = int(env_val)
        else:
            values[field_name] = env_val
    return values


class _RunConfig(BaseModel):
    """Fields every command shares."""

    command_timeout_ms: int = Field(
        default=DEFAULT_COMMAND_TIMEOUT_MS,
        gt=0,
        description="Timeout for ordinary external commands",
    )
    deploy_timeout_ms: int = Field(
        default=DEFAULT_DEPLOY_TIMEOUT_MS,
        gt=0,
        description="Timeout for the platform deploy trigger",
    )
    max_wait_ms: int = Field(
        default=DEFAULT_MAX_WAIT_MS,
        gt=0,
        description="Upper bound on waiting for the platform to report readiness",
    )
    poll_interval_ms: int = Field(
        default=DEFAULT_POLL_INTERVAL_MS,
        gt=0,
        description="Fixed delay between readiness polls",
    )
    stabilization_ms: int = Field(
        default=DEFAULT_STABILIZATION_MS,
        ge=0,
        description="Delay between readiness and verification",
    )
    probe_timeout_ms: int = Field(
        default=DEFAULT_PROBE_TIMEOUT_MS,
        gt=0,
        description="Per-probe network timeout",
    )
    inter_probe_delay_ms: int = Field(
        default=DEFAULT_INTER_PROBE_DELAY_MS,
        ge=0,
        description="Pause between verification probes",
    )

    # Internal
    run_id: str = Field(default="", description="Unique run identifier (auto-generated)")

    @model_validator(mode="after")
    def _set_defaults(self):
        if not self.run_id:
            self.run_id = uuid.uuid4().hex[:12]
        return self


_SHARED_ENV = {
    "command_timeout_ms": "SHIPWRIGHT_COMMAND_TIMEOUT_MS",
    "deploy_timeout_ms": "SHIPWRIGHT_DEPLOY_TIMEOUT_MS",
    "max_wait_ms": "SHIPWRIGHT_MAX_WAIT_MS",
    "poll_interval_ms": "SHIPWRIGHT_POLL_INTERVAL_MS",
    "stabilization_ms": "SHIPWRIGHT_STABILIZATION_MS",
    "probe_timeout_ms": "SHIPWRIGHT_PROBE_TIMEOUT_MS",
    "inter_probe_delay_ms": "SHIPWRIGHT_INTER_PROBE_DELAY_MS",
}


class DeployConfig(_RunConfig):
    """Configuration for one ``shipwright deploy`` invocation.

    Example::

        config = DeployConfig.from_env(skip_tests=True, deploy_timeout_ms=600_000)
    """

    verify_only: bool = Field(default=False, description="Only run the verification suite")
    rollback: bool = Field(default=False, description="Roll back to the previous revision instead")
    skip_tests: bool = Field(default=False, description="Skip local tests during preflight")
    auto_rollback: bool = Field(default=True, description="Roll back automatically on failure")
    target_url: str | None = Field(default=None, description="Override the discovered public URL")

    @classmethod
    def from_env(cls, **overrides: Any) -> DeployConfig:
        """Create config from SHIPWRIGHT_* environment variables."""
        env_map = {
            **_SHARED_ENV,
            "skip_tests": "SHIPWRIGHT_SKIP_TESTS",
            "auto_rollback": "SHIPWRIGHT_AUTO_ROLLBACK",
        }
        values = _values_from_env(env_map, cls)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class RollbackConfig(_RunConfig):
    """Configuration for one ``shipwright rollback`` invocation."""

    commit: str | None = Field(default=None, description="Explicit revision to roll back to")
    previous: bool = Field(default=False, description="Roll back to HEAD~1")
    force: bool = Field(default=False, description="Skip the interactive confirmation")
    verify: bool = Field(default=True, description="Run the verification suite afterwards")
    recent_limit: int = Field(default=10, gt=0, description="Revisions shown by the interactive menu")

    @classmethod
    def from_env(cls, **overrides: Any) -> RollbackConfig:
        """Create config from SHIPWRIGHT_* environment variables."""
        env_map = {
            **_SHARED_ENV,
            "force": "SHIPWRIGHT_ROLLBACK_FORCE",
            "verify": "SHIPWRIGHT_ROLLBACK_VERIFY",
        }
        values = _values_from_env(env_map, cls)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class VerifyConfig(BaseModel):
    """Configuration for one verification run."""

    target_url: str | None = Field(default=None, description="Base URL to probe")
    probe_timeout_ms: int = Field(default=DEFAULT_PROBE_TIMEOUT_MS, gt=0)
    inter_probe_delay_ms: int = Field(default=DEFAULT_INTER_PROBE_DELAY_MS, ge=0)
    run_id: str = Field(default="", description="Unique run identifier (auto-generated)")

    @model_validator(mode="after")
    def _set_defaults(self) -> VerifyConfig:
        if not self.run_id:
            self.run_id = uuid.uuid4().hex[:12]
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> VerifyConfig:
        """Create config from SHIPWRIGHT_* environment variables."""
        env_map = {
            "probe_timeout_ms": "SHIPWRIGHT_PROBE_TIMEOUT_MS",
            "inter_probe_delay_ms": "SHIPWRIGHT_INTER_PROBE_DELAY_MS",
        }
        values = _values_from_env(env_map, cls)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
