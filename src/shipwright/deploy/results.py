"""Result models for shipwright.

Pydantic v2 models that capture structured outcomes from deployments,
rollbacks and verification runs. The models form a composition hierarchy:
individual probe results roll up into a verification report, step records
roll up into a deployment record.

Key Concepts:
    StepRecord: One status line of a deployment (started/completed/failed).
    DeploymentRecord: Append-only audit trail of one deploy run. Created once,
        finalised with ``mark_complete()``, persisted once, never reopened.
    ProbeResult / ProbeSummary / VerificationReport: Output of the
        verification suite. The report is frozen once produced.
    RollbackTarget: The revision a rollback will switch to, and why.
    CurrentDeployment: Best-effort snapshot gathered before a rollback.

Architecture Decisions:
    - Pydantic v2 BaseModel: ``model_dump_json(indent=2)`` for persistence,
      ``model_validate_json()`` for restoration.
    - ``mark_complete()`` pattern: Caller invokes when done, the model
      computes end time, duration and the completion flag.
    - Frozen report: ``VerificationReport`` and its members use
      ``frozen=True`` models and tuples, so a produced report cannot change.

Related Modules:
    - :mod:`shipwright.deploy.verification` - Produces VerificationReport
    - :mod:`shipwright.deploy.deployer` - Produces DeploymentRecord
    - :mod:`shipwright.deploy.history` - Persists DeploymentRecord

Tags:
    results, models, pydantic, deployment, verification, rollback
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Shared enums
# ---------------------------------------------------------------------------


class StepStatus(str, Enum):
    """Status of one deployment step."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class ProbeStatus(str, Enum):
    """Outcome of one verification probe."""

    PASS = "pass"
    FAIL = "fail"


class RollbackKind(str, Enum):
    """How a rollback target was chosen."""

    EXPLICIT_COMMIT = "explicitCommit"
    PREVIOUS_COMMIT = "previousCommit"
    INTERACTIVE_COMMIT = "interactiveCommit"


class DeployPhase(str, Enum):
    """Phases of the deploy orchestrator."""

    PREFLIGHT = "preflight"
    DEPLOYING = "deploying"
    WAITING_FOR_READINESS = "waitingForReadiness"
    VERIFYING = "verifying"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ROLLED_BACK = "rolledBack"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Deployment record
# ---------------------------------------------------------------------------


class StepRecord(BaseModel):
    """One entry in a deployment's audit trail."""

    name: str
    status: StepStatus
    detail: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class RecordClosedError(RuntimeError):
    """Raised when a completed DeploymentRecord is modified."""


class DeploymentRecord(BaseModel):
    """Append-only record of one deploy run."""

    run_id: str = ""
    commit: str | None = None
    previous_commit: str | None = None
    branch: str | None = None
    target_url: str | None = None
    started_at: datetime = Field(default_factory=_utcnow)
    ended_at: datetime | None = None
    duration_seconds: float = 0.0
    steps: list[StepRecord] = Field(default_factory=list)
    success: bool = False
    completed_at: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def add_step(self, name: str, status: StepStatus | str, detail: str | None = None) -> StepRecord:
        """Append a step. Timestamps never go backwards."""
        if self.is_complete:
            raise RecordClosedError("Deployment record is complete and cannot be modified")
        timestamp = _utcnow()
        if self.steps and timestamp < self.steps[-1].timestamp:
            timestamp = self.steps[-1].timestamp
        step = StepRecord(name=name, status=StepStatus(status), detail=detail, timestamp=timestamp)
        self.steps.append(step)
        return step

    def mark_complete(self, success: bool) -> None:
        """Finalize the record: end time, duration, success flag."""
        if self.is_complete:
            raise RecordClosedError("Deployment record is already complete")
        now = _utcnow()
        if self.steps and now < self.steps[-1].timestamp:
            now = self.steps[-1].timestamp
        self.ended_at = now
        self.duration_seconds = (now - self.started_at).total_seconds()
        self.success = success
        self.completed_at = now

    @property
    def summary(self) -> str:
        return (
            f"version={self.commit or 'unknown'} url={self.target_url or 'unknown'} "
            f"duration={self.duration_seconds:.0f}s steps={len(self.steps)}"
        )


# ---------------------------------------------------------------------------
# Verification results
# ---------------------------------------------------------------------------


class ProbeResult(BaseModel):
    """Result of a single verification probe."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: ProbeStatus
    detail: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == ProbeStatus.PASS

    @property
    def error(self) -> str | None:
        return self.detail.get("error") if not self.passed else None


class ProbeSummary(BaseModel):
    """Pass/fail counts of a verification run."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    passed: int = 0
    failed: int = 0
    success: bool = True
    duration_ms: float = 0.0

    @classmethod
    def from_results(cls, results: list[ProbeResult] | tuple[ProbeResult, ...], duration_ms: float = 0.0) -> ProbeSummary:
        passed = sum(1 for r in results if r.passed)
        failed = len(results) - passed
        return cls(
            total=len(results),
            passed=passed,
            failed=failed,
            success=failed == 0,
            duration_ms=duration_ms,
        )


class VerificationReport(BaseModel):
    """Immutable output of one verification suite run."""

    model_config = ConfigDict(frozen=True)

    target: str
    started_at: datetime
    completed_at: datetime
    results: tuple[ProbeResult, ...] = ()
    summary: ProbeSummary = Field(default_factory=ProbeSummary)
    recommendations: tuple[str, ...] = ()

    def failed_probes(self) -> list[ProbeResult]:
        return [r for r in self.results if not r.passed]


# ---------------------------------------------------------------------------
# Rollback models
# ---------------------------------------------------------------------------


class RollbackTarget(BaseModel):
    """The revision a rollback switches to."""

    model_config = ConfigDict(frozen=True)

    kind: RollbackKind
    revision_id: str
    description: str = ""


class CurrentDeployment(BaseModel):
    """What is live right now, as far as can be told. Every field is best-effort."""

    url: str | None = None
    commit: str | None = None
    branch: str | None = None
    platform_status: str = "unknown"
    last_deployed_at: datetime | None = None
    last_deployed_commit: str | None = None


class RollbackOutcome(BaseModel):
    """Result of a completed rollback."""

    target: RollbackTarget
    current: CurrentDeployment
    report: VerificationReport | None = None
    success: bool = True


class PollState(str, Enum):
    """States of the readiness poller."""

    POLLING = "polling"
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timedOut"


class PollOutcome(BaseModel):
    """How a successful readiness wait went."""

    state: PollState
    attempts: int
    elapsed_ms: float
    last_status: str | None = None

