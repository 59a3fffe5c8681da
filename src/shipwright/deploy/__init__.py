"""Deploy, verify and roll back a hosted backend service.

Why This Matters:
    A deploy that "succeeded" on the platform can still serve a broken
    application. Shipwright treats platform readiness as necessary but not
    sufficient: after the platform reports success it probes the live
    service, and if the probes fail it puts the previous revision back.

Key Concepts:
    CommandRunner: One external command with a timeout; typed failures.
    PlatformClient: The hosting platform CLI protocol, plus ``classify_status``.
    WorkingTree: The git protocol used for revisions and rollback checkouts.
    ReadinessPoller: Bounded fixed-interval wait for a terminal platform status.
    VerificationSuite: Nine ordered, isolated probes and their report.
    DeployOrchestrator: preflight -> deploy -> readiness -> verify -> finalize,
        with automatic rollback on failure.
    RollbackOrchestrator: select target -> confirm -> checkout -> redeploy ->
        re-verify.
    DeploymentHistory: The persisted record of the last successful deploy.
    InvocationLock: One deploy or rollback per project directory at a time.

Architecture::

    ┌──────────────────────────────────────────────────────────────┐
    │                         shipwright                            │
    ├──────────────────────────┬───────────────────────────────────┤
    │   DeployOrchestrator ───▶│   RollbackOrchestrator            │
    ├──────────────┬───────────┴──────┬────────────────────────────┤
    │ ReadinessPoller │ VerificationSuite │ DeploymentHistory       │
    ├──────────────┼──────────────────┼────────────────────────────┤
    │ PlatformClient / WorkingTree     │ ProbeClient (httpx, ws)    │
    ├──────────────┴──────────────────┴────────────────────────────┤
    │              CommandRunner (subprocess)                       │
    └──────────────────────────────────────────────────────────────┘

Tags:
    deploy, rollback, verification, probes, railway, git, readiness

Example:
    >>> from shipwright.deploy import DeployConfig
    >>> DeployConfig(skip_tests=True).poll_interval_ms
    10000
"""

from __future__ import annotations

from shipwright.deploy.commands import CommandRunner
from shipwright.deploy.config import DeployConfig, RollbackConfig, VerifyConfig
from shipwright.deploy.deployer import DeployOrchestrator, DeployOutcome
from shipwright.deploy.history import DeploymentHistory
from shipwright.deploy.locking import InvocationLock
from shipwright.deploy.platform import PlatformClient, StatusSignal, classify_status
from shipwright.deploy.probes import ProbeClient
from shipwright.deploy.readiness import ReadinessPoller
from shipwright.deploy.results import (
    CurrentDeployment,
    DeploymentRecord,
    DeployPhase,
    ProbeResult,
    ProbeStatus,
    ProbeSummary,
    RollbackKind,
    RollbackOutcome,
    RollbackTarget,
    StepRecord,
    StepStatus,
    VerificationReport,
)
from shipwright.deploy.rollback import ConsolePromptSession, PromptSession, RollbackOrchestrator
from shipwright.deploy.vcs import WorkingTree
from shipwright.deploy.verification import PROBES, VerificationSuite, build_recommendations

__all__ = [
    "PROBES",
    "CommandRunner",
    "ConsolePromptSession",
    "CurrentDeployment",
    "DeployConfig",
    "DeployOrchestrator",
    "DeployOutcome",
    "DeployPhase",
    "DeploymentHistory",
    "DeploymentRecord",
    "InvocationLock",
    "PlatformClient",
    "ProbeClient",
    "ProbeResult",
    "ProbeStatus",
    "ProbeSummary",
    "PromptSession",
    "ReadinessPoller",
    "RollbackConfig",
    "RollbackKind",
    "RollbackOrchestrator",
    "RollbackOutcome",
    "RollbackTarget",
    "StatusSignal",
    "StepRecord",
    "StepStatus",
    "VerificationReport",
    "VerificationSuite",
    "VerifyConfig",
    "WorkingTree",
    "build_recommendations",
    "classify_status",
]
