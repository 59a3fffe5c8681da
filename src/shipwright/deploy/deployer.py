"""Deploy orchestration.

``DeployOrchestrator`` drives one deployment through its phases::

    preflight -> deploying -> waitingForReadiness -> verifying -> finalizing -> completed
                     \\______________ failure ______________/
                                        |
                                 automatic rollback -> rolledBack | failed

Preflight is read-only. A preflight failure ends the run in ``failed`` with
no rollback. A failure after the deploy was triggered marks the running step
``failed`` with the original message, then rolls back to the revision
captured during preflight. A successful rollback re-raises the original
error. A rollback that errors, or whose re-verification fails, leaves the
run in ``failed`` and raises :class:`DeployAndRollbackError` carrying both.

Every phase transition is logged as ``deploy.phase`` and recorded in the
:class:`DeploymentRecord`. The orchestrator keeps its :class:`DeployOutcome`
on ``self.outcome`` so callers can report on it after an exception.
"""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from shipwright.core.errors import (
    ConfigurationError,
    DeployAndRollbackError,
    DeploymentFailedError,
    ExecutionError,
    ShipwrightError,
    triggers_rollback,
)
from shipwright.core.settings import ShipwrightSettings
from shipwright.deploy.commands import CommandRunner
from shipwright.deploy.config import DeployConfig, RollbackConfig
from shipwright.deploy.history import DeploymentHistory
from shipwright.deploy.platform import PlatformClient, describe_status
from shipwright.deploy.readiness import ReadinessPoller
from shipwright.deploy.results import (
    DeploymentRecord,
    DeployPhase,
    RollbackKind,
    RollbackOutcome,
    RollbackTarget,
    StepStatus,
    VerificationReport,
)
from shipwright.deploy.rollback import RollbackOrchestrator
from shipwright.deploy.vcs import WorkingTree
from shipwright.deploy.verification import VerificationSuite
from shipwright.logging import bind_context, get_logger

logger = get_logger(__name__)

STEP_PREFLIGHT = "preflight"
STEP_DEPLOYMENT = "deployment"
STEP_READINESS = "readiness"
STEP_VERIFICATION = "verification"
STEP_FINALIZE = "finalize"


@dataclass
class DeployOutcome:
    """Where a deploy run ended and what it produced."""

    phase: DeployPhase
    record: DeploymentRecord
    report: VerificationReport | None = None
    error: Exception | None = None
    rollback_error: Exception | None = None
    rollback: RollbackOutcome | None = None

    @property
    def success(self) -> bool:
        return self.phase is DeployPhase.COMPLETED


RollbackFactory = Callable[[RollbackConfig], RollbackOrchestrator]


class DeployOrchestrator:
    """Runs preflight, deploy, readiness, verification and finalize.

    Example::

        orchestrator = DeployOrchestrator(ShipwrightSettings(), DeployConfig.from_env())
        outcome = orchestrator.run()
        outcome.record.summary
    """

    def __init__(
        self,
        settings: ShipwrightSettings,
        config: DeployConfig,
        *,
        runner: CommandRunner | None = None,
        platform: PlatformClient | None = None,
        tree: WorkingTree | None = None,
        poller: ReadinessPoller | None = None,
        suite: VerificationSuite | None = None,
        history: DeploymentHistory | None = None,
        rollback_factory: RollbackFactory | None = None,
        env: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.config = config
        self.runner = runner or CommandRunner(settings.project_dir)
        self.platform = platform or PlatformClient(
            self.runner,
            cli=settings.platform_cli,
            domain_suffix=settings.platform_domain,
            command_timeout_ms=config.command_timeout_ms,
            deploy_timeout_ms=config.deploy_timeout_ms,
        )
        self.tree = tree or WorkingTree(self.runner, timeout_ms=config.command_timeout_ms)
        self.poller = poller or ReadinessPoller()
        self.suite = suite or VerificationSuite(
            probe_timeout_ms=config.probe_timeout_ms,
            inter_probe_delay_ms=config.inter_probe_delay_ms,
        )
        self.history = history or DeploymentHistory(settings.state_path)
        self.rollback_factory = rollback_factory or self._default_rollback
        self.env = env if env is not None else os.environ
        self.sleep = sleep
        self.outcome = DeployOutcome(
            phase=DeployPhase.PREFLIGHT,
            record=DeploymentRecord(run_id=config.run_id),
        )

    @property
    def phase(self) -> DeployPhase:
        return self.outcome.phase

    @property
    def record(self) -> DeploymentRecord:
        return self.outcome.record

    # -- entry points -----------------------------------------------------

    def run(self) -> DeployOutcome:
        """Full deployment. Returns the outcome on success, raises on failure."""
        bind_context(run_id=self.config.run_id, command="deploy")
        logger.info("deploy.started", run_id=self.config.run_id)

        self._enter(DeployPhase.PREFLIGHT)
        try:
            self.preflight()
        except ShipwrightError as e:
            self.record.add_step(STEP_PREFLIGHT, StepStatus.FAILED, str(e))
            self._fail(e)
            raise

        step = STEP_DEPLOYMENT
        try:
            self._enter(DeployPhase.DEPLOYING)
            self.deploy()

            step = STEP_READINESS
            self._enter(DeployPhase.WAITING_FOR_READINESS)
            self.await_readiness()

            step = STEP_VERIFICATION
            self._enter(DeployPhase.VERIFYING)
            self.verify()
        except ShipwrightError as e:
            if not triggers_rollback(e):
                self.record.add_step(step, StepStatus.FAILED, str(e))
                self._fail(e)
                raise
            self._recover(step, e)

        self._enter(DeployPhase.FINALIZING)
        self.finalize()
        self._enter(DeployPhase.COMPLETED)
        return self.outcome

    def verify_only(self) -> VerificationReport:
        """Run the verification suite against the configured or discovered URL."""
        bind_context(run_id=self.config.run_id, command="deploy")
        self._enter(DeployPhase.VERIFYING)
        url = self._resolve_url()
        report = self.suite.run(url)
        self.outcome.report = report
        self.record.target_url = url
        if not report.summary.success:
            self._fail(DeploymentFailedError(self._verification_message(report)))
        else:
            self._enter(DeployPhase.COMPLETED)
        return report

    def rollback(self) -> RollbackOutcome:
        """Roll back to the previous revision (``deploy --rollback``)."""
        bind_context(run_id=self.config.run_id, command="deploy")
        orchestrator = self.rollback_factory(self._rollback_config(force=False, previous=True))
        outcome = orchestrator.run()
        self.outcome.rollback = outcome
        self._enter(DeployPhase.ROLLED_BACK)
        return outcome

    # -- phases -------------------------------------------------------------

    def preflight(self) -> None:
        """Read-only checks. Never invokes a remote-mutating command."""
        record = self.record
        record.add_step(STEP_PREFLIGHT, StepStatus.STARTED)

        try:
            version = self.platform.version()
        except ExecutionError as e:
            raise ConfigurationError(
                f"{self.settings.platform_cli} CLI not installed or not on PATH",
                cause=e,
            ) from e
        try:
            account = self.platform.whoami()
        except ExecutionError as e:
            raise ConfigurationError(
                f"Not logged in to {self.settings.platform_cli}; run '{self.settings.platform_cli} login'",
                cause=e,
            ) from e
        logger.info("preflight.platform_ok", version=version, account=account)

        missing = [name for name in self.settings.required_env if not self.env.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        if self.config.skip_tests:
            logger.info("preflight.tests_skipped")
        else:
            try:
                self.runner.execute(self.settings.test_command, self.config.deploy_timeout_ms)
            except ExecutionError as e:
                raise ConfigurationError("Local tests failed", cause=e) from e
            logger.info("preflight.tests_passed", command=self.settings.test_command)

        self._inspect_working_tree()
        self._check_manifest()

        missing_files = [
            name for name in self.settings.required_files if not (self.settings.project_dir / name).exists()
        ]
        if missing_files:
            raise ConfigurationError(f"Missing required files: {', '.join(missing_files)}")

        record.add_step(STEP_PREFLIGHT, StepStatus.COMPLETED)

    def _inspect_working_tree(self) -> None:
        record = self.record
        try:
            if self.tree.has_uncommitted_changes():
                logger.warning("preflight.uncommitted_changes")
            record.branch = self.tree.current_branch()
            record.commit = self.tree.current_revision(short=True)
        except ExecutionError as e:
            logger.warning("preflight.git_unavailable", error=str(e))
            return
        bind_context(revision=record.commit)
        try:
            record.previous_commit = self.tree.previous_revision()
        except ExecutionError as e:
            logger.warning("preflight.no_previous_revision", error=str(e))
        logger.info(
            "preflight.revision",
            branch=record.branch,
            commit=record.commit,
            previous_commit=record.previous_commit,
        )

    def _check_manifest(self) -> None:
        """The package manifest pins the runtime and defines the required scripts."""
        name = self.settings.manifest_file
        if not name:
            return
        try:
            manifest = json.loads((self.settings.project_dir / name).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Missing required files: {name}", cause=e) from e
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read {name}: {e}", cause=e) from e
        if not isinstance(manifest, dict):
            raise ConfigurationError(f"{name} is not a JSON object")

        engine = self.settings.required_engine
        engines = manifest.get("engines")
        if engine and not (isinstance(engines, dict) and engines.get(engine)):
            raise ConfigurationError(f"{name} missing {engine} engine specification")

        scripts = manifest.get("scripts")
        scripts = scripts if isinstance(scripts, dict) else {}
        missing = [script for script in self.settings.required_scripts if not scripts.get(script)]
        if missing:
            raise ConfigurationError(f"Missing required scripts in {name}: {', '.join(missing)}")
        logger.info("preflight.manifest_ok", manifest=name)

    def deploy(self) -> None:
        self.record.add_step(STEP_DEPLOYMENT, StepStatus.STARTED)
        try:
            before = describe_status(self.platform.status())
            logger.info("deploy.platform_status", status=before)
        except ExecutionError as e:
            logger.warning("deploy.status_unavailable", error=str(e))
        self.platform.trigger_deploy()
        self.record.add_step(STEP_DEPLOYMENT, StepStatus.COMPLETED)

    def await_readiness(self) -> None:
        self.record.add_step(STEP_READINESS, StepStatus.STARTED)
        poll = self.poller.wait_for_ready(
            self.platform.status,
            max_wait_ms=self.config.max_wait_ms,
            interval_ms=self.config.poll_interval_ms,
        )
        self.record.target_url = self._resolve_url()
        self.record.add_step(
            STEP_READINESS,
            StepStatus.COMPLETED,
            f"ready after {poll.attempts} polls, url {self.record.target_url}",
        )

    def verify(self) -> VerificationReport:
        self.record.add_step(STEP_VERIFICATION, StepStatus.STARTED)
        if self.config.stabilization_ms:
            logger.info("deploy.stabilizing", seconds=self.config.stabilization_ms / 1000)
            self.sleep(self.config.stabilization_ms / 1000)
        report = self.suite.run(self.record.target_url or self._resolve_url())
        self.outcome.report = report
        if not report.summary.success:
            logger.warning("deploy.verification_failed", failed_probes=[r.name for r in report.failed_probes()])
            raise DeploymentFailedError(self._verification_message(report))
        self.record.add_step(STEP_VERIFICATION, StepStatus.COMPLETED)
        return report

    def finalize(self) -> None:
        record = self.record
        record.add_step(STEP_FINALIZE, StepStatus.COMPLETED)
        record.mark_complete(success=True)
        try:
            self.history.save(record)
        except OSError as e:
            logger.warning("deploy.history_not_saved", path=str(self.history.path), error=str(e))
        logger.info(
            "deploy.summary",
            version=record.commit,
            url=record.target_url,
            duration_s=round(record.duration_seconds),
            steps=len(record.steps),
        )

    # -- failure handling ---------------------------------------------------

    def _recover(self, step: str, error: ShipwrightError) -> None:
        """Mark the step failed, roll back, and raise."""
        self.record.add_step(step, StepStatus.FAILED, str(error))
        error.with_context(phase=self.phase.value, step=step)
        logger.error("deploy.failed", step=step, error=str(error), error_type=type(error).__name__)
        self._fail(error)

        previous = self.record.previous_commit
        if not self.config.auto_rollback or not previous:
            logger.warning(
                "deploy.rollback_skipped",
                reason="disabled" if not self.config.auto_rollback else "no previous revision",
            )
            raise error

        logger.info("deploy.rollback_started", revision=previous)
        target = RollbackTarget(
            kind=RollbackKind.PREVIOUS_COMMIT,
            revision_id=previous,
            description=f"Previous commit: {previous[:8]}",
        )
        try:
            orchestrator = self.rollback_factory(self._rollback_config(force=True))
            self.outcome.rollback = orchestrator.run(target)
        except ShipwrightError as rollback_error:
            self.outcome.rollback_error = rollback_error
            logger.error("deploy.rollback_failed", error=str(rollback_error))
            raise DeployAndRollbackError(error, rollback_error) from error

        report = self.outcome.rollback.report
        if not self.outcome.rollback.success:
            message = "Rollback verification failed"
            if report is not None:
                message = self._verification_message(report, prefix=message)
            rollback_error = DeploymentFailedError(message).with_context(step="rollback", revision=previous)
            self.outcome.rollback_error = rollback_error
            logger.error(
                "deploy.rollback_failed",
                error=message,
                failed_probes=[r.name for r in report.failed_probes()] if report is not None else [],
            )
            raise DeployAndRollbackError(error, rollback_error) from error

        self._enter(DeployPhase.ROLLED_BACK)
        raise error

    def _fail(self, error: Exception) -> None:
        self.outcome.error = error
        self._enter(DeployPhase.FAILED)
        if not self.record.is_complete:
            self.record.mark_complete(success=False)

    # -- helpers --------------------------------------------------------------

    def _enter(self, phase: DeployPhase) -> None:
        self.outcome.phase = phase
        bind_context(phase=phase.value)
        logger.info("deploy.phase", phase=phase.value)

    def _resolve_url(self) -> str:
        if self.config.target_url:
            return self.config.target_url
        discovered = None
        try:
            discovered = self.platform.discover_url()
        except ExecutionError as e:
            logger.warning("deploy.url_discovery_failed", error=str(e))
        return self.settings.resolve_target_url(discovered)

    @staticmethod
    def _verification_message(report: VerificationReport, prefix: str = "Verification failed") -> str:
        return f"{prefix}: {report.summary.failed}/{report.summary.total} probes failed"

    def _rollback_config(self, *, force: bool, previous: bool = False) -> RollbackConfig:
        shared = self.config.model_dump(
            include={
                "command_timeout_ms",
                "deploy_timeout_ms",
                "max_wait_ms",
                "poll_interval_ms",
                "stabilization_ms",
                "probe_timeout_ms",
                "inter_probe_delay_ms",
                "run_id",
            }
        )
        return RollbackConfig(**shared, force=force, previous=previous)

    def _default_rollback(self, config: RollbackConfig) -> RollbackOrchestrator:
        return RollbackOrchestrator(
            self.settings,
            config,
            runner=self.runner,
            platform=self.platform,
            tree=self.tree,
            poller=self.poller,
            suite=self.suite,
            history=self.history,
            sleep=self.sleep,
        )
