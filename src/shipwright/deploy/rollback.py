"""Rollback orchestration.

Switches the working tree to an earlier revision, redeploys it, waits for
the platform to report readiness and optionally re-verifies the service.

Key Concepts:
    CurrentDeployment: Gathered first, every field best-effort.
    RollbackTarget: Chosen from ``--commit``, ``--previous`` or an
        interactive menu over recent revisions.
    PromptSession: Per-invocation interactive input, released via ``with``
        on every exit path. Tests inject a scripted session.

Architecture Decisions:
    - Confirmation (unless forced) happens before any working-tree change.
      Anything but ``yes`` raises :class:`UserCancelled`.
    - The checkout is verified. If the tree is not at the requested revision
      afterwards the rollback fails instead of redeploying the wrong code.
    - On checkout/deploy/readiness failure the original revision is restored.
      A restore failure is logged and attached to the raised error as
      ``restore_error`` without replacing it.
    - Post-rollback verification is reported, never raised.

Related Modules:
    - :mod:`shipwright.deploy.deployer` - Triggers automatic rollbacks
    - :mod:`shipwright.deploy.readiness` - Shared readiness poller
    - :mod:`shipwright.deploy.verification` - Shared verification suite

Tags:
    rollback, git, deployment, interactive, recovery
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from rich.console import Console
from rich.prompt import Prompt

from shipwright.core.errors import ConfigurationError, ExecutionError, ShipwrightError, UserCancelled
from shipwright.core.settings import ShipwrightSettings
from shipwright.deploy.commands import CommandRunner
from shipwright.deploy.config import RollbackConfig
from shipwright.deploy.history import DeploymentHistory
from shipwright.deploy.platform import PlatformClient, describe_status
from shipwright.deploy.readiness import ReadinessPoller
from shipwright.deploy.results import (
    CurrentDeployment,
    RollbackKind,
    RollbackOutcome,
    RollbackTarget,
    VerificationReport,
)
from shipwright.deploy.vcs import WorkingTree, revision_matches
from shipwright.deploy.verification import VerificationSuite
from shipwright.logging import bind_context, get_logger, push_context

logger = get_logger(__name__)

STASH_MESSAGE = "Pre-rollback stash"
CONFIRM_WORD = "yes"


# ---------------------------------------------------------------------------
# Interactive input
# ---------------------------------------------------------------------------


class PromptSession:
    """Interactive input for one invocation.

    Subclasses implement :meth:`ask` and :meth:`show`. Use as a context
    manager so :meth:`close` runs on every exit path.
    """

    def ask(self, question: str) -> str:
        raise NotImplementedError

    def show(self, text: str = "") -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release the session. Idempotent."""

    def __enter__(self) -> PromptSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ConsolePromptSession(PromptSession):
    """Reads answers with ``rich.prompt.Prompt`` on a stderr console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def ask(self, question: str) -> str:
        return Prompt.ask(question, console=self.console, default="", show_default=False)

    def show(self, text: str = "") -> None:
        self.console.print(text)


PromptFactory = Callable[[], PromptSession]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def _short(revision: str | None) -> str:
    return revision[:8] if revision else "unknown"


class RollbackOrchestrator:
    """Select target -> confirm -> checkout -> redeploy -> re-verify."""

    def __init__(
        self,
        settings: ShipwrightSettings,
        config: RollbackConfig,
        *,
        runner: CommandRunner | None = None,
        platform: PlatformClient | None = None,
        tree: WorkingTree | None = None,
        poller: ReadinessPoller | None = None,
        suite: VerificationSuite | None = None,
        history: DeploymentHistory | None = None,
        prompt_factory: PromptFactory = ConsolePromptSession,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.config = config
        runner = runner or CommandRunner(settings.project_dir)
        self.platform = platform or PlatformClient(
            runner,
            cli=settings.platform_cli,
            domain_suffix=settings.platform_domain,
            command_timeout_ms=config.command_timeout_ms,
            deploy_timeout_ms=config.deploy_timeout_ms,
        )
        self.tree = tree or WorkingTree(runner, timeout_ms=config.command_timeout_ms)
        self.poller = poller or ReadinessPoller()
        self.suite = suite or VerificationSuite(
            probe_timeout_ms=config.probe_timeout_ms,
            inter_probe_delay_ms=config.inter_probe_delay_ms,
        )
        self.history = history or DeploymentHistory(settings.state_path)
        self.prompt_factory = prompt_factory
        self.sleep = sleep

    def run(self, target: RollbackTarget | None = None) -> RollbackOutcome:
        """Perform one rollback.

        Args:
            target: Pre-selected target (automatic rollback). When omitted the
                target comes from the config or the interactive menu.

        Raises:
            UserCancelled: the operator chose cancel or declined to confirm.
            ConfigurationError: invalid interactive selection.
            ExecutionError / DeploymentFailedError: checkout, deploy or
                readiness failed. ``restore_error`` is set if restoring the
                original revision failed too.
        """
        logger.info("rollback.started", force=self.config.force)
        with self.prompt_factory() as prompt:
            current = self.gather_current()
            if target is None:
                target = self.select_target(prompt)
            bind_context(revision=target.revision_id)
            logger.info("rollback.target", kind=target.kind.value, revision=target.revision_id)

            if not self.config.force:
                self.confirm(prompt, current, target)

            self.execute(target, current)

        report = self.verify(current) if self.config.verify else None
        success = report is None or report.summary.success
        logger.info("rollback.completed", revision=target.revision_id, verified=report is not None, success=success)
        return RollbackOutcome(target=target, current=current, report=report, success=success)

    # -- current state --------------------------------------------------

    def gather_current(self) -> CurrentDeployment:
        """Best-effort snapshot of what is live."""
        current = CurrentDeployment(url=self.settings.target_url)

        if current.url is None:
            try:
                current.url = self.platform.discover_url()
            except ExecutionError as e:
                logger.warning("rollback.url_unavailable", error=str(e))

        try:
            current.commit = self.tree.current_revision()
            current.branch = self.tree.current_branch()
        except ExecutionError as e:
            logger.warning("rollback.git_unavailable", error=str(e))

        try:
            current.platform_status = describe_status(self.platform.status())
        except ExecutionError as e:
            logger.warning("rollback.status_unavailable", error=str(e))

        record = self.history.load()
        if record is not None:
            current.last_deployed_at = record.completed_at
            current.last_deployed_commit = record.commit
        else:
            logger.info("rollback.no_history", path=str(self.history.path))

        logger.info(
            "rollback.current",
            url=current.url,
            commit=_short(current.commit),
            branch=current.branch,
            platform_status=current.platform_status,
        )
        return current

    # -- target selection -------------------------------------------------

    def select_target(self, prompt: PromptSession) -> RollbackTarget:
        if self.config.commit:
            return RollbackTarget(
                kind=RollbackKind.EXPLICIT_COMMIT,
                revision_id=self.config.commit,
                description=f"Specific commit: {_short(self.config.commit)}",
            )
        if self.config.previous:
            return self._previous_target()
        return self._interactive_target(prompt)

    def _previous_target(self) -> RollbackTarget:
        previous = self.tree.previous_revision()
        return RollbackTarget(
            kind=RollbackKind.PREVIOUS_COMMIT,
            revision_id=previous,
            description=f"Previous commit: {_short(previous)}",
        )

    def _interactive_target(self, prompt: PromptSession) -> RollbackTarget:
        revisions = self.tree.recent_revisions(self.config.recent_limit)

        prompt.show("Recent commits:")
        for index, revision in enumerate(revisions, start=1):
            prompt.show(f"  {index}. {revision}")
        prompt.show()
        prompt.show("Rollback options:")
        prompt.show("  1. Previous commit (HEAD~1)")
        prompt.show("  2. Select specific commit from list above")
        prompt.show("  3. Enter custom commit hash")
        prompt.show("  4. Cancel rollback")

        choice = prompt.ask("Select rollback option (1-4)").strip()
        if choice == "1":
            return self._previous_target()
        if choice == "2":
            answer = prompt.ask(f"Enter commit number from list (1-{len(revisions)})").strip()
            if not answer.isdigit() or not 1 <= int(answer) <= len(revisions):
                raise ConfigurationError(f"Invalid commit selection: {answer!r}")
            selected = revisions[int(answer) - 1]
            return RollbackTarget(
                kind=RollbackKind.INTERACTIVE_COMMIT,
                revision_id=selected.revision_id,
                description=f"Selected commit: {selected}",
            )
        if choice == "3":
            custom = prompt.ask("Enter commit hash").strip()
            if not custom:
                raise ConfigurationError("No commit hash provided")
            return RollbackTarget(
                kind=RollbackKind.INTERACTIVE_COMMIT,
                revision_id=custom,
                description=f"Custom commit: {_short(custom)}",
            )
        if choice == "4":
            raise UserCancelled()
        raise ConfigurationError(f"Invalid selection: {choice!r}")

    # -- confirmation -----------------------------------------------------

    def confirm(self, prompt: PromptSession, current: CurrentDeployment, target: RollbackTarget) -> None:
        prompt.show()
        prompt.show("ROLLBACK CONFIRMATION")
        prompt.show(f"Current commit: {_short(current.commit)}")
        prompt.show(f"Rollback to: {target.description}")
        prompt.show(f"Target URL: {current.url or 'unknown'}")
        prompt.show()
        prompt.show("This action will:")
        prompt.show("  1. Checkout the target commit")
        prompt.show(f"  2. Deploy to {self.settings.platform_cli}")
        prompt.show("  3. Replace the current deployment")
        prompt.show("  4. May cause temporary service interruption")

        answer = prompt.ask("Are you sure you want to proceed? (yes/no)")
        if answer.strip().lower() != CONFIRM_WORD:
            logger.info("rollback.cancelled", answer=answer)
            raise UserCancelled()

    # -- execution --------------------------------------------------------

    def execute(self, target: RollbackTarget, current: CurrentDeployment) -> None:
        """Checkout, redeploy and wait. Restores the original revision on failure."""
        token = push_context(phase="rollingBack")
        try:
            self._stash()
            try:
                self._checkout(target)
                self.platform.trigger_deploy()
                self.poller.wait_for_ready(
                    self.platform.status,
                    max_wait_ms=self.config.max_wait_ms,
                    interval_ms=self.config.poll_interval_ms,
                )
            except ShipwrightError as e:
                logger.error("rollback.execution_failed", error=str(e), error_type=type(e).__name__)
                restore_error = self._restore(current.commit)
                e.restore_error = restore_error
                if restore_error is not None:
                    e.with_context(restore_error=str(restore_error))
                raise
        finally:
            token.restore()

    def _stash(self) -> None:
        try:
            if not self.tree.has_uncommitted_changes():
                return
            self.tree.stash(STASH_MESSAGE)
            logger.info("rollback.stashed")
        except ExecutionError as e:
            logger.warning("rollback.stash_failed", error=str(e))

    def _checkout(self, target: RollbackTarget) -> None:
        self.tree.checkout(target.revision_id)
        actual = self.tree.current_revision()
        if not revision_matches(actual, target.revision_id):
            raise ExecutionError(
                f"git checkout {target.revision_id}",
                f"Working tree is at {_short(actual)}, expected {_short(target.revision_id)}",
            )
        logger.info("rollback.checked_out", revision=actual)

    def _restore(self, original: str | None) -> ShipwrightError | None:
        """Return to ``original`` (or the previous checkout). Returns the failure, if any."""
        try:
            self.tree.checkout(original or "-")
        except ShipwrightError as e:
            logger.error("rollback.restore_failed", original=_short(original), error=str(e))
            return e
        logger.info("rollback.restored", original=_short(original))
        return None

    # -- verification -----------------------------------------------------

    def verify(self, current: CurrentDeployment) -> VerificationReport:
        url = current.url or self.settings.resolve_target_url()
        token = push_context(phase="verifying")
        try:
            if self.config.stabilization_ms:
                logger.info("rollback.stabilizing", seconds=self.config.stabilization_ms / 1000)
                self.sleep(self.config.stabilization_ms / 1000)
            report = self.suite.run(url)
        finally:
            token.restore()
        if not report.summary.success:
            logger.warning(
                "rollback.verification_failed",
                failed=report.summary.failed,
                total=report.summary.total,
                failed_probes=[r.name for r in report.failed_probes()],
            )
        return report
