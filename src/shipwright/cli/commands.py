"""
Deploy, rollback and verify commands.

Examples::

    shipwright deploy --skip-tests
    shipwright deploy --verify-only --json
    shipwright rollback --previous --force
    shipwright verify https://api.example.up.railway.app
"""

from __future__ import annotations

import typer

from shipwright.cli.render import (
    console,
    deploy_payload,
    emit_json,
    err_console,
    print_deploy_outcome,
    print_error,
    print_report,
    print_rollback_outcome,
    report_payload,
    rollback_payload,
)
from shipwright.core.errors import ShipwrightError, categorize_error
from shipwright.core.settings import ShipwrightSettings
from shipwright.deploy.config import DeployConfig, RollbackConfig, VerifyConfig
from shipwright.deploy.deployer import DeployOrchestrator
from shipwright.deploy.locking import InvocationLock
from shipwright.deploy.rollback import RollbackOrchestrator
from shipwright.deploy.verification import VerificationSuite
from shipwright.logging import get_logger, is_debug_enabled, set_context

logger = get_logger(__name__)


def _settings(ctx: typer.Context) -> ShipwrightSettings:
    if isinstance(ctx.obj, ShipwrightSettings):
        return ctx.obj
    return ShipwrightSettings()


def _fail(error: Exception, json_out: bool, payload: dict | None = None) -> None:
    """Report ``error`` and exit 1. Call from inside the ``except`` block."""
    logger.error(
        "command.failed",
        error_type=type(error).__name__,
        category=categorize_error(error).value,
        error=str(error),
    )
    if is_debug_enabled():
        err_console.print_exception()
    if json_out:
        emit_json(payload if payload is not None else {"success": False, "error": _error_payload(error)})
    print_error(error)
    raise typer.Exit(code=1)


def _error_payload(error: Exception) -> dict:
    if isinstance(error, ShipwrightError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "message": str(error)}


# ── deploy ───────────────────────────────────────────────────────────────


def deploy(
    ctx: typer.Context,
    verify_only: bool = typer.Option(False, "--verify-only", help="Only verify the running deployment."),
    rollback: bool = typer.Option(False, "--rollback", help="Roll back to the previous revision."),
    skip_tests: bool = typer.Option(False, "--skip-tests", help="Skip local tests during preflight."),
    timeout: int | None = typer.Option(  # noqa: UP007
        None, "--timeout", min=1, help="Deploy trigger timeout in seconds (default 300)."
    ),
    json_out: bool = typer.Option(False, "--json", help="Output the outcome as JSON."),
) -> None:
    """Deploy the working tree, verify it, and roll back on failure."""
    settings = _settings(ctx)
    config = DeployConfig.from_env(
        verify_only=verify_only,
        rollback=rollback,
        skip_tests=skip_tests,
        deploy_timeout_ms=timeout * 1000 if timeout else None,
    )
    set_context(run_id=config.run_id, command="deploy")
    orchestrator = DeployOrchestrator(settings, config)

    if config.verify_only:
        try:
            report = orchestrator.verify_only()
        except ShipwrightError as e:
            _fail(e, json_out)
        if json_out:
            emit_json(report_payload(report))
        else:
            print_report(report)
        if not report.summary.success:
            raise typer.Exit(code=1)
        return

    if not json_out:
        console.print(f"[bold]shipwright deploy[/] - run_id: {config.run_id}")

    try:
        with InvocationLock(settings.lock_path, command="deploy"):
            if config.rollback:
                rollback_outcome = orchestrator.rollback()
            else:
                orchestrator.run()
    except ShipwrightError as e:
        if not json_out:
            print_deploy_outcome(orchestrator.outcome)
        _fail(e, json_out, deploy_payload(orchestrator.outcome))

    if config.rollback:
        if json_out:
            emit_json(rollback_payload(rollback_outcome))
        else:
            print_rollback_outcome(rollback_outcome)
        if not rollback_outcome.success:
            raise typer.Exit(code=1)
        return

    if json_out:
        emit_json(deploy_payload(orchestrator.outcome))
    else:
        print_deploy_outcome(orchestrator.outcome)


# ── rollback ─────────────────────────────────────────────────────────────


def rollback(
    ctx: typer.Context,
    commit: str | None = typer.Option(None, "--commit", "-c", help="Revision to roll back to."),  # noqa: UP007
    previous: bool = typer.Option(False, "--previous", help="Roll back to HEAD~1."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip the confirmation prompt."),
    no_verify: bool = typer.Option(False, "--no-verify", help="Skip verification after the rollback."),
    json_out: bool = typer.Option(False, "--json", help="Output the outcome as JSON."),
) -> None:
    """Redeploy an earlier revision."""
    settings = _settings(ctx)
    config = RollbackConfig.from_env(commit=commit, previous=previous, force=force, verify=not no_verify)
    set_context(run_id=config.run_id, command="rollback")

    try:
        with InvocationLock(settings.lock_path, command="rollback"):
            outcome = RollbackOrchestrator(settings, config).run()
    except ShipwrightError as e:
        _fail(e, json_out)

    if json_out:
        emit_json(rollback_payload(outcome))
    else:
        print_rollback_outcome(outcome)
    if not outcome.success:
        raise typer.Exit(code=1)


# ── verify ───────────────────────────────────────────────────────────────


def verify(
    ctx: typer.Context,
    url: str | None = typer.Argument(None, help="Base URL to verify (defaults to the configured target)."),  # noqa: UP007
    json_out: bool = typer.Option(False, "--json", help="Output the report as JSON."),
) -> None:
    """Run the verification probes against a live service."""
    settings = _settings(ctx)
    config = VerifyConfig.from_env(target_url=url)
    set_context(run_id=config.run_id, command="verify")
    target = config.target_url or settings.resolve_target_url()

    suite = VerificationSuite(
        probe_timeout_ms=config.probe_timeout_ms,
        inter_probe_delay_ms=config.inter_probe_delay_ms,
    )
    report = suite.run(target)

    if json_out:
        emit_json(report_payload(report))
    else:
        print_report(report)
    if not report.summary.success:
        raise typer.Exit(code=1)
