"""
CLI output helpers: Rich tables for reports, JSON for ``--json``.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from shipwright.core.errors import DeployAndRollbackError, ShipwrightError, UserCancelled
from shipwright.deploy.deployer import DeployOutcome
from shipwright.deploy.results import (
    CurrentDeployment,
    DeploymentRecord,
    RollbackOutcome,
    StepStatus,
    VerificationReport,
)

console = Console()
err_console = Console(stderr=True)


# ── JSON ─────────────────────────────────────────────────────────────────


def _error_dict(error: Exception | None) -> dict[str, Any] | None:
    if error is None:
        return None
    if isinstance(error, ShipwrightError):
        return error.to_dict()
    return {"error_type": type(error).__name__, "message": str(error)}


def emit_json(payload: Any) -> None:
    """Write ``payload`` to stdout as indented JSON."""
    typer.echo(json.dumps(payload, indent=2, default=str))


def report_payload(report: VerificationReport | None) -> dict[str, Any] | None:
    return report.model_dump(mode="json") if report is not None else None


def deploy_payload(outcome: DeployOutcome) -> dict[str, Any]:
    return {
        "phase": outcome.phase.value,
        "success": outcome.success,
        "record": outcome.record.model_dump(mode="json"),
        "report": report_payload(outcome.report),
        "rollback": outcome.rollback.model_dump(mode="json") if outcome.rollback else None,
        "error": _error_dict(outcome.error),
        "rollback_error": _error_dict(outcome.rollback_error),
    }


def rollback_payload(outcome: RollbackOutcome) -> dict[str, Any]:
    return outcome.model_dump(mode="json")


# ── Human output ─────────────────────────────────────────────────────────


def print_report(report: VerificationReport) -> None:
    """Pretty-print a VerificationReport."""
    table = Table(title=f"Verification: {report.target}")
    table.add_column("Probe", style="bold")
    table.add_column("Result")
    table.add_column("Time", justify="right")
    table.add_column("Detail")

    for result in report.results:
        if result.passed:
            outcome = "[green]PASS[/green]"
            detail = ""
            breaches = result.detail.get("breaches")
            if breaches:
                detail = f"[yellow]slow: {', '.join(breaches)}[/yellow]"
        else:
            outcome = "[red]FAIL[/red]"
            detail = result.error or ""
        table.add_row(result.name, outcome, f"{result.duration_ms:.0f}ms", detail)

    console.print(table)

    summary = report.summary
    style = "green" if summary.success else "red"
    label = "SUCCESS" if summary.success else "FAILURE"
    console.print(
        f"\n[bold {style}]{label}[/] - {summary.passed}/{summary.total} probes passed "
        f"in {summary.duration_ms / 1000:.1f}s"
    )

    if report.recommendations:
        console.print("\n[bold]Recommendations[/]")
        for line in report.recommendations:
            console.print(f"  • {line}")


def print_record(record: DeploymentRecord) -> None:
    """Pretty-print the steps and summary of a deployment."""
    table = Table(title="Deployment Steps")
    table.add_column("Step", style="bold")
    table.add_column("Status")
    table.add_column("At")
    table.add_column("Detail")

    styles = {StepStatus.COMPLETED: "green", StepStatus.FAILED: "red", StepStatus.STARTED: "dim"}
    for step in record.steps:
        style = styles.get(step.status, "white")
        table.add_row(
            step.name,
            f"[{style}]{step.status.value}[/{style}]",
            step.timestamp.strftime("%H:%M:%S"),
            step.detail or "-",
        )
    console.print(table)

    console.print("\n[bold]Deployment Summary[/]")
    console.print(f"  Version:  {record.commit or 'unknown'}")
    console.print(f"  URL:      {record.target_url or 'unknown'}")
    console.print(f"  Duration: {record.duration_seconds:.0f}s")
    console.print(f"  Steps:    {len(record.steps)}")


def print_current(current: CurrentDeployment) -> None:
    console.print("[bold]Current deployment[/]")
    console.print(f"  URL:            {current.url or 'unknown'}")
    console.print(f"  Commit:         {(current.commit or 'unknown')[:8]}")
    console.print(f"  Branch:         {current.branch or 'unknown'}")
    console.print(f"  Platform:       {current.platform_status}")
    if current.last_deployed_at:
        console.print(
            f"  Last deployed:  {current.last_deployed_at.isoformat()} ({current.last_deployed_commit or 'unknown'})"
        )


def print_deploy_outcome(outcome: DeployOutcome) -> None:
    if outcome.report is not None:
        print_report(outcome.report)
    print_record(outcome.record)
    rollback = outcome.rollback
    if rollback is not None:
        if rollback.report is not None and not rollback.success:
            print_report(rollback.report)
        if rollback.success:
            console.print(f"\n[yellow]Rolled back to {rollback.target.description}[/]")
        else:
            console.print(f"\n[bold red]Rolled back to {rollback.target.description}, but verification failed[/]")
    if outcome.success:
        console.print("\n[bold green]✓ Deployment completed successfully[/]")


def print_rollback_outcome(outcome: RollbackOutcome) -> None:
    print_current(outcome.current)
    if outcome.report is not None:
        print_report(outcome.report)
    if outcome.success:
        console.print(f"\n[bold green]✓ Rolled back to {outcome.target.description}[/]")
    else:
        console.print(
            f"\n[bold yellow]Rolled back to {outcome.target.description}, but verification failed[/]"
        )


def print_error(error: Exception) -> None:
    """One red line (two for a deploy+rollback failure)."""
    if isinstance(error, UserCancelled):
        err_console.print(f"[yellow]{error.message}[/]")
        return
    if isinstance(error, DeployAndRollbackError):
        err_console.print(f"[bold red]✗ Deployment failed:[/] {error.deploy_error}")
        err_console.print(f"[bold red]✗ Rollback also failed:[/] {error.rollback_error}")
        return
    message = error.message if isinstance(error, ShipwrightError) else str(error)
    err_console.print(f"[bold red]✗ {type(error).__name__}:[/] {message}")
    restore_error = getattr(error, "restore_error", None)
    if restore_error is not None:
        err_console.print(f"[red]  Restoring the original revision also failed: {restore_error}[/]")
