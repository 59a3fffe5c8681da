"""
Root Typer application for the shipwright CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from shipwright import __version__
from shipwright.cli import commands
from shipwright.core.settings import ShipwrightSettings
from shipwright.logging import configure_logging

app = Typer(
    name="shipwright",
    help="shipwright - deploy, verify and roll back a hosted backend service.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("shipwright")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"shipwright {v}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(  # noqa: UP007
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING or ERROR (default from SHIPWRIGHT_LOG_LEVEL).",
    ),
    log_format: str | None = typer.Option(  # noqa: UP007
        None,
        "--log-format",
        help="console or json (default from SHIPWRIGHT_LOG_FORMAT).",
    ),
) -> None:
    """shipwright CLI - deploy, rollback and verify."""
    settings = ShipwrightSettings()
    configure_logging(
        level=log_level or settings.log_level,
        format=log_format or settings.log_format,
        force=True,
    )
    ctx.obj = settings


# ── Commands ─────────────────────────────────────────────────────────────

app.command(name="deploy")(commands.deploy)
app.command(name="rollback")(commands.rollback)
app.command(name="verify")(commands.verify)
