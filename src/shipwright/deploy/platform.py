"""Hosting platform command protocol.

``PlatformClient`` wraps the platform CLI (``railway`` by default): version,
whoami, detached deploy, JSON status and domain listing. ``classify_status``
is the single place that interprets platform status text.
"""

from __future__ import annotations

import json
from enum import Enum

from shipwright.deploy.commands import CommandRunner
from shipwright.deploy.config import DEFAULT_COMMAND_TIMEOUT_MS, DEFAULT_DEPLOY_TIMEOUT_MS
from shipwright.logging import get_logger

logger = get_logger(__name__)


class StatusSignal(str, Enum):
    """What a platform status response means for readiness."""

    SUCCESS = "success"
    FAILURE = "failure"
    INCONCLUSIVE = "inconclusive"


# Only the values the platform CLI has been seen to emit. Anything else
# (other casings, CRASHED, REMOVED, ...) keeps the poller waiting.
_SUCCESS_VALUES = (("status", "SUCCESS"), ("state", "deployed"))
_FAILURE_VALUES = (("status", "FAILED"), ("state", "failed"))


def classify_status(raw_output: str) -> StatusSignal:
    """Classify ``<platform> status --json`` output.

    ``status == "SUCCESS"`` or ``state == "deployed"`` is success;
    ``status == "FAILED"`` or ``state == "failed"`` is failure. Values are
    matched exactly. Unknown values, missing fields and unparseable output
    are inconclusive.
    """
    try:
        payload = json.loads(raw_output)
    except (TypeError, ValueError):
        return StatusSignal.INCONCLUSIVE
    if not isinstance(payload, dict):
        return StatusSignal.INCONCLUSIVE

    if any(payload.get(key) == value for key, value in _SUCCESS_VALUES):
        return StatusSignal.SUCCESS
    if any(payload.get(key) == value for key, value in _FAILURE_VALUES):
        return StatusSignal.FAILURE
    return StatusSignal.INCONCLUSIVE


def pick_domain(output: str, domain_suffix: str) -> str | None:
    """First line of ``domains`` output that mentions the platform domain, as a URL."""
    for line in output.splitlines():
        line = line.strip()
        if domain_suffix in line:
            candidate = line.split()[-1] if " " in line else line
            if not candidate.startswith(("http://", "https://")):
                candidate = f"https://{candidate}"
            return candidate.rstrip("/")
    return None


class PlatformClient:
    """Commands understood by the hosting platform CLI."""

    def __init__(
        self,
        runner: CommandRunner,
        cli: str = "railway",
        domain_suffix: str = "railway.app",
        command_timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS,
        deploy_timeout_ms: int = DEFAULT_DEPLOY_TIMEOUT_MS,
    ) -> None:
        self.runner = runner
        self.cli = cli
        self.domain_suffix = domain_suffix
        self.command_timeout_ms = command_timeout_ms
        self.deploy_timeout_ms = deploy_timeout_ms

    def version(self) -> str:
        return self.runner.execute([self.cli, "--version"], self.command_timeout_ms).strip()

    def whoami(self) -> str:
        return self.runner.execute([self.cli, "whoami"], self.command_timeout_ms).strip()

    def status(self, timeout_ms: int | None = None) -> str:
        """Raw ``status --json`` output.

        ``timeout_ms`` can only shorten the command timeout, never extend it.
        """
        if timeout_ms is None:
            timeout_ms = self.command_timeout_ms
        return self.runner.execute([self.cli, "status", "--json"], min(timeout_ms, self.command_timeout_ms))

    def trigger_deploy(self) -> str:
        """Start a detached deployment. Mutates the remote platform."""
        logger.info("platform.deploy_triggered", cli=self.cli)
        return self.runner.execute([self.cli, "up", "--detach"], self.deploy_timeout_ms)

    def domains(self) -> str:
        return self.runner.execute([self.cli, "domains"], self.command_timeout_ms)

    def discover_url(self) -> str | None:
        """Public URL of the service, or None when it cannot be determined."""
        return pick_domain(self.domains(), self.domain_suffix)


def describe_status(raw_output: str) -> str:
    """Human-readable status label for reports; ``unknown`` when absent."""
    try:
        payload = json.loads(raw_output)
    except (TypeError, ValueError):
        return "unknown"
    if not isinstance(payload, dict):
        return "unknown"
    value = payload.get("status") or payload.get("state")
    return str(value) if value else "unknown"
