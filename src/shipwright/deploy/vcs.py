"""Revision-control protocol (git) on top of CommandRunner."""

from __future__ import annotations

from dataclasses import dataclass

from shipwright.deploy.commands import CommandRunner
from shipwright.deploy.config import DEFAULT_COMMAND_TIMEOUT_MS


@dataclass(frozen=True)
class Revision:
    """One line of ``git log --oneline``."""

    revision_id: str
    subject: str

    @classmethod
    def parse(cls, line: str) -> Revision:
        revision_id, _, subject = line.strip().partition(" ")
        return cls(revision_id=revision_id, subject=subject)

    def __str__(self) -> str:
        return f"{self.revision_id} {self.subject}".strip()


class WorkingTree:
    """The local git working tree that gets deployed."""

    def __init__(self, runner: CommandRunner, timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> None:
        self.runner = runner
        self.timeout_ms = timeout_ms

    def _git(self, *args: str) -> str:
        return self.runner.execute(["git", *args], self.timeout_ms).strip()

    def current_revision(self, short: bool = False) -> str:
        if short:
            return self._git("rev-parse", "--short", "HEAD")
        return self._git("rev-parse", "HEAD")

    def previous_revision(self) -> str:
        return self._git("rev-parse", "HEAD~1")

    def current_branch(self) -> str:
        return self._git("branch", "--show-current")

    def status(self) -> str:
        """Porcelain status; empty when the tree is clean."""
        return self._git("status", "--porcelain")

    def has_uncommitted_changes(self) -> bool:
        return bool(self.status())

    def recent_revisions(self, limit: int = 10) -> list[Revision]:
        output = self._git("log", "--oneline", f"-{limit}")
        return [Revision.parse(line) for line in output.splitlines() if line.strip()]

    def stash(self, message: str) -> str:
        return self._git("stash", "push", "-m", message)

    def checkout(self, revision: str) -> str:
        return self._git("checkout", revision)


def revision_matches(actual: str, requested: str) -> bool:
    """True when ``actual`` is ``requested`` or extends a short id of it."""
    actual = actual.strip().lower()
    requested = requested.strip().lower()
    if not actual or not requested:
        return False
    return actual == requested or actual.startswith(requested)
