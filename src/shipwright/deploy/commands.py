"""External command execution.

``CommandRunner`` runs one external command with a timeout and returns its
stdout. Every failure (non-zero exit, timeout kill, missing executable,
OS error) surfaces as :class:`~shipwright.core.errors.ExecutionError`.
There is no retry at this layer; callers decide.
"""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path

from shipwright.core.errors import ExecutionError
from shipwright.deploy.config import DEFAULT_COMMAND_TIMEOUT_MS
from shipwright.logging import get_logger

logger = get_logger(__name__)

Command = str | Sequence[str]


def split_command(command: Command) -> list[str]:
    """Normalise a command to an argument list."""
    if isinstance(command, str):
        return shlex.split(command)
    return [str(part) for part in command]


class CommandRunner:
    """Runs external commands in a fixed working directory.

    Stateless apart from ``cwd``; safe to share between orchestrators.
    """

    def __init__(self, cwd: Path | str | None = None) -> None:
        self.cwd = Path(cwd) if cwd is not None else None

    def execute(self, command: Command, timeout_ms: int = DEFAULT_COMMAND_TIMEOUT_MS) -> str:
        """Run ``command`` and return its stdout.

        Raises:
            ExecutionError: non-zero exit, timeout, or spawn failure.
        """
        argv = split_command(command)
        display = shlex.join(argv)
        logger.debug("command.execute", command=display, timeout_ms=timeout_ms)

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout_ms / 1000,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("command.failed", command=display, reason="timeout")
            raise ExecutionError(display, f"Timed out after {timeout_ms}ms", cause=e) from e
        except FileNotFoundError as e:
            logger.warning("command.failed", command=display, reason="not_found")
            raise ExecutionError(display, f"Executable not found: {argv[0]}", cause=e) from e
        except OSError as e:
            logger.warning("command.failed", command=display, reason="os_error")
            raise ExecutionError(display, str(e), cause=e) from e

        if result.returncode != 0:
            logger.warning(
                "command.failed",
                command=display,
                returncode=result.returncode,
            )
            raise ExecutionError(
                display,
                f"Exit status {result.returncode}",
                stderr=result.stderr or "",
            )
        return result.stdout
