"""Invocation lock.

Deploy and rollback both mutate shared state (the remote platform and, for
rollback, the working tree). ``InvocationLock`` keeps two of them from
running at once in the same project directory.

The lock file holds the owner's pid, command, token and expiry time. It is
written to a private temp file first and then hard-linked into place, so
acquisition is atomic and the lock never exists half-written.

A stale lock (expired, or unreadable and older than a short grace period)
is broken and acquisition retried once, so a crashed invocation never
blocks forever. Breaking is serialised through a ``<lock>.break`` file
created with ``O_CREAT | O_EXCL``; whoever holds it re-reads the lock
before removing it.

Example::

    with InvocationLock(settings.lock_path, command="deploy"):
        orchestrator.run()
"""

from __future__ import annotations

import json
import os
import time
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from shipwright.core.errors import ConfigurationError
from shipwright.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 1800
STALE_GRACE_SECONDS = 10


class InvocationLock:
    """Exclusive, TTL-expiring lock file."""

    def __init__(
        self,
        path: Path | str,
        command: str = "deploy",
        ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ) -> None:
        self.path = Path(path)
        self.command = command
        self.ttl_seconds = ttl_seconds
        self.token = uuid.uuid4().hex
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    @property
    def breaker_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.break")

    def acquire(self) -> None:
        """Take the lock or raise ConfigurationError naming the holder."""
        if self._try_create():
            return
        if self._is_stale(self._read_holder()) and self._break_stale():
            return
        holder = self._read_holder()
        raise ConfigurationError(
            f"Another shipwright invocation holds {self.path}"
            + (f" ({holder.get('command')} pid {holder.get('pid')})" if holder else "")
        ).with_context(lock_file=str(self.path))

    def release(self) -> None:
        """Remove the lock file if it is still ours."""
        if not self._held:
            return
        self._held = False
        holder = self._read_holder()
        if not holder or holder.get("token") != self.token:
            logger.warning("lock.lost", path=str(self.path), holder=holder)
            return
        self.path.unlink(missing_ok=True)
        logger.debug("lock.released", path=str(self.path))

    def __enter__(self) -> InvocationLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def _try_create(self) -> bool:
        now = datetime.now(UTC)
        payload = {
            "pid": os.getpid(),
            "command": self.command,
            "token": self.token,
            "acquired_at": now.isoformat(),
            "expires_at": (now + timedelta(seconds=self.ttl_seconds)).isoformat(),
        }
        staging = self.path.with_name(f"{self.path.name}.{self.token}.tmp")
        try:
            staging.write_text(json.dumps(payload), encoding="utf-8")
            try:
                os.link(staging, self.path)
            except FileExistsError:
                return False
        finally:
            staging.unlink(missing_ok=True)
        self._held = True
        logger.debug("lock.acquired", path=str(self.path), command=self.command)
        return True

    def _break_stale(self) -> bool:
        """Remove a stale lock and take it. False when someone else got there first."""
        try:
            fd = os.open(self.breaker_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            logger.warning("lock.break_in_progress", path=str(self.breaker_path))
            return False
        os.close(fd)
        try:
            holder = self._read_holder()
            if not self._is_stale(holder):
                return False
            logger.warning("lock.stale_removed", path=str(self.path), holder=holder)
            self.path.unlink(missing_ok=True)
            return self._try_create()
        finally:
            self.breaker_path.unlink(missing_ok=True)

    def _read_holder(self) -> dict[str, Any] | None:
        """Lock contents; ``{}`` when there is no lock, None when unreadable."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _is_stale(self, holder: dict[str, Any] | None) -> bool:
        if holder is None:
            return self._age_seconds() > STALE_GRACE_SECONDS
        return self._is_expired(holder)

    def _age_seconds(self) -> float:
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return float("inf")

    @staticmethod
    def _is_expired(holder: dict[str, Any]) -> bool:
        expires_at = holder.get("expires_at")
        if not expires_at:
            return True
        try:
            return datetime.fromisoformat(expires_at) <= datetime.now(UTC)
        except (TypeError, ValueError):
            return True
