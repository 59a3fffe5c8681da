"""Persisted deployment record.

A successful deploy writes its completed :class:`DeploymentRecord` to
``.railway-deployment.json`` in the project directory. Rollback reads it back
to show what was last deployed. Reading is best-effort: a missing or
corrupt file yields ``None``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from shipwright.deploy.results import DeploymentRecord
from shipwright.logging import get_logger

logger = get_logger(__name__)


class DeploymentHistory:
    """Reads and writes the last deployment record."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, record: DeploymentRecord) -> Path:
        """Write a completed record, replacing any previous one."""
        if not record.is_complete:
            raise ValueError("Only completed deployment records can be saved")
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.info("history.saved", path=str(self.path), commit=record.commit)
        return self.path

    def load(self) -> DeploymentRecord | None:
        """Last saved record, or None when absent or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("history.unreadable", path=str(self.path), error=str(e))
            return None
        try:
            return DeploymentRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("history.corrupt", path=str(self.path), errors=e.error_count())
            return None
