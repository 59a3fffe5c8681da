"""
Shared pytest fixtures for shipwright tests.

This module provides:
- Environment isolation (no RAILWAY_STATIC_URL / SHIPWRIGHT_* leakage)
- A project directory holding the platform descriptor files and package.json
- Settings bound to that directory
- A fake clock for the readiness poller

Fakes and builders live in ``tests/_support/fakes.py``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from shipwright.core.settings import ShipwrightSettings
from shipwright.logging import clear_context
from tests._support.fakes import FakeClock


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's shell from leaking into settings and configs."""
    for name in list(os.environ):
        if name.startswith("SHIPWRIGHT_") or name == "RAILWAY_STATIC_URL":
            monkeypatch.delenv(name, raising=False)
    clear_context()
    yield
    clear_context()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory holding the platform descriptor files."""
    (tmp_path / "railway.json").write_text("{}\n")
    (tmp_path / "Procfile").write_text("web: node server.js\n")
    (tmp_path / ".railwayignore").write_text("node_modules\n")
    (tmp_path / "package.json").write_text(
        json.dumps(
            {
                "name": "api",
                "engines": {"node": ">=18"},
                "scripts": {"start": "node server.js", "health": "node scripts/health.js"},
            }
        )
    )
    return tmp_path


@pytest.fixture
def settings(project_dir: Path) -> ShipwrightSettings:
    return ShipwrightSettings(project_dir=project_dir, _env_file=None)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep():
    return lambda seconds: None
