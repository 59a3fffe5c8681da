"""Tests for per-run configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError


class TestDeployConfig:
    def test_defaults(self):
        from shipwright.deploy.config import DeployConfig

        config = DeployConfig()
        assert config.command_timeout_ms == 30_000
        assert config.deploy_timeout_ms == 300_000
        assert config.max_wait_ms == 180_000
        assert config.poll_interval_ms == 10_000
        assert config.stabilization_ms == 30_000
        assert config.probe_timeout_ms == 10_000
        assert config.inter_probe_delay_ms == 500
        assert config.auto_rollback is True
        assert config.run_id  # auto-generated

    def test_run_id_auto_generated(self):
        from shipwright.deploy.config import DeployConfig

        c1 = DeployConfig()
        c2 = DeployConfig()
        assert c1.run_id != c2.run_id
        assert len(c1.run_id) == 12

    def test_from_env(self, monkeypatch):
        from shipwright.deploy.config import DeployConfig

        monkeypatch.setenv("SHIPWRIGHT_MAX_WAIT_MS", "60000")
        monkeypatch.setenv("SHIPWRIGHT_SKIP_TESTS", "yes")
        config = DeployConfig.from_env()
        assert config.max_wait_ms == 60_000
        assert config.skip_tests is True

    def test_overrides_beat_env(self, monkeypatch):
        from shipwright.deploy.config import DeployConfig

        monkeypatch.setenv("SHIPWRIGHT_DEPLOY_TIMEOUT_MS", "1000")
        config = DeployConfig.from_env(deploy_timeout_ms=600_000)
        assert config.deploy_timeout_ms == 600_000

    def test_none_overrides_are_ignored(self, monkeypatch):
        from shipwright.deploy.config import DeployConfig

        monkeypatch.setenv("SHIPWRIGHT_DEPLOY_TIMEOUT_MS", "1000")
        config = DeployConfig.from_env(deploy_timeout_ms=None)
        assert config.deploy_timeout_ms == 1000

    def test_rejects_non_positive_interval(self):
        from shipwright.deploy.config import DeployConfig

        with pytest.raises(ValidationError):
            DeployConfig(poll_interval_ms=0)


class TestRollbackConfig:
    def test_defaults(self):
        from shipwright.deploy.config import RollbackConfig

        config = RollbackConfig()
        assert config.commit is None
        assert config.previous is False
        assert config.force is False
        assert config.verify is True
        assert config.recent_limit == 10

    def test_from_env_bool(self, monkeypatch):
        from shipwright.deploy.config import RollbackConfig

        monkeypatch.setenv("SHIPWRIGHT_ROLLBACK_VERIFY", "false")
        assert RollbackConfig.from_env().verify is False
        assert RollbackConfig.from_env(verify=True).verify is True


class TestVerifyConfig:
    def test_from_env(self, monkeypatch):
        from shipwright.deploy.config import VerifyConfig

        monkeypatch.setenv("SHIPWRIGHT_PROBE_TIMEOUT_MS", "2500")
        config = VerifyConfig.from_env(target_url="https://app.up.railway.app")
        assert config.probe_timeout_ms == 2500
        assert config.target_url == "https://app.up.railway.app"
