"""Tests for DeploymentHistory persistence."""

from __future__ import annotations

import json

import pytest

from shipwright.deploy.history import DeploymentHistory
from shipwright.deploy.results import DeploymentRecord, StepStatus


def _completed_record() -> DeploymentRecord:
    record = DeploymentRecord(commit="abc1234", branch="main", target_url="https://app.up.railway.app")
    record.add_step("preflight", StepStatus.COMPLETED)
    record.add_step("deployment", StepStatus.COMPLETED)
    record.mark_complete(success=True)
    return record


class TestDeploymentHistory:
    def test_save_then_load(self, tmp_path):
        history = DeploymentHistory(tmp_path / ".railway-deployment.json")
        record = _completed_record()

        path = history.save(record)
        loaded = history.load()

        assert path.exists()
        assert loaded.commit == record.commit
        assert loaded.target_url == record.target_url
        assert len(loaded.steps) == len(record.steps)
        assert loaded.success is True
        assert loaded.completed_at == record.completed_at

    def test_file_is_indented_json(self, tmp_path):
        history = DeploymentHistory(tmp_path / ".railway-deployment.json")
        history.save(_completed_record())

        text = history.path.read_text()
        assert text.startswith("{\n  ")
        assert json.loads(text)["success"] is True
        assert not (tmp_path / ".railway-deployment.json.tmp").exists()

    def test_refuses_incomplete_record(self, tmp_path):
        history = DeploymentHistory(tmp_path / ".railway-deployment.json")
        with pytest.raises(ValueError):
            history.save(DeploymentRecord())

    def test_missing_file_loads_none(self, tmp_path):
        assert DeploymentHistory(tmp_path / "absent.json").load() is None

    @pytest.mark.parametrize("content", ["not json", '{"steps": "nope"}', "[]"])
    def test_corrupt_file_loads_none(self, tmp_path, content):
        path = tmp_path / ".railway-deployment.json"
        path.write_text(content)
        assert DeploymentHistory(path).load() is None
