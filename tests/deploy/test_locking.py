"""Tests for InvocationLock."""

from __future__ import annotations

import json
import os
import time
from datetime import UTC, datetime, timedelta

import pytest

from shipwright.core.errors import ConfigurationError
from shipwright.deploy.locking import InvocationLock


class TestInvocationLock:
    def test_acquire_and_release(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        lock = InvocationLock(path, command="deploy")

        lock.acquire()
        assert lock.held
        holder = json.loads(path.read_text())
        assert holder["command"] == "deploy"

        lock.release()
        assert not lock.held
        assert not path.exists()

    def test_second_invocation_fails_fast(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        with InvocationLock(path, command="deploy"):
            with pytest.raises(ConfigurationError, match="deploy pid"):
                InvocationLock(path, command="rollback").acquire()
        assert not path.exists()

    def test_released_on_exception(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        with pytest.raises(RuntimeError):
            with InvocationLock(path):
                raise RuntimeError("boom")
        assert not path.exists()

    def test_expired_lock_is_taken_over(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        expired = datetime.now(UTC) - timedelta(minutes=1)
        path.write_text(json.dumps({"pid": 1, "command": "deploy", "expires_at": expired.isoformat()}))

        with InvocationLock(path, command="rollback") as lock:
            assert lock.held
            assert json.loads(path.read_text())["command"] == "rollback"

    def test_empty_lock_being_written_is_held(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="holds"):
            InvocationLock(path).acquire()
        assert path.read_text() == ""

    def test_fresh_unreadable_lock_is_held(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        path.write_text("garbage")

        with pytest.raises(ConfigurationError):
            InvocationLock(path).acquire()
        assert path.read_text() == "garbage"

    def test_old_unreadable_lock_is_taken_over(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        path.write_text("garbage")
        old = time.time() - 60
        os.utime(path, (old, old))

        with InvocationLock(path) as lock:
            assert lock.held
            assert json.loads(path.read_text())["token"] == lock.token

    def test_break_in_progress_fails_fast(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        expired = datetime.now(UTC) - timedelta(minutes=1)
        path.write_text(json.dumps({"pid": 1, "command": "deploy", "expires_at": expired.isoformat()}))
        lock = InvocationLock(path, command="rollback")
        lock.breaker_path.write_text("")

        with pytest.raises(ConfigurationError, match="deploy pid 1"):
            lock.acquire()
        assert json.loads(path.read_text())["pid"] == 1
        assert lock.breaker_path.exists()

    def test_leaves_no_staging_files(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        with InvocationLock(path):
            assert [p.name for p in tmp_path.iterdir()] == [".shipwright.lock"]
            with pytest.raises(ConfigurationError):
                InvocationLock(path).acquire()
            assert [p.name for p in tmp_path.iterdir()] == [".shipwright.lock"]
        assert list(tmp_path.iterdir()) == []

    def test_release_keeps_a_lock_taken_over_by_another(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        lock = InvocationLock(path)
        lock.acquire()
        path.write_text(json.dumps({"pid": 2, "command": "rollback", "token": "someone-else"}))

        lock.release()

        assert not lock.held
        assert json.loads(path.read_text())["token"] == "someone-else"

    def test_release_without_acquire_leaves_foreign_lock(self, tmp_path):
        path = tmp_path / ".shipwright.lock"
        path.write_text("{}")
        InvocationLock(path).release()
        assert path.exists()
