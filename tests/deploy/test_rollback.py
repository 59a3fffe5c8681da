"""Tests for RollbackOrchestrator.

Git and the platform CLI are a FakeRunner; the operator is a ScriptedPrompt.
"""

from __future__ import annotations

import pytest

from shipwright.core.errors import ConfigurationError, DeploymentFailedError, ExecutionError, UserCancelled
from shipwright.deploy.config import RollbackConfig
from shipwright.deploy.history import DeploymentHistory
from shipwright.deploy.readiness import ReadinessPoller
from shipwright.deploy.results import DeploymentRecord, RollbackKind, RollbackTarget, StepStatus
from shipwright.deploy.rollback import STASH_MESSAGE, RollbackOrchestrator
from shipwright.logging import get_context, set_context
from tests._support.fakes import FakeRunner, ScriptedPrompt, command_error, make_report, status_json

CURRENT = "cafe0001122334455"
PREVIOUS = "abc1234def5678"
URL = "https://api-production.up.railway.app"


class StubSuite:
    def __init__(self, report=None) -> None:
        self.report = report or make_report(target=URL)
        self.targets: list[str] = []

    def run(self, target: str):
        self.targets.append(target)
        return self.report


def _runner(**overrides) -> FakeRunner:
    responses = {
        "railway domains": f"{URL}\n",
        "railway status --json": status_json("SUCCESS"),
        # gather_current, then the post-checkout check
        "git rev-parse HEAD": [f"{CURRENT}\n", f"{PREVIOUS}\n"],
        "git rev-parse HEAD~1": f"{PREVIOUS}\n",
        "git branch --show-current": "main\n",
        "git status --porcelain": "",
        "git log --oneline -10": "cafe000 Break things\nabc1234 Fix login\ndef5678 Add metrics\n",
    }
    responses.update(overrides)
    return FakeRunner(responses)


@pytest.fixture
def make_orchestrator(settings, fake_clock):
    def build(runner, answers=(), suite=None, **config):
        config.setdefault("stabilization_ms", 0)
        prompt = ScriptedPrompt(answers)
        orchestrator = RollbackOrchestrator(
            settings,
            RollbackConfig(**config),
            runner=runner,
            poller=ReadinessPoller(clock=fake_clock, sleep=fake_clock.sleep),
            suite=suite or StubSuite(),
            prompt_factory=lambda: prompt,
            sleep=fake_clock.sleep,
        )
        return orchestrator, prompt

    return build


class TestCurrentDeployment:
    def test_gathers_best_effort(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(_runner())
        current = orchestrator.gather_current()

        assert current.url == URL
        assert current.commit == CURRENT
        assert current.branch == "main"
        assert current.platform_status == "SUCCESS"
        assert current.last_deployed_at is None

    def test_tolerates_failures(self, make_orchestrator):
        runner = _runner(
            **{
                "railway domains": command_error("railway domains"),
                "railway status --json": command_error("railway status --json"),
                "git rev-parse HEAD": command_error("git rev-parse HEAD"),
            }
        )
        orchestrator, _ = make_orchestrator(runner)
        current = orchestrator.gather_current()

        assert current.url is None
        assert current.commit is None
        assert current.platform_status == "unknown"

    def test_reads_history(self, make_orchestrator, settings):
        record = DeploymentRecord(commit="abc1234")
        record.add_step("finalize", StepStatus.COMPLETED)
        record.mark_complete(success=True)
        DeploymentHistory(settings.state_path).save(record)

        orchestrator, _ = make_orchestrator(_runner())
        current = orchestrator.gather_current()

        assert current.last_deployed_commit == "abc1234"
        assert current.last_deployed_at == record.completed_at


class TestTargetSelection:
    def test_explicit_commit(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), commit="abc1234")
        target = orchestrator.select_target(prompt)
        assert target.kind is RollbackKind.EXPLICIT_COMMIT
        assert target.revision_id == "abc1234"
        assert prompt.questions == []

    def test_previous(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), previous=True)
        target = orchestrator.select_target(prompt)
        assert target.kind is RollbackKind.PREVIOUS_COMMIT
        assert target.revision_id == PREVIOUS

    def test_menu_previous(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["1"])
        target = orchestrator.select_target(prompt)
        assert target.kind is RollbackKind.PREVIOUS_COMMIT
        assert "  2. abc1234 Fix login" in prompt.shown

    def test_menu_pick_from_list(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["2", "3"])
        target = orchestrator.select_target(prompt)
        assert target.kind is RollbackKind.INTERACTIVE_COMMIT
        assert target.revision_id == "def5678"

    @pytest.mark.parametrize("answer", ["0", "4", "x", ""])
    def test_menu_pick_out_of_range(self, make_orchestrator, answer):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["2", answer])
        with pytest.raises(ConfigurationError, match="Invalid commit selection"):
            orchestrator.select_target(prompt)

    def test_menu_custom_hash(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["3", " 0a1b2c3 "])
        target = orchestrator.select_target(prompt)
        assert target.kind is RollbackKind.INTERACTIVE_COMMIT
        assert target.revision_id == "0a1b2c3"

    def test_menu_custom_hash_empty(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["3", "  "])
        with pytest.raises(ConfigurationError, match="No commit hash provided"):
            orchestrator.select_target(prompt)

    def test_menu_cancel(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["4"])
        with pytest.raises(UserCancelled):
            orchestrator.select_target(prompt)

    def test_menu_invalid_choice(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), answers=["7"])
        with pytest.raises(ConfigurationError, match="Invalid selection: '7'"):
            orchestrator.select_target(prompt)


class TestRun:
    def test_declined_confirmation_changes_nothing(self, make_orchestrator):
        runner = _runner()
        orchestrator, prompt = make_orchestrator(runner, answers=["no"], previous=True)

        with pytest.raises(UserCancelled):
            orchestrator.run()

        assert runner.mutating_calls() == []
        assert prompt.closed
        assert "ROLLBACK CONFIRMATION" in prompt.shown

    @pytest.mark.parametrize("answer", ["yes", "YES", " Yes "])
    def test_confirmed_rollback(self, make_orchestrator, answer):
        runner = _runner()
        suite = StubSuite()
        orchestrator, prompt = make_orchestrator(runner, answers=[answer], previous=True, suite=suite)

        outcome = orchestrator.run()

        assert outcome.success
        assert outcome.target.revision_id == PREVIOUS
        assert outcome.current.commit == CURRENT
        assert runner.mutating_calls() == [f"git checkout {PREVIOUS}", "railway up --detach"]
        assert suite.targets == [URL]
        assert prompt.closed

    def test_redeploys_after_checkout(self, make_orchestrator):
        runner = _runner()
        orchestrator, _ = make_orchestrator(runner, force=True, previous=True)

        orchestrator.run()

        checkout = runner.calls.index(f"git checkout {PREVIOUS}")
        deploy = runner.calls.index("railway up --detach")
        assert checkout < deploy
        assert runner.calls[deploy + 1] == "railway status --json"

    def test_force_skips_confirmation(self, make_orchestrator):
        orchestrator, prompt = make_orchestrator(_runner(), force=True, commit="abc1234")
        orchestrator.run()
        assert prompt.questions == []

    def test_stashes_dirty_tree(self, make_orchestrator):
        runner = _runner(**{"git status --porcelain": " M server.js\n"})
        orchestrator, _ = make_orchestrator(runner, force=True, previous=True)

        orchestrator.run()

        assert f"git stash push -m {STASH_MESSAGE}" in runner.calls

    def test_stash_failure_is_not_fatal(self, make_orchestrator):
        runner = _runner(
            **{
                "git status --porcelain": " M server.js\n",
                f"git stash push -m {STASH_MESSAGE}": command_error("git stash"),
            }
        )
        orchestrator, _ = make_orchestrator(runner, force=True, previous=True)
        assert orchestrator.run().success

    def test_checkout_mismatch_fails_and_restores(self, make_orchestrator):
        runner = _runner(**{"git rev-parse HEAD": [f"{CURRENT}\n", f"{CURRENT}\n"]})
        orchestrator, _ = make_orchestrator(runner, force=True, commit="abc1234")

        with pytest.raises(ExecutionError, match="expected abc1234") as exc_info:
            orchestrator.run()

        assert not runner.called("railway up")
        assert runner.calls[-1] == f"git checkout {CURRENT}"
        assert exc_info.value.restore_error is None

    def test_deploy_failure_restores_original(self, make_orchestrator):
        runner = _runner(**{"railway up --detach": command_error("railway up --detach")})
        orchestrator, prompt = make_orchestrator(runner, force=True, previous=True)

        with pytest.raises(ExecutionError):
            orchestrator.run()

        assert runner.calls[-1] == f"git checkout {CURRENT}"
        assert prompt.closed

    def test_restore_failure_is_attached(self, make_orchestrator):
        runner = _runner(
            **{
                "railway status --json": [status_json("SUCCESS"), status_json("FAILED")],
                f"git checkout {CURRENT}": command_error(f"git checkout {CURRENT}", stderr="conflict"),
            }
        )
        orchestrator, _ = make_orchestrator(runner, force=True, previous=True)

        with pytest.raises(DeploymentFailedError) as exc_info:
            orchestrator.run()

        assert isinstance(exc_info.value.restore_error, ExecutionError)
        assert "restore_error" in exc_info.value.context.metadata

    def test_failed_verification_is_reported_not_raised(self, make_orchestrator):
        suite = StubSuite(make_report(["basic_health"], target=URL))
        orchestrator, _ = make_orchestrator(_runner(), force=True, previous=True, suite=suite)

        outcome = orchestrator.run()

        assert outcome.success is False
        assert outcome.report.summary.failed == 1

    def test_no_verify(self, make_orchestrator):
        suite = StubSuite()
        orchestrator, _ = make_orchestrator(_runner(), force=True, previous=True, verify=False, suite=suite)

        outcome = orchestrator.run()

        assert outcome.report is None
        assert outcome.success
        assert suite.targets == []

    def test_preselected_target(self, make_orchestrator):
        runner = _runner()
        orchestrator, prompt = make_orchestrator(runner, force=True)
        target = RollbackTarget(kind=RollbackKind.PREVIOUS_COMMIT, revision_id=PREVIOUS)

        outcome = orchestrator.run(target)

        assert outcome.target == target
        assert "git log --oneline -10" not in runner.calls

    def test_context_restored(self, make_orchestrator):
        set_context(run_id="3f9c0a1b2d4e", phase="deploying")
        orchestrator, _ = make_orchestrator(_runner(), force=True, previous=True)

        orchestrator.run()

        assert get_context().phase == "deploying"
        assert get_context().revision == PREVIOUS
