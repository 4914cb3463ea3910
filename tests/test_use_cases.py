"""
Tests for use cases — plan preparation and the install slice.
"""

from pathlib import Path

import pytest

from doomsetup.adapters.mock import MockAdapter
from doomsetup.core.engine.errors import PlanAborted
from doomsetup.core.models import DeploymentMode, RunState, StepOutcome, ToolState
from doomsetup.core.persistence.audit import AuditWriter
from doomsetup.core.use_cases.install import run_install
from doomsetup.core.use_cases.plan import prepare_plan


@pytest.fixture
def fake_host(monkeypatch, make_snapshot):
    snap = make_snapshot()
    monkeypatch.setattr("doomsetup.core.use_cases.detect.detect", lambda: snap)
    return snap


class TestPreparePlan:
    def test_recommended_mode(self, tmp_project, fake_host):
        result = prepare_plan()
        assert result.error is None
        assert result.selections.mode == DeploymentMode.VPN_MESH
        assert result.project_root == tmp_project.resolve()

    def test_timeouts_from_config(self, tmp_project, fake_host):
        (tmp_project / "doomsetup.yml").write_text("timeouts:\n  docker_install: 42\n")
        result = prepare_plan()
        assert result.plan.get("docker_install").timeout == 42.0

    def test_installed_docker_skipped(self, tmp_project, monkeypatch, make_snapshot):
        snap = make_snapshot(tools={"docker": ToolState(installed=True, running=True)})
        monkeypatch.setattr("doomsetup.core.use_cases.detect.detect", lambda: snap)

        step = prepare_plan().plan.get("docker_install")
        assert step.skipped
        assert step.skip_reason == "already satisfied"


class TestRunInstall:
    def test_success_audited(self, tmp_project, fake_host):
        adapter = MockAdapter()
        result = run_install(adapter=adapter)

        assert result.ok
        assert result.report.state == RunState.COMPLETED
        assert adapter.started_labels[0] == "system_check"

        (entry,) = AuditWriter(project_root=tmp_project.resolve()).read_all()
        assert entry.status == "ok"
        assert entry.operation_id == result.report.operation_id

    def test_state_lands_next_to_explicit_config(self, tmp_project, fake_host):
        project = tmp_project / "elsewhere"
        project.mkdir()
        config = project / "doomsetup.yml"
        config.write_text("components:\n  secrets: false\n")

        adapter = MockAdapter()
        result = run_install(config_path=config, adapter=adapter)

        assert result.project_root == project.resolve()
        assert {inv.cwd for inv in adapter.call_log} == {str(project.resolve())}
        assert len(AuditWriter(project_root=project.resolve()).read_all()) == 1
        assert not (tmp_project / ".state").exists()

    def test_required_failure_aborts_and_rolls_back(self, tmp_project, fake_host):
        adapter = MockAdapter()
        adapter.set_failure("services_start", stderr="port 8443 already in use")

        result = run_install(adapter=adapter)
        report = result.report

        assert not result.ok
        assert report.state == RunState.ABORTED
        assert isinstance(report.error, PlanAborted)
        assert report.failed_step == "services_start"
        assert "health_check" not in adapter.started_labels
        assert [r.step for r in report.rollback] == ["ssh_hardening"]
        assert adapter.started_labels[-1] == "rollback:ssh_hardening"

        (entry,) = AuditWriter(project_root=tmp_project.resolve()).read_all()
        assert entry.status == "aborted"
        assert entry.failed_step == "services_start"

    def test_optional_failure_continues(self, tmp_project, fake_host):
        adapter = MockAdapter()
        adapter.set_failure("terminal_tools")

        report = run_install(adapter=adapter).report

        assert report.state == RunState.COMPLETED
        assert report.status == "partial"
        outcomes = {r.step: r.outcome for r in report.results}
        assert outcomes["terminal_tools"] == StepOutcome.FAILED
        assert outcomes["health_check"] == StepOutcome.SUCCEEDED

    def test_cancel_via_executor_hook(self, tmp_project, fake_host):
        adapter = MockAdapter()
        adapter.script("base_packages", stdout=["apt-get install ..."])
        adapter.script("docker_install", duration=5.0)
        captured = {}

        def on_progress(position, total, step, line):
            if step.name == "base_packages":
                captured["executor"].cancel()

        result = run_install(
            adapter=adapter,
            on_progress=on_progress,
            on_executor=lambda executor: captured.update(executor=executor),
        )

        assert result.report.state == RunState.CANCELLED
        assert "docker_install" not in adapter.started_labels
        assert result.report.rollback == []

    def test_dry_run_does_not_execute(self, tmp_project, fake_host):
        adapter = MockAdapter()
        result = run_install(adapter=adapter, dry_run=True)
        assert result.ok
        assert result.commands
        assert adapter.call_count == 0
        assert not (tmp_project / ".state").exists()

    def test_transcript_relative_to_project(self, tmp_project: Path, fake_host):
        (tmp_project / "doomsetup.yml").write_text("executor:\n  transcript: logs/install.log\n")
        adapter = MockAdapter()
        adapter.script("system_check", stdout=["Linux devbox"])

        run_install(adapter=adapter)

        assert "Linux devbox" in (tmp_project / "logs" / "install.log").read_text()
