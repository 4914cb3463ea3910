"""
Tests for persistence — the audit ledger.
"""

import json
import re
from pathlib import Path

from doomsetup.core.engine.errors import PlanAborted
from doomsetup.core.engine.executor import generate_operation_id, write_audit_entries
from doomsetup.core.models import RunReport, RunState, StepOutcome, StepResult
from doomsetup.core.persistence.audit import AuditEntry, AuditWriter


class TestAuditWriter:
    def test_write_and_read(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        writer.write(AuditEntry(operation_id="op-1", operation_type="install", status="ok"))
        writer.write(AuditEntry(operation_id="op-2", operation_type="install", status="aborted"))

        entries = writer.read_all()
        assert [e.operation_id for e in entries] == ["op-1", "op-2"]
        assert entries[1].status == "aborted"

    def test_default_location_under_project(self, tmp_path: Path):
        writer = AuditWriter(project_root=tmp_path)
        assert writer.path == tmp_path / ".state" / "audit.ndjson"
        writer.write(AuditEntry(operation_id="op-1"))
        assert writer.path.is_file()

    def test_one_json_object_per_line(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        for i in range(3):
            writer.write(AuditEntry(operation_id=f"op-{i}"))

        lines = writer.path.read_text().splitlines()
        assert len(lines) == 3
        assert all(json.loads(line)["operation_id"] for line in lines)

    def test_read_missing_file(self, tmp_path: Path):
        assert AuditWriter(path=tmp_path / "none.ndjson").read_all() == []

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "audit.ndjson"
        writer = AuditWriter(path=path)
        writer.write(AuditEntry(operation_id="good"))
        with path.open("a") as f:
            f.write("{not json\n\n")
        writer.write(AuditEntry(operation_id="also-good"))

        assert [e.operation_id for e in writer.read_all()] == ["good", "also-good"]

    def test_read_recent(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation_id=f"op-{i}"))
        assert [e.operation_id for e in writer.read_recent(2)] == ["op-3", "op-4"]

    def test_unwritable_location_does_not_raise(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = AuditWriter(path=blocker / "audit.ndjson")
        writer.write(AuditEntry(operation_id="lost"))
        assert writer.read_all() == []


class TestRunAudit:
    def test_aborted_run_entry(self, tmp_path: Path):
        failed = StepResult(step="docker_install", outcome=StepOutcome.FAILED, error="apt failed")
        report = RunReport(
            operation_id="op-x",
            state=RunState.ABORTED,
            results=[
                StepResult(step="system_check", outcome=StepOutcome.SUCCEEDED),
                StepResult(step="base_packages", outcome=StepOutcome.SKIPPED),
                failed,
            ],
            error=PlanAborted("docker_install", failed),
            failed_step="docker_install",
            duration_ms=1234,
        )
        writer = AuditWriter(path=tmp_path / "audit.ndjson")

        write_audit_entries(report, writer, mode="vpn-mesh", plan_fingerprint="abc123")

        (entry,) = writer.read_all()
        assert entry.operation_id == "op-x"
        assert entry.operation_type == "install"
        assert entry.mode == "vpn-mesh"
        assert entry.status == "aborted"
        assert entry.steps_total == 3
        assert entry.steps_attempted == 2
        assert entry.steps_succeeded == 1
        assert entry.steps_failed == 1
        assert entry.steps_skipped == 1
        assert entry.failed_step == "docker_install"
        assert entry.duration_ms == 1234
        assert entry.errors == ["step 'docker_install' failed: apt failed"]
        assert entry.context == {"plan": "abc123"}

    def test_completed_run_with_optional_failure_is_partial(self, tmp_path: Path):
        report = RunReport(
            state=RunState.COMPLETED,
            results=[StepResult(step="terminal_tools", outcome=StepOutcome.FAILED, optional=True)],
        )
        writer = AuditWriter(path=tmp_path / "audit.ndjson")
        write_audit_entries(report, writer)

        (entry,) = writer.read_all()
        assert entry.status == "partial"
        assert entry.errors == []
        assert entry.context == {}

    def test_operation_id_format(self):
        first, second = generate_operation_id(), generate_operation_id()
        assert re.fullmatch(r"op-\d{8}-\d{6}-[0-9a-f]{6}", first)
        assert first != second
