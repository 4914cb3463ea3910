"""
Install use case — the full vertical slice.

Resolves the plan, executes it through a command adapter, and
writes the outcome to the audit ledger. The caller gets the
executor through ``on_executor`` before the run starts, which is
how the CLI wires Ctrl-C to ``cancel()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from doomsetup.adapters.base import CommandAdapter
from doomsetup.core.engine.executor import (
    ProgressCallback,
    StepExecutor,
    generate_operation_id,
    write_audit_entries,
)
from doomsetup.core.engine.planner import render_commands
from doomsetup.core.models.plan import DeploymentMode, StepPlan
from doomsetup.core.models.result import RunReport
from doomsetup.core.persistence.audit import AuditWriter
from doomsetup.core.use_cases.plan import prepare_plan

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of the install use case."""

    plan: StepPlan | None = None
    report: RunReport | None = None
    project_root: Path | None = None
    dry_run: bool = False
    commands: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        return self.report is None or self.report.ok

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {
            "project_root": str(self.project_root),
            "dry_run": self.dry_run,
            "warnings": self.warnings,
        }
        if self.dry_run:
            result["commands"] = self.commands
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def _mock_adapter(plan: StepPlan) -> CommandAdapter:
    from doomsetup.adapters.mock import MockAdapter

    adapter = MockAdapter()
    for step in plan.runnable:
        adapter.script(step.name, stdout=[f"[mock] {step.description or step.name}"])
    return adapter


def run_install(
    config_path: Path | None = None,
    mode: DeploymentMode | None = None,
    skip: tuple[str, ...] = (),
    dry_run: bool = False,
    mock_mode: bool = False,
    adapter: CommandAdapter | None = None,
    on_progress: ProgressCallback | None = None,
    on_executor: Callable[[StepExecutor], None] | None = None,
) -> InstallResult:
    """Plan and execute the installation.

    Args:
        config_path: Optional explicit path to doomsetup.yml.
        mode: Deployment mode override.
        skip: Components to leave out.
        dry_run: If True, plan and render commands without executing.
        mock_mode: If True, run every step through a scripted mock.
        adapter: Optional pre-configured command adapter.
        on_progress: Receives every output line as it is drained.
        on_executor: Receives the executor before the run starts.
    """
    result = InstallResult(dry_run=dry_run)

    prepared = prepare_plan(config_path=config_path, mode=mode, skip=skip)
    if prepared.error:
        result.error = prepared.error
        return result
    assert prepared.plan is not None and prepared.config is not None
    plan = prepared.plan
    root = prepared.project_root or Path.cwd()

    result.plan = plan
    result.project_root = root
    result.warnings = prepared.warnings

    if dry_run:
        result.commands = render_commands(plan)
        return result

    if adapter is None:
        if mock_mode:
            adapter = _mock_adapter(plan)
        else:
            from doomsetup.adapters.shell.command import ShellCommandAdapter

            adapter = ShellCommandAdapter()

    settings = prepared.config.executor
    transcript = Path(settings.transcript) if settings.transcript else None
    if transcript is not None and not transcript.is_absolute():
        transcript = root / transcript

    executor = StepExecutor(
        adapter,
        project_root=root,
        settings=settings,
        transcript_path=transcript,
    )
    if on_executor is not None:
        on_executor(executor)

    operation_id = generate_operation_id()
    report = executor.run(plan, on_progress=on_progress, operation_id=operation_id)
    result.report = report

    assert prepared.selections is not None
    write_audit_entries(
        report,
        AuditWriter(project_root=root),
        mode=prepared.selections.mode.value,
        plan_fingerprint=plan.fingerprint(),
    )
    return result
