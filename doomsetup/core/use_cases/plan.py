"""
Plan use case — config + detection + selections → resolved plan.

Shared by ``plan`` (preview) and ``install`` so both always see
the same plan for the same inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from doomsetup.core.config.loader import ConfigError, find_config_file, load_config, project_root
from doomsetup.core.engine.planner import build_plan, render_commands
from doomsetup.core.models.capability import CapabilitySnapshot
from doomsetup.core.models.config import InstallConfig
from doomsetup.core.models.plan import DeploymentMode, Selections, StepPlan
from doomsetup.core.use_cases.detect import run_detect

logger = logging.getLogger(__name__)


@dataclass
class PlanResult:
    """Result of the plan use case."""

    plan: StepPlan | None = None
    snapshot: CapabilitySnapshot | None = None
    selections: Selections | None = None
    config: InstallConfig | None = None
    project_root: Path | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.plan is not None and self.selections is not None
        return {
            "project_root": str(self.project_root),
            "mode": self.selections.mode.value,
            "fingerprint": self.plan.fingerprint(),
            "warnings": self.warnings,
            "steps": [
                {
                    "name": step.name,
                    "description": step.description,
                    "run": not step.skipped,
                    "skip_reason": step.skip_reason or None,
                    "optional": step.optional,
                    "timeout": step.timeout,
                    "command": list(step.command),
                }
                for step in self.plan.steps
            ],
            "commands": render_commands(self.plan),
        }


def prepare_plan(
    config_path: Path | None = None,
    mode: DeploymentMode | None = None,
    skip: tuple[str, ...] = (),
) -> PlanResult:
    """Load config, detect the host and resolve the step plan.

    Args:
        config_path: Optional explicit path to doomsetup.yml.
        mode: Deployment mode; defaults to the config, then the recommendation.
        skip: Components to leave out on top of the config toggles.
    """
    result = PlanResult()

    try:
        if config_path is None:
            config_path = find_config_file()
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.config = config
    result.project_root = project_root(config_path)

    detected = run_detect()
    if detected.error:
        result.error = detected.error
        return result
    assert detected.snapshot is not None and detected.recommended_mode is not None
    result.snapshot = detected.snapshot
    result.warnings = detected.warnings

    chosen = mode or config.mode or detected.recommended_mode
    try:
        selections = config.selections(chosen).without(*skip)
        plan = build_plan(
            detected.snapshot,
            selections,
            project_root=result.project_root,
            timeouts=config.timeouts,
        )
    except ValueError as e:
        result.error = str(e)
        return result

    result.selections = selections
    result.plan = plan
    logger.info("Planned %d/%d steps in %s mode", len(plan.runnable), len(plan), chosen.value)
    return result
