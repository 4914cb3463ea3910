"""
Health use case — verify the installed services.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from doomsetup.core.config.loader import ConfigError, find_config_file, load_config, project_root
from doomsetup.core.models.health import HealthReport
from doomsetup.core.observability.health import verify


@dataclass
class HealthResult:
    """Result of the health use case."""

    report: HealthReport | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.report is not None
        return self.report.to_dict()


def run_health(config_path: Path | None = None) -> HealthResult:
    """Run every health check against the configured target."""
    try:
        if config_path is None:
            config_path = find_config_file()
        config = load_config(config_path)
    except ConfigError as e:
        return HealthResult(error=str(e))

    target = config.health
    if target.project_root == ".":
        target = target.model_copy(update={"project_root": str(project_root(config_path))})
    return HealthResult(report=verify(target))
