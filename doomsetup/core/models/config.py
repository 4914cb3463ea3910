"""
Install configuration — loaded from doomsetup.yml.

Every field has a default, so a missing config file is a valid
configuration: the installer then runs with the recommended mode
and all components selected.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from doomsetup.core.models.health import HealthTarget
from doomsetup.core.models.plan import DeploymentMode, Selections


class ComponentToggles(BaseModel):
    """Which components the user wants installed."""

    docker: bool = True
    vpn: bool = True
    terminal_tools: bool = True
    ssh_hardening: bool = True
    secrets: bool = True


class ExecutorSettings(BaseModel):
    """Tuning knobs for the step executor."""

    queue_size: int = Field(default=256, ge=1)
    overflow: Literal["block", "drop"] = "block"
    max_output_lines: int = Field(default=2000, ge=1)
    kill_grace: float = Field(default=0.5, ge=0)   # seconds between terminate and kill
    poll_interval: float = Field(default=0.05, gt=0)
    rollback: bool = True
    force_cancel: bool = False
    transcript: str | None = None


class InstallConfig(BaseModel):
    """Root configuration."""

    mode: DeploymentMode | None = None   # None → use the recommendation
    native_vpn: bool = False
    components: ComponentToggles = Field(default_factory=ComponentToggles)
    timeouts: dict[str, float] = Field(default_factory=dict)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)
    health: HealthTarget = Field(default_factory=HealthTarget)

    def selections(self, mode: DeploymentMode) -> Selections:
        """Build the user selections for the given mode."""
        return Selections.for_mode(
            mode,
            native_vpn=self.native_vpn,
            **self.components.model_dump(),
        )
