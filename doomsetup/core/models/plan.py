"""
Plan models — user selections, resolved steps, and the step plan.

A ``StepPlan`` is the output of the planner: every condition has
already been evaluated, so each ``Step`` carries a baked-in
``skipped`` flag. The executor never re-evaluates anything.
"""

from __future__ import annotations

import hashlib
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class DeploymentMode(StrEnum):
    """How the services are reached once installed."""

    VPN_MESH = "vpn-mesh"
    LOCAL_NETWORK = "local-network"


class Selections(BaseModel):
    """Component toggles and the chosen deployment mode.

    Supplied by the presentation layer (CLI flags or config file).
    """

    model_config = ConfigDict(frozen=True)

    mode: DeploymentMode = DeploymentMode.VPN_MESH
    native_vpn: bool = False   # host VPN daemon instead of the VPN container

    docker: bool = True
    vpn: bool = True
    terminal_tools: bool = True
    ssh_hardening: bool = True
    secrets: bool = True

    @classmethod
    def for_mode(cls, mode: DeploymentMode, native_vpn: bool = False, **toggles: bool) -> Selections:
        """Build selections with the mode rules applied.

        ``local-network`` never runs the VPN. ``native_vpn`` only picks
        how a selected VPN is set up: the host daemon instead of a
        container.
        """
        selections = cls(mode=mode, native_vpn=native_vpn, **toggles)
        return selections.normalized()

    def normalized(self) -> Selections:
        """Return a copy with toggles forced by the mode."""
        if self.mode == DeploymentMode.LOCAL_NETWORK:
            return self.model_copy(update={"vpn": False, "native_vpn": False})
        return self

    @property
    def vpn_container(self) -> bool:
        """True when the VPN runs as a container next to the services."""
        return self.mode == DeploymentMode.VPN_MESH and self.vpn and not self.native_vpn

    def without(self, *components: str) -> Selections:
        """Return a copy with the named components turned off."""
        unknown = [c for c in components if c not in COMPONENTS]
        if unknown:
            raise ValueError(f"Unknown component(s): {', '.join(unknown)}")
        return self.model_copy(update={c: False for c in components})


# Toggleable components, in dependency order
COMPONENTS: tuple[str, ...] = ("docker", "vpn", "terminal_tools", "ssh_hardening", "secrets")


class Step(BaseModel):
    """One resolved unit of installation work.

    ``command`` is opaque to the executor: it is handed to the
    command adapter as-is. ``rollback`` is the optional inverse
    action run when a later required step aborts the plan.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    command: tuple[str, ...] = ()
    cwd: str | None = None
    timeout: float = 120.0       # seconds
    optional: bool = False
    component: str = ""
    rollback: tuple[str, ...] | None = None

    skipped: bool = False
    skip_reason: str = ""


class StepPlan(BaseModel):
    """Ordered, immutable sequence of resolved steps."""

    model_config = ConfigDict(frozen=True)

    steps: tuple[Step, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def runnable(self) -> list[Step]:
        """Steps that will be attempted."""
        return [s for s in self.steps if not s.skipped]

    @property
    def skipped(self) -> list[Step]:
        """Steps resolved as skipped."""
        return [s for s in self.steps if s.skipped]

    def get(self, name: str) -> Step | None:
        """Look up a step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def fingerprint(self) -> str:
        """Stable digest of the plan contents."""
        return hashlib.sha256(self.model_dump_json().encode("utf-8")).hexdigest()
