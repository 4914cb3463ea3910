"""
Plan builder — resolve the step catalog into a ``StepPlan``.

Pure function of (snapshot, selections): every run/skip decision
is made here, once, and baked into the plan. Identical inputs give
identical plans, so ``plan`` previews and ``--dry-run`` show exactly
what ``install`` will do.

Resolution, per catalog entry in order:
    required component unavailable → skipped ("requires X")
    already satisfied              → skipped ("already satisfied"), available
    not selected                   → skipped ("not selected")
    otherwise                      → runs, component available

A skipped-because-unselected component is unavailable, so every
step that requires it is skipped too (cascade).
"""

from __future__ import annotations

import logging
import shlex
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from doomsetup.core.models.capability import CapabilitySnapshot
from doomsetup.core.models.plan import DeploymentMode, Selections, Step, StepPlan
from doomsetup.core.services.domain.conflicts import SERVICE_PORTS

logger = logging.getLogger(__name__)

HARDENING_FILE = "/etc/ssh/sshd_config.d/99-doom-hardening.conf"
CODE_SERVER_PORT = SERVICE_PORTS["code-server"]

_INSTALL_SKIP_FLAGS = (
    "--skip-docker",
    "--skip-tailscale",
    "--skip-terminal",
    "--skip-hardening",
    "--skip-secrets",
)


@dataclass(frozen=True)
class BuildContext:
    """Inputs every command builder sees."""

    snapshot: CapabilitySnapshot
    selections: Selections
    root: Path

    def script(self, name: str) -> str:
        return str(self.root / "scripts" / name)

    def install_only(self, keep: str | None = None) -> tuple[str, ...]:
        """install.sh with every section skipped except ``keep``."""
        flags = tuple(f for f in _INSTALL_SKIP_FLAGS if f != keep)
        return ("bash", self.script("install.sh"), "--unattended", *flags)

    @property
    def compose_file(self) -> str:
        if self.selections.vpn_container and self.snapshot.tun_device:
            return "docker-compose.yml"
        return "docker-compose.lxc.yml"


@dataclass(frozen=True)
class StepDefinition:
    """Catalog entry: a step before its conditions are resolved."""

    name: str
    description: str
    component: str
    timeout: float
    command: Callable[[BuildContext], tuple[str, ...]]
    requires: Callable[[Selections], tuple[str, ...]] = lambda s: ("system",)
    selected: Callable[[CapabilitySnapshot, Selections], bool] = lambda snap, s: True
    already_satisfied: Callable[[CapabilitySnapshot, Selections], bool] = lambda snap, s: False
    rollback: Callable[[BuildContext], tuple[str, ...]] | None = None
    optional: bool = False


# ── Catalog ─────────────────────────────────────────────────────


def _vpn_selected(snapshot: CapabilitySnapshot, selections: Selections) -> bool:
    if selections.mode != DeploymentMode.VPN_MESH or not selections.vpn:
        return False
    # The container needs a tunnel device; the host daemon brings its own
    return selections.native_vpn or snapshot.tun_device


def _vpn_satisfied(snapshot: CapabilitySnapshot, selections: Selections) -> bool:
    # Only the host daemon is observable before install
    return selections.native_vpn and snapshot.tool("tailscale").running


def _network_command(ctx: BuildContext) -> tuple[str, ...]:
    if ctx.selections.native_vpn:
        return (
            "bash", ctx.script("setup-tailscale-serve.sh"), "setup",
            f"--code-port={CODE_SERVER_PORT}",
        )
    return ctx.install_only("--skip-tailscale")


CATALOG: tuple[StepDefinition, ...] = (
    StepDefinition(
        name="system_check",
        description="Checking system requirements",
        component="system",
        timeout=30,
        command=lambda ctx: ("bash", "-c", "uname -a"),
        requires=lambda s: (),
    ),
    StepDefinition(
        name="base_packages",
        description="Installing base packages",
        component="packages",
        timeout=300,
        command=lambda ctx: ctx.install_only(),
        optional=True,
    ),
    StepDefinition(
        name="docker_install",
        description="Setting up Docker",
        component="docker",
        timeout=600,
        command=lambda ctx: ctx.install_only("--skip-docker"),
        selected=lambda snap, s: s.docker,
        already_satisfied=lambda snap, s: snap.tool("docker").installed,
    ),
    StepDefinition(
        name="network_config",
        description="Configuring network",
        component="vpn",
        timeout=120,
        command=_network_command,
        requires=lambda s: ("system",) if s.native_vpn else ("docker",),
        selected=_vpn_selected,
        already_satisfied=_vpn_satisfied,
    ),
    StepDefinition(
        name="terminal_tools",
        description="Installing terminal tools",
        component="terminal_tools",
        timeout=600,
        command=lambda ctx: ("bash", ctx.script("setup-terminal.sh")),
        selected=lambda snap, s: s.terminal_tools,
        optional=True,
    ),
    StepDefinition(
        name="ssh_hardening",
        description="Applying security hardening",
        component="ssh_hardening",
        timeout=120,
        command=lambda ctx: ("bash", ctx.script("setup-host.sh")),
        selected=lambda snap, s: s.ssh_hardening,
        rollback=lambda ctx: ("rm", "-f", HARDENING_FILE),
    ),
    StepDefinition(
        name="secrets_setup",
        description="Setting up secrets management",
        component="secrets",
        timeout=120,
        command=lambda ctx: ("bash", ctx.script("setup-secrets.sh"), "init"),
        selected=lambda snap, s: s.secrets,
    ),
    StepDefinition(
        name="env_config",
        description="Creating environment file",
        component="env",
        timeout=30,
        command=lambda ctx: ("bash", "-c", "test -f .env || cp .env.example .env"),
    ),
    StepDefinition(
        name="services_start",
        description="Starting services",
        component="services",
        timeout=300,
        command=lambda ctx: ("docker", "compose", "-f", ctx.compose_file, "up", "-d"),
        requires=lambda s: ("docker", "env"),
        rollback=lambda ctx: ("docker", "compose", "-f", ctx.compose_file, "down"),
    ),
    StepDefinition(
        name="health_check",
        description="Running health checks",
        component="health",
        timeout=120,
        command=lambda ctx: (sys.executable, "-m", "doomsetup.main", "health", "--strict"),
        requires=lambda s: ("services",),
        optional=True,
    ),
)

STEP_NAMES: tuple[str, ...] = tuple(d.name for d in CATALOG)


# ── Builder ─────────────────────────────────────────────────────


def build_plan(
    snapshot: CapabilitySnapshot,
    selections: Selections,
    project_root: str | Path = ".",
    timeouts: dict[str, float] | None = None,
) -> StepPlan:
    """Resolve the catalog against a snapshot and user selections.

    Args:
        snapshot: Detected host capabilities.
        selections: Mode and component toggles.
        project_root: Directory the steps run in (scripts live below it).
        timeouts: Per-step timeout overrides, in seconds.

    Returns:
        An immutable plan with every run/skip decision resolved.

    Raises:
        ValueError: If ``timeouts`` names an unknown step.
    """
    timeouts = timeouts or {}
    unknown = sorted(set(timeouts) - set(STEP_NAMES))
    if unknown:
        raise ValueError(f"Unknown step(s) in timeouts: {', '.join(unknown)}")

    selections = selections.normalized()
    ctx = BuildContext(snapshot=snapshot, selections=selections, root=Path(project_root))
    available: set[str] = set()
    steps: list[Step] = []

    for definition in CATALOG:
        skip_reason = _resolve(definition, snapshot, selections, available)
        if skip_reason is None or skip_reason == "already satisfied":
            available.add(definition.component)

        steps.append(Step(
            name=definition.name,
            description=definition.description,
            command=definition.command(ctx),
            cwd=str(ctx.root),
            timeout=float(timeouts.get(definition.name, definition.timeout)),
            optional=definition.optional,
            component=definition.component,
            rollback=definition.rollback(ctx) if definition.rollback else None,
            skipped=skip_reason is not None,
            skip_reason=skip_reason or "",
        ))

    plan = StepPlan(steps=tuple(steps))
    logger.debug(
        "Plan resolved: %d steps, %d to run (%s)",
        len(plan), len(plan.runnable), selections.mode.value,
    )
    return plan


def _resolve(
    definition: StepDefinition,
    snapshot: CapabilitySnapshot,
    selections: Selections,
    available: set[str],
) -> str | None:
    for component in definition.requires(selections):
        if component not in available:
            return f"requires {component}"
    if definition.already_satisfied(snapshot, selections):
        return "already satisfied"
    if not definition.selected(snapshot, selections):
        return "not selected"
    return None


def render_commands(plan: StepPlan) -> list[str]:
    """Shell lines equivalent to the plan, for dry-run previews."""
    lines = []
    for step in plan.steps:
        if step.skipped:
            lines.append(f"# {step.name}: skipped ({step.skip_reason})")
        else:
            lines.append(shlex.join(step.command))
    return lines
