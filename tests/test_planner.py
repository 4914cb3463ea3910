"""
Tests for the plan builder — determinism, ordering, skips, cascade.
"""

import shlex

import pytest

from doomsetup.core.engine.planner import STEP_NAMES, build_plan, render_commands
from doomsetup.core.models import DeploymentMode, Selections, ToolState

_ORDER = [
    "system_check",
    "base_packages",
    "docker_install",
    "network_config",
    "terminal_tools",
    "ssh_hardening",
    "secrets_setup",
    "env_config",
    "services_start",
    "health_check",
]


def _vpn() -> Selections:
    return Selections.for_mode(DeploymentMode.VPN_MESH)


def _skipped(plan) -> dict[str, str]:
    return {s.name: s.skip_reason for s in plan.skipped}


class TestDeterminism:
    def test_same_inputs_same_plan(self, snapshot):
        first = build_plan(snapshot, _vpn(), project_root="/opt/doom")
        second = build_plan(snapshot, _vpn(), project_root="/opt/doom")
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()
        assert first.fingerprint() == second.fingerprint()

    def test_different_selections_different_fingerprint(self, snapshot):
        full = build_plan(snapshot, _vpn())
        minimal = build_plan(snapshot, _vpn().without("terminal_tools"))
        assert full.fingerprint() != minimal.fingerprint()

    def test_order_is_fixed(self, snapshot):
        plan = build_plan(snapshot, _vpn())
        assert [s.name for s in plan.steps] == _ORDER
        assert list(STEP_NAMES) == _ORDER

    def test_selections_never_reorder(self, snapshot):
        plan = build_plan(snapshot, _vpn().without("docker", "secrets"))
        assert [s.name for s in plan.steps] == _ORDER


class TestResolution:
    def test_full_install_runs_everything(self, snapshot):
        plan = build_plan(snapshot, _vpn())
        assert plan.skipped == []

    def test_default_timeouts(self, snapshot):
        plan = build_plan(snapshot, _vpn())
        assert plan.get("system_check").timeout == 30
        assert plan.get("docker_install").timeout == 600
        assert plan.get("env_config").timeout == 30

    def test_optional_flags(self, snapshot):
        plan = build_plan(snapshot, _vpn())
        optional = {s.name for s in plan.steps if s.optional}
        assert optional == {"base_packages", "terminal_tools", "health_check"}

    def test_unselected_component_skipped(self, snapshot):
        plan = build_plan(snapshot, _vpn().without("terminal_tools"))
        assert _skipped(plan) == {"terminal_tools": "not selected"}

    def test_docker_already_installed(self, make_snapshot):
        snap = make_snapshot(tools={"docker": ToolState(installed=True, running=True)})
        plan = build_plan(snap, _vpn())
        assert _skipped(plan) == {"docker_install": "already satisfied"}
        assert not plan.get("services_start").skipped

    def test_docker_installed_but_deselected_still_available(self, make_snapshot):
        snap = make_snapshot(tools={"docker": ToolState(installed=True)})
        plan = build_plan(snap, _vpn().without("docker"))
        assert plan.get("docker_install").skip_reason == "already satisfied"
        assert not plan.get("services_start").skipped

    def test_skip_cascades(self, snapshot):
        plan = build_plan(snapshot, _vpn().without("docker"))
        assert _skipped(plan) == {
            "docker_install": "not selected",
            "network_config": "requires docker",
            "services_start": "requires docker",
            "health_check": "requires services",
        }

    def test_local_network_skips_vpn(self, snapshot):
        sel = Selections.for_mode(DeploymentMode.LOCAL_NETWORK)
        plan = build_plan(snapshot, sel)
        assert _skipped(plan) == {"network_config": "not selected"}
        assert "docker-compose.lxc.yml" in plan.get("services_start").command

    def test_vpn_needs_tun_device(self, make_snapshot):
        snap = make_snapshot(tun_device=False, tun_path="")
        plan = build_plan(snap, _vpn())
        assert plan.get("network_config").skip_reason == "not selected"

    def test_native_vpn_without_container(self, make_snapshot):
        snap = make_snapshot(tun_device=False, tun_path="")
        sel = Selections.for_mode(DeploymentMode.VPN_MESH, native_vpn=True)
        plan = build_plan(snap, sel.without("docker"))

        step = plan.get("network_config")
        assert not step.skipped
        assert "setup-tailscale-serve.sh" in step.command[1]
        assert "--code-port=8443" in step.command

    def test_native_vpn_already_connected(self, make_snapshot):
        snap = make_snapshot(tools={"tailscale": ToolState(installed=True, running=True)})
        sel = Selections.for_mode(DeploymentMode.VPN_MESH, native_vpn=True)
        plan = build_plan(snap, sel)
        assert plan.get("network_config").skip_reason == "already satisfied"

    def test_native_vpn_deselected_is_skipped(self, snapshot):
        sel = Selections.for_mode(DeploymentMode.VPN_MESH, native_vpn=True).without("vpn")
        plan = build_plan(snapshot, sel)

        assert plan.get("network_config").skip_reason == "not selected"
        assert "setup-tailscale-serve.sh" not in " ".join(render_commands(plan))

    def test_deselected_vpn_starts_services_without_vpn_container(self, snapshot):
        plan = build_plan(snapshot, _vpn().without("vpn"))
        assert "docker-compose.lxc.yml" in plan.get("services_start").command

    def test_rollback_actions(self, snapshot):
        plan = build_plan(snapshot, _vpn())
        assert plan.get("ssh_hardening").rollback[:2] == ("rm", "-f")
        assert plan.get("services_start").rollback[-1] == "down"
        assert plan.get("docker_install").rollback is None

    def test_steps_run_in_project_root(self, snapshot):
        plan = build_plan(snapshot, _vpn(), project_root="/opt/doom")
        assert {s.cwd for s in plan.steps} == {"/opt/doom"}
        assert plan.get("terminal_tools").command == ("bash", "/opt/doom/scripts/setup-terminal.sh")

    def test_install_script_isolates_one_section(self, snapshot):
        command = build_plan(snapshot, _vpn()).get("docker_install").command
        assert "--skip-docker" not in command
        assert "--skip-tailscale" in command
        assert "--unattended" in command


class TestTimeoutOverrides:
    def test_override(self, snapshot):
        plan = build_plan(snapshot, _vpn(), timeouts={"docker_install": 1200})
        assert plan.get("docker_install").timeout == 1200.0

    def test_unknown_step(self, snapshot):
        with pytest.raises(ValueError, match="nope"):
            build_plan(snapshot, _vpn(), timeouts={"nope": 5})


class TestRenderCommands:
    def test_one_line_per_step(self, snapshot):
        plan = build_plan(snapshot, _vpn().without("secrets"))
        lines = render_commands(plan)

        assert len(lines) == len(plan)
        assert lines[0] == "bash -c 'uname -a'"
        assert lines[6] == "# secrets_setup: skipped (not selected)"
        assert shlex.split(lines[8]) == list(plan.get("services_start").command)
