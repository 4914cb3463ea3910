"""
Health checks — the probes behind ``doomsetup health``.

Each factory returns a zero-argument probe bound to a
``HealthTarget``. Probes only read: PATH lookups, ``docker
inspect``, ``tailscale status``, a TCP connect, file reads.
"""

from __future__ import annotations

import functools
import json
import os
import shutil
import socket
from collections.abc import Callable
from pathlib import Path

from doomsetup.core.models.health import CheckResult, HealthTarget
from doomsetup.core.observability.health import HealthCheck
from doomsetup.core.services.detection.host import run_command

MIN_DISK_GB = 5.0

_INSPECT_FORMAT = "{{.State.Status}} {{if .State.Health}}{{.State.Health.Status}}{{end}}"


def _container_state(name: str, timeout: float) -> tuple[str, str] | None:
    """(status, health) of a container, or None if it does not exist."""
    output = run_command(["docker", "inspect", name, "--format", _INSPECT_FORMAT], timeout=timeout)
    if output is None:
        return None
    parts = output.split()
    status = parts[0] if parts else "unknown"
    health = parts[1] if len(parts) > 1 else ""
    return status, health


# ── Runtime ─────────────────────────────────────────────────


def check_docker(target: HealthTarget) -> CheckResult:
    if shutil.which("docker") is None:
        return CheckResult.fail("not installed")
    if run_command(["docker", "info"], timeout=target.check_timeout) is None:
        return CheckResult.fail("installed but not running")
    version = run_command(["docker", "--version"], timeout=target.check_timeout) or ""
    return CheckResult.ok(f"running ({version.split(',')[0].strip()})" if version else "running")


def check_docker_compose(target: HealthTarget) -> CheckResult:
    output = run_command(["docker", "compose", "version", "--short"], timeout=target.check_timeout)
    if output is None:
        return CheckResult.fail("docker compose plugin not available")
    return CheckResult.ok(output.strip() or "available")


def check_container(target: HealthTarget, name: str) -> CheckResult:
    state = _container_state(name, target.check_timeout)
    if state is None:
        return CheckResult.fail("not found")
    status, health = state
    if status != "running":
        return CheckResult.fail(status)
    if health and health != "healthy":
        return CheckResult.fail(f"running but {health}")
    return CheckResult.ok(f"running ({health})" if health else "running")


# ── Network ─────────────────────────────────────────────────


def check_vpn(target: HealthTarget) -> CheckResult:
    """Host daemon first, then the VPN container."""
    if shutil.which("tailscale"):
        output = run_command(["tailscale", "status", "--json"], timeout=target.check_timeout)
        if output:
            try:
                status = json.loads(output)
            except json.JSONDecodeError:
                status = {}
            state = status.get("BackendState", "Unknown")
            if state == "Running":
                ips = (status.get("Self") or {}).get("TailscaleIPs") or ["N/A"]
                return CheckResult.ok(f"connected ({ips[0]})")
            return CheckResult.fail(f"not connected ({state})")

    container = _container_state(target.vpn_container, target.check_timeout)
    if container is not None:
        status, health = container
        if status == "running" and health in ("healthy", ""):
            return CheckResult.ok("container running")
        return CheckResult.fail(f"container {health or status}")
    return CheckResult.fail("not installed")


def check_code_server(target: HealthTarget) -> CheckResult:
    """Container health when available, else TCP reachability of the port."""
    container = _container_state(target.code_server_container, target.check_timeout)
    if container is not None and container[0] == "running" and container[1] == "healthy":
        return CheckResult.ok("container healthy")

    try:
        with socket.create_connection(("127.0.0.1", target.code_server_port), timeout=target.check_timeout):
            return CheckResult.ok(f"port {target.code_server_port} reachable")
    except OSError as e:
        detail = f"port {target.code_server_port} unreachable: {e}"
        if container is not None:
            detail = f"container {container[1] or container[0]}, {detail}"
        return CheckResult.fail(detail)


# ── Host ────────────────────────────────────────────────────


def check_ssh_hardening(target: HealthTarget) -> CheckResult:
    path = Path(target.hardening_file)
    try:
        text = path.read_text()
    except FileNotFoundError:
        return CheckResult.fail(f"{path} not found")
    except OSError as e:
        return CheckResult.fail(f"cannot read {path}: {e}")

    settings: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and not parts[0].startswith("#"):
            settings[parts[0].lower()] = parts[1].lower()

    wrong = [
        key for key in ("PermitRootLogin", "PasswordAuthentication")
        if settings.get(key.lower()) != "no"
    ]
    if wrong:
        return CheckResult.fail(f"not disabled: {', '.join(wrong)}")
    return CheckResult.ok("root login and password auth disabled")


def check_terminal_tools(target: HealthTarget) -> CheckResult:
    home = Path.home()
    present = {
        "zsh": shutil.which("zsh") is not None,
        "tmux": shutil.which("tmux") is not None,
        "oh-my-zsh": (home / ".oh-my-zsh").is_dir(),
        "nvm": Path(os.environ.get("NVM_DIR") or home / ".nvm").is_dir(),
        "pyenv": Path(os.environ.get("PYENV_ROOT") or home / ".pyenv").is_dir(),
    }
    missing = [name for name, ok in present.items() if not ok]
    found = len(present) - len(missing)
    if missing:
        return CheckResult.fail(f"{found}/{len(present)} installed, missing: {', '.join(missing)}")
    return CheckResult.ok(f"all installed ({found}/{len(present)})")


def check_secrets(target: HealthTarget) -> CheckResult:
    missing = [tool for tool in ("sops", "age") if shutil.which(tool) is None]
    if not Path(target.age_key_file).expanduser().is_file():
        missing.append("age key")
    if missing:
        return CheckResult.fail(f"missing: {', '.join(missing)}")
    return CheckResult.ok("sops, age and key present")


def check_disk_space(target: HealthTarget) -> CheckResult:
    try:
        free_gb = shutil.disk_usage(target.project_root).free / 1024 ** 3
    except OSError as e:
        return CheckResult.fail(f"cannot stat {target.project_root}: {e}")
    if free_gb <= MIN_DISK_GB:
        return CheckResult.fail(f"{free_gb:.1f} GB available (critical)")
    return CheckResult.ok(f"{free_gb:.1f} GB available")


# ── Registry ────────────────────────────────────────────────


def default_checks(target: HealthTarget) -> list[HealthCheck]:
    """Every standard check, bound to ``target``."""
    probes: dict[str, Callable[[], CheckResult]] = {
        "docker": functools.partial(check_docker, target),
        "docker_compose": functools.partial(check_docker_compose, target),
    }
    for name in target.containers:
        probes[f"container:{name}"] = functools.partial(check_container, target, name)
    probes.update({
        "vpn": functools.partial(check_vpn, target),
        "code_server": functools.partial(check_code_server, target),
        "ssh_hardening": functools.partial(check_ssh_hardening, target),
        "terminal_tools": functools.partial(check_terminal_tools, target),
        "secrets": functools.partial(check_secrets, target),
        "disk_space": functools.partial(check_disk_space, target),
    })
    return [
        HealthCheck(name=name, probe=probe, timeout=target.check_timeout)
        for name, probe in probes.items()
    ]
