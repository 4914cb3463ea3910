"""
Detection — installed tools and their state.

Presence is a PATH lookup; version and running state come from
the tool's own CLI (``docker info``, ``tailscale status --json``).
"""

from __future__ import annotations

import json
import logging
import re
import shutil

from doomsetup.core.models.capability import ToolState
from doomsetup.core.services.detection.host import run_command

logger = logging.getLogger(__name__)

_DOCKER_VERSION = re.compile(r"Docker version\s+(\d+\.\d+\.\d+)")


def detect_docker() -> ToolState:
    path = shutil.which("docker")
    if path is None:
        return ToolState()

    version = None
    output = run_command([path, "--version"])
    if output:
        m = _DOCKER_VERSION.search(output)
        version = m.group(1) if m else output.split(",")[0].strip()

    running = run_command([path, "info"]) is not None
    return ToolState(installed=True, running=running, version=version)


def detect_tailscale() -> tuple[ToolState, str]:
    """(state, VPN IPv4 address or "")."""
    path = shutil.which("tailscale")
    if path is None:
        return ToolState(), ""

    running = False
    output = run_command([path, "status", "--json"])
    if output:
        try:
            running = json.loads(output).get("BackendState") == "Running"
        except (json.JSONDecodeError, AttributeError):
            logger.debug("Unparseable tailscale status output")

    ip = ""
    output = run_command([path, "ip", "-4"])
    if output:
        ip = output.strip().splitlines()[0] if output.strip() else ""
    return ToolState(installed=True, running=running), ip


def detect_on_path(name: str) -> ToolState:
    """Presence-only tool check."""
    return ToolState(installed=shutil.which(name) is not None)
