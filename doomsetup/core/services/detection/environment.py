"""
Detection — container context and tunnel device.

Read-only file probes: /dev/lxc, /proc/1/cgroup, /.dockerenv,
/proc/version, /dev/net/tun, /proc/modules.
"""

from __future__ import annotations

from pathlib import Path

from doomsetup.core.models.capability import ContainerContext
from doomsetup.core.services.detection.host import host_path

TUN_PATHS = ("/dev/net/tun", "/dev/tun")


def _read(root: Path, path: str) -> str:
    try:
        return host_path(root, path).read_text(errors="replace")
    except OSError:
        return ""


def detect_container(root: Path = Path("/")) -> ContainerContext:
    """Which container context we run in.

    Several markers can be present at once (LXC hosts running
    Docker); the first match of lxc, docker, wsl wins.
    """
    cgroup = _read(root, "/proc/1/cgroup")

    if host_path(root, "/dev/lxc").exists() or "lxc" in cgroup:
        return ContainerContext.LXC
    if "docker" in cgroup or host_path(root, "/.dockerenv").exists():
        return ContainerContext.DOCKER

    version = _read(root, "/proc/version").lower()
    if "microsoft" in version or "wsl" in version:
        return ContainerContext.WSL
    return ContainerContext.NONE


def detect_tun(root: Path = Path("/")) -> str | None:
    """Path of the tunnel device, or None when unavailable.

    In LXC the device node can be missing while the module is
    loaded; a loaded ``tun`` module counts as available.
    """
    for path in TUN_PATHS:
        if host_path(root, path).exists():
            return path

    for line in _read(root, "/proc/modules").splitlines():
        if line.split(" ", 1)[0] == "tun":
            return TUN_PATHS[0]
    return None
