"""
Capability detection — ``detect()`` builds the host snapshot.

These functions READ system state but never WRITE.
Subprocess calls, file reads, env var reads — all read-only.

Every probe is independent: one that raises or finds nothing is
recorded in ``degraded_probes`` and its field keeps the safe
default. Only a missing OS or architecture fails detection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from doomsetup.core.engine.errors import DetectionError
from doomsetup.core.models.capability import CapabilitySnapshot, ContainerContext
from doomsetup.core.services.detection.environment import detect_container, detect_tun
from doomsetup.core.services.detection.host import (
    detect_arch,
    detect_distribution,
    detect_hostname,
    detect_os,
    detect_user,
)
from doomsetup.core.services.detection.network import detect_default_gateway, detect_local_ips
from doomsetup.core.services.detection.resources import detect_disk_free_gb, detect_memory_total_gb
from doomsetup.core.services.detection.services import detect_containers, detect_port_listeners
from doomsetup.core.services.detection.software import (
    detect_docker,
    detect_on_path,
    detect_tailscale,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = ["detect"]


def _probe(name: str, fn: Callable[[], T | None], default: T, degraded: list[str]) -> T:
    try:
        value = fn()
    except Exception as e:
        logger.debug("Probe %s failed: %s", name, e)
        value = None
    if value is None:
        degraded.append(name)
        return default
    return value


def detect(root: Path = Path("/"), disk_path: str = ".") -> CapabilitySnapshot:
    """Probe the host and return an immutable snapshot.

    Args:
        root: Filesystem root the file probes read below.
        disk_path: Path whose filesystem free space is reported.

    Raises:
        DetectionError: If OS or architecture cannot be determined.
    """
    degraded: list[str] = []

    os_name = _probe("os", detect_os, "", degraded)
    arch = _probe("arch", detect_arch, "", degraded)
    if not os_name or not arch:
        raise DetectionError("cannot determine host OS and architecture")

    hostname = _probe("hostname", detect_hostname, "", degraded)
    username, home = _probe("user", detect_user, ("", ""), degraded)
    dist, dist_version = _probe("distribution", lambda: detect_distribution(root), ("", ""), degraded)
    container = _probe("container", lambda: detect_container(root), ContainerContext.NONE, degraded)
    tun_path = _probe("tun_device", lambda: detect_tun(root) or "", "", degraded)

    tools = {
        "docker": _probe("docker", detect_docker, None, degraded),
        "zsh": _probe("zsh", lambda: detect_on_path("zsh"), None, degraded),
        "tmux": _probe("tmux", lambda: detect_on_path("tmux"), None, degraded),
    }
    tailscale, vpn_ip = _probe("tailscale", detect_tailscale, (None, ""), degraded)
    tools["tailscale"] = tailscale
    services = [
        *_probe("containers", detect_containers, [], degraded),
        *_probe("ports", detect_port_listeners, [], degraded),
    ]

    snapshot = CapabilitySnapshot(
        hostname=hostname,
        username=username,
        home_dir=home,
        os=os_name,
        arch=arch,
        distribution=dist,
        distribution_version=dist_version,
        container=container,
        tun_device=bool(tun_path),
        tun_path=tun_path,
        tools={name: state for name, state in tools.items() if state is not None},
        vpn_ip=vpn_ip,
        services=tuple(services),
        local_ips=tuple(_probe("local_ips", lambda: detect_local_ips(root), [], degraded)),
        default_gateway=_probe("default_gateway", lambda: detect_default_gateway(root), "", degraded),
        disk_free_gb=round(_probe("disk", lambda: detect_disk_free_gb(disk_path), 0.0, degraded), 1),
        memory_total_gb=round(_probe("memory", lambda: detect_memory_total_gb(root), 0.0, degraded), 1),
        degraded_probes=tuple(degraded),
    )

    if degraded:
        logger.info("Detection degraded for: %s", ", ".join(degraded))
    logger.debug("Detected %s/%s (%s)", snapshot.os, snapshot.arch, snapshot.container.value)
    return snapshot
