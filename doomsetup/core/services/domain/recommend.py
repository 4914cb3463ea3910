"""
Domain — deployment mode recommendation and host warnings (pure).

Both functions only read a ``CapabilitySnapshot``. No I/O.
"""

from __future__ import annotations

from doomsetup.core.models.capability import CapabilitySnapshot
from doomsetup.core.models.plan import DeploymentMode
from doomsetup.core.services.domain.conflicts import existing_installation, port_conflicts

MIN_DISK_GB = 10.0
MIN_MEMORY_GB = 2.0


def recommend_mode(snapshot: CapabilitySnapshot) -> DeploymentMode:
    """Pick a deployment mode, first matching rule wins.

    1. sandboxed without a tunnel device → local-network
    2. VPN already connected             → vpn-mesh
    3. tunnel device present             → vpn-mesh
    4. otherwise                         → local-network
    """
    if not snapshot.tun_device and snapshot.sandboxed:
        return DeploymentMode.LOCAL_NETWORK
    vpn = snapshot.tool("tailscale")
    if vpn.installed and vpn.running:
        return DeploymentMode.VPN_MESH
    if snapshot.tun_device:
        return DeploymentMode.VPN_MESH
    return DeploymentMode.LOCAL_NETWORK


def warnings(snapshot: CapabilitySnapshot) -> list[str]:
    """Independent threshold checks; any number can apply at once.

    Values from degraded probes are unknown, not low, and raise
    no warning.
    """
    found: list[str] = []
    degraded = set(snapshot.degraded_probes)

    if snapshot.sandboxed and not snapshot.tun_device:
        found.append(
            f"{snapshot.container.value.upper()} container without TUN device - "
            "Tailscale VPN not available"
        )

    if "disk" not in degraded and snapshot.disk_free_gb < MIN_DISK_GB:
        found.append(f"Low disk space: {snapshot.disk_free_gb:.1f} GB free")

    if "memory" not in degraded and snapshot.memory_total_gb < MIN_MEMORY_GB:
        found.append(f"Low memory: {snapshot.memory_total_gb:.1f} GB total")

    docker = snapshot.tool("docker")
    if docker.installed and not docker.running:
        found.append("Docker installed but not running")

    previous = existing_installation(snapshot)
    if previous:
        listed = ", ".join(f"{s.name} ({'running' if s.running else 'stopped'})" for s in previous)
        found.append(f"Existing installation found: {listed}")

    for conflict in port_conflicts(snapshot):
        found.append(f"Port {conflict.port} wanted by {conflict.requested_by}: {conflict.hint}")

    return found
