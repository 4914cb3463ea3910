"""
Domain — port conflicts with services already on the host (pure).

A host that already ran an install, or runs its own code-server,
has something listening where the services want to bind. This
module only reads the ``services`` recorded in a snapshot and
decides what each conflict means. No I/O.
"""

from __future__ import annotations

from dataclasses import dataclass

from doomsetup.core.models.capability import CapabilitySnapshot, ServiceInfo, ServiceKind

# Host ports the services publish, by the service that binds them
SERVICE_PORTS: dict[str, int] = {
    "code-server": 8443,
    "ttyd": 7681,
}


@dataclass(frozen=True)
class PortConflict:
    """A wanted port that a running service already holds."""

    port: int
    requested_by: str
    occupied_by: ServiceInfo
    resolvable: bool
    hint: str


def port_conflicts(
    snapshot: CapabilitySnapshot,
    ports: dict[str, int] | None = None,
) -> list[PortConflict]:
    """Conflicts between ``ports`` and running services, in ``ports`` order.

    When several services report the same port, the first one
    recorded wins (containers are recorded before bare listeners).
    """
    occupied: dict[int, ServiceInfo] = {}
    for service in snapshot.services:
        if service.port and service.running:
            occupied.setdefault(service.port, service)

    conflicts: list[PortConflict] = []
    for requested_by, port in (ports or SERVICE_PORTS).items():
        occupier = occupied.get(port)
        if occupier is None:
            continue
        conflicts.append(PortConflict(
            port=port,
            requested_by=requested_by,
            occupied_by=occupier,
            resolvable=occupier.managed or occupier.kind == ServiceKind.CODE_SERVER,
            hint=_hint(port, occupier),
        ))
    return conflicts


def _hint(port: int, occupier: ServiceInfo) -> str:
    if occupier.managed:
        return "previous installation detected, it will be restarted"
    alternate = f" (port {occupier.alternate_port} is free)" if occupier.alternate_port else ""
    if occupier.kind == ServiceKind.CODE_SERVER:
        return f"existing code-server found; relocate or migrate it{alternate}"
    return f"in use by {occupier.name}; stop it or free the port{alternate}"


def existing_installation(snapshot: CapabilitySnapshot) -> list[ServiceInfo]:
    """Containers left by an earlier install, running or not."""
    return [s for s in snapshot.services if s.managed]
