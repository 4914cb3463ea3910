"""
Capability snapshot — the immutable record of detected host facts.

Produced once per run by the detector. Re-detection builds a new
snapshot; nothing ever updates one in place (the model is frozen).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ContainerContext(StrEnum):
    """Virtualization / container context the installer runs inside."""

    NONE = "none"
    LXC = "lxc"
    DOCKER = "docker"
    WSL = "wsl"


class ToolState(BaseModel):
    """Presence and state of one host tool."""

    model_config = ConfigDict(frozen=True)

    installed: bool = False
    running: bool = False
    version: str | None = None


class ServiceKind(StrEnum):
    """What an already-present service is."""

    MANAGED = "managed"           # container from an earlier install
    CODE_SERVER = "code-server"   # some other code-server instance
    VPN = "vpn"
    EXTERNAL = "external"


class ServiceInfo(BaseModel):
    """A container or port listener found before installing.

    ``alternate_port`` is a free port near the one this service
    occupies, 0 when none was looked up or found.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ServiceKind = ServiceKind.EXTERNAL
    running: bool = False
    managed: bool = False
    port: int = 0
    alternate_port: int = 0
    container_id: str = ""
    pid: int | None = None


class CapabilitySnapshot(BaseModel):
    """Everything the detector learned about the host.

    Fields that could not be probed hold their safe default
    (empty string, False, 0.0) and the probe name is listed in
    ``degraded_probes``.
    """

    model_config = ConfigDict(frozen=True)

    # Identity
    hostname: str = ""
    username: str = ""
    home_dir: str = ""
    os: str
    arch: str
    distribution: str = ""
    distribution_version: str = ""

    # Container / device context
    container: ContainerContext = ContainerContext.NONE
    tun_device: bool = False
    tun_path: str = ""

    # Software
    tools: Mapping[str, ToolState] = Field(default_factory=dict, validate_default=True)
    vpn_ip: str = ""
    services: tuple[ServiceInfo, ...] = ()

    # Network
    local_ips: tuple[str, ...] = ()
    default_gateway: str = ""

    # Resources
    disk_free_gb: float = 0.0
    memory_total_gb: float = 0.0

    degraded_probes: tuple[str, ...] = ()
    detected_at: str = Field(default_factory=_now_iso)

    @field_validator("tools", mode="after")
    @classmethod
    def _freeze_tools(cls, value: Mapping[str, ToolState]) -> Mapping[str, ToolState]:
        # frozen=True does not reach into containers
        return MappingProxyType(dict(value))

    @field_serializer("tools")
    def _dump_tools(self, value: Mapping[str, ToolState]) -> dict[str, ToolState]:
        return dict(value)

    @property
    def sandboxed(self) -> bool:
        """Whether the host is a container or WSL guest."""
        return self.container != ContainerContext.NONE

    def tool(self, name: str) -> ToolState:
        """Look up a tool, defaulting to not installed."""
        return self.tools.get(name, ToolState())

    def summary(self) -> str:
        """Human-readable multi-line summary."""
        lines = [f"Host: {self.hostname} ({self.username})"]

        os_line = f"OS: {self.os}/{self.arch}"
        if self.distribution:
            os_line += f" ({self.distribution}"
            if self.distribution_version:
                os_line += f" {self.distribution_version}"
            os_line += ")"
        lines.append(os_line)

        if self.sandboxed:
            lines.append(f"Environment: {self.container.value}")

        lines.append(f"TUN device: {'Available' if self.tun_device else 'Not available'}")

        if self.local_ips:
            lines.append(f"Local IPs: {', '.join(self.local_ips)}")

        return "\n".join(lines)
