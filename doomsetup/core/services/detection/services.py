"""
Detection — services already present on the host.

Two sources, in this order: containers known to docker (ours by
name or label, plus any code-server), then whatever listens on
the ports the services want. A port counts as taken when a test
bind fails with ``EADDRINUSE``.
"""

from __future__ import annotations

import errno
import json
import logging
import shutil
import socket
from collections.abc import Iterable

from doomsetup.core.models.capability import ServiceInfo, ServiceKind
from doomsetup.core.services.detection.host import run_command
from doomsetup.core.services.domain.conflicts import SERVICE_PORTS

logger = logging.getLogger(__name__)

MANAGED_CONTAINERS = ("doom-tailscale", "doom-code-server", "doom-claude")
MANAGED_LABEL = "com.doom-coding"
PORT_RANGE = (8000, 9000)   # inclusive, searched for alternates


# ── Containers ──────────────────────────────────────────────


def detect_containers() -> list[ServiceInfo] | None:
    """Our containers and any code-server container.

    Returns None when docker is installed but cannot list containers.
    """
    docker = shutil.which("docker")
    if docker is None:
        return []
    output = run_command([docker, "ps", "-a", "--format", "{{json .}}"])
    if output is None:
        return None

    services = []
    for line in output.splitlines():
        service = parse_container(line)
        if service is not None:
            services.append(service)
    return services


def parse_container(line: str) -> ServiceInfo | None:
    """One ``docker ps --format '{{json .}}'`` line, if it is relevant."""
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Unparseable container line: %s", line)
        return None
    if not isinstance(data, dict):
        return None

    names = data.get("Names", "")
    managed = any(name in names for name in MANAGED_CONTAINERS) or MANAGED_LABEL in data.get("Labels", "")
    code_server = "code-server" in data.get("Image", "") or "code-server" in names
    if not (managed or code_server):
        return None

    if "tailscale" in names:
        kind = ServiceKind.VPN
    elif code_server and not managed:
        kind = ServiceKind.CODE_SERVER
    else:
        kind = ServiceKind.MANAGED

    return ServiceInfo(
        name=names,
        kind=kind,
        running=data.get("State", "").lower() == "running",
        managed=managed,
        port=first_host_port(data.get("Ports", "")),
        container_id=data.get("ID", ""),
    )


def first_host_port(ports: str) -> int:
    """Host side of the first mapping in ``0.0.0.0:8443->8443/tcp, ...``."""
    first = ports.split(",")[0]
    if "->" not in first:
        return 0
    host = first.split("->")[0]
    _, _, port = host.rpartition(":")
    return int(port) if port.isdigit() else 0


# ── Port listeners ──────────────────────────────────────────


def port_in_use(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(("", port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return True
            raise
    return False


def find_free_port(preferred: int, exclude: Iterable[int] = ()) -> int:
    """``preferred`` if free, else the first free port in ``PORT_RANGE``, else 0."""
    skip = set(exclude)
    candidates = [preferred, *range(PORT_RANGE[0], PORT_RANGE[1] + 1)]
    for port in candidates:
        if port not in skip and not port_in_use(port):
            return port
    return 0


def identify_listener(port: int) -> tuple[int | None, str]:
    """(pid, process name) of whatever listens on ``port``, best effort."""
    output = run_command(["lsof", "-i", f":{port}", "-P", "-n", "-t"])
    pid = None
    if output and output.split()[0].isdigit():
        pid = int(output.split()[0])
    if pid is None:
        return None, ""
    name = run_command(["ps", "-p", str(pid), "-o", "comm="])
    return pid, (name or "").strip()


def detect_port_listeners(ports: dict[str, int] | None = None) -> list[ServiceInfo]:
    """One running service per wanted port that is already taken."""
    wanted = ports or SERVICE_PORTS
    services = []
    for port in wanted.values():
        if not port_in_use(port):
            continue
        pid, process = identify_listener(port)
        kind = ServiceKind.CODE_SERVER if "code-server" in process else ServiceKind.EXTERNAL
        services.append(ServiceInfo(
            name=process or f"unknown service on port {port}",
            kind=kind,
            running=True,
            port=port,
            alternate_port=find_free_port(port, exclude=wanted.values()),
            pid=pid,
        ))
    return services
