"""
Detection — host identity and distribution.

Read-only probes. ``run_command`` is the one place detection
shells out; every other probe module goes through it so external
commands share the same short timeout.
"""

from __future__ import annotations

import getpass
import logging
import os
import platform
import socket
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5   # seconds

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}


def run_command(args: list[str], timeout: float = PROBE_TIMEOUT) -> str | None:
    """Run a probe command; stdout on exit 0, otherwise None."""
    try:
        r = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired) as e:
        logger.debug("Probe command %s unavailable: %s", args[0], e)
        return None
    if r.returncode != 0:
        return None
    return r.stdout


def host_path(root: Path, absolute: str) -> Path:
    """Resolve a system path below an alternate root (tests use tmp dirs)."""
    return root / absolute.lstrip("/")


# ── Identity ────────────────────────────────────────────────


def detect_os() -> str:
    return platform.system().lower()


def detect_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def detect_hostname() -> str:
    return socket.gethostname()


def detect_user() -> tuple[str, str]:
    """(username, home directory)."""
    try:
        username = getpass.getuser()
    except (KeyError, OSError):
        username = os.environ.get("USER", "")
    return username, str(Path.home())


# ── Distribution ────────────────────────────────────────────


def parse_os_release(text: str) -> tuple[str, str]:
    """Extract ``ID`` and ``VERSION_ID`` from os-release content."""
    dist = version = ""
    for line in text.splitlines():
        if line.startswith("ID="):
            dist = line[3:].strip().strip('"')
        elif line.startswith("VERSION_ID="):
            version = line[11:].strip().strip('"')
    return dist, version


def detect_distribution(root: Path = Path("/")) -> tuple[str, str] | None:
    """(distribution id, version) from os-release, falling back to lsb_release."""
    try:
        dist, version = parse_os_release(host_path(root, "/etc/os-release").read_text())
        if dist:
            return dist, version
    except OSError:
        pass

    output = run_command(["lsb_release", "-si"])
    if output and output.strip():
        return output.strip().lower(), ""
    return None
