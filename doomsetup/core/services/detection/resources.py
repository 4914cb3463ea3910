"""
Detection — free disk and total memory, in GB.
"""

from __future__ import annotations

import os
from pathlib import Path

from doomsetup.core.services.detection.host import host_path, run_command

_GB = 1024 ** 3


def detect_disk_free_gb(path: str = ".") -> float | None:
    """Free space available to unprivileged users on ``path``'s filesystem."""
    try:
        st = os.statvfs(path)
        return st.f_bavail * st.f_frsize / _GB
    except (OSError, AttributeError):
        pass

    output = run_command(["df", "-B1", path])
    if output is None:
        return None
    lines = output.splitlines()
    if len(lines) < 2:
        return None
    fields = lines[1].split()
    try:
        return int(fields[3]) / _GB
    except (IndexError, ValueError):
        return None


def detect_memory_total_gb(root: Path = Path("/")) -> float | None:
    try:
        with host_path(root, "/proc/meminfo").open() as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    return int(line.split()[1]) / (1024 * 1024)
    except (OSError, ValueError, IndexError):
        pass

    output = run_command(["sysctl", "-n", "hw.memsize"])
    try:
        return int(output.strip()) / _GB if output else None
    except ValueError:
        return None
