"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from doomsetup.core.models import (
    CapabilitySnapshot,
    ContainerContext,
    ExecutorSettings,
    Step,
    StepPlan,
    ToolState,
)


def _snapshot(**overrides) -> CapabilitySnapshot:
    """A healthy bare-metal Linux host, with ``overrides`` applied."""
    fields = {
        "hostname": "devbox",
        "username": "dev",
        "home_dir": "/home/dev",
        "os": "linux",
        "arch": "amd64",
        "distribution": "ubuntu",
        "distribution_version": "24.04",
        "container": ContainerContext.NONE,
        "tun_device": True,
        "tun_path": "/dev/net/tun",
        "tools": {
            "docker": ToolState(),
            "tailscale": ToolState(),
            "zsh": ToolState(),
            "tmux": ToolState(),
        },
        "local_ips": ("192.168.1.20",),
        "default_gateway": "192.168.1.1",
        "disk_free_gb": 120.0,
        "memory_total_gb": 16.0,
    }
    fields.update(overrides)
    return CapabilitySnapshot(**fields)


@pytest.fixture
def make_snapshot():
    """Factory for snapshots with selected fields overridden."""
    return _snapshot


@pytest.fixture
def snapshot() -> CapabilitySnapshot:
    return _snapshot()


@pytest.fixture
def make_plan():
    def _plan(*steps: Step) -> StepPlan:
        return StepPlan(steps=tuple(steps))
    return _plan


@pytest.fixture
def fast_settings() -> ExecutorSettings:
    """Executor settings tuned for quick tests."""
    return ExecutorSettings(poll_interval=0.01, kill_grace=0.2)


@pytest.fixture
def tmp_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An empty project directory that is also the cwd."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
