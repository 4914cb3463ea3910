"""
Tests for the configuration loader.
"""

import textwrap
from pathlib import Path

import pytest

from doomsetup.core.config.loader import (
    ConfigError,
    find_config_file,
    load_config,
    project_root,
)
from doomsetup.core.models import DeploymentMode, InstallConfig


def _write(path: Path, content: str) -> Path:
    path.write_text(textwrap.dedent(content))
    return path


class TestFindConfig:
    def test_found_in_cwd(self, tmp_path: Path):
        config = _write(tmp_path / "doomsetup.yml", "mode: vpn-mesh\n")
        assert find_config_file(tmp_path) == config

    def test_found_in_parent(self, tmp_path: Path):
        config = _write(tmp_path / "doomsetup.yml", "mode: vpn-mesh\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config.resolve()

    def test_project_root(self, tmp_path: Path):
        assert project_root(tmp_path / "doomsetup.yml") == tmp_path.resolve()


class TestLoadConfig:
    def test_full_file(self, tmp_path: Path):
        config = load_config(_write(tmp_path / "doomsetup.yml", """\
            mode: local-network
            components:
              secrets: false
            timeouts:
              docker_install: 900
            executor:
              overflow: drop
              queue_size: 64
            health:
              containers: [doom-code-server]
        """))

        assert config.mode == DeploymentMode.LOCAL_NETWORK
        assert config.components.secrets is False
        assert config.components.docker is True
        assert config.timeouts == {"docker_install": 900.0}
        assert config.executor.overflow == "drop"
        assert config.executor.queue_size == 64
        assert config.health.containers == ["doom-code-server"]

    def test_selections_apply_mode_rules(self):
        config = InstallConfig(native_vpn=True)
        selections = config.selections(DeploymentMode.LOCAL_NETWORK)
        assert selections.vpn is False
        assert selections.native_vpn is False

    def test_no_file_gives_defaults(self, tmp_project: Path):
        config = load_config()
        assert config == InstallConfig()

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        assert load_config(_write(tmp_path / "doomsetup.yml", "")) == InstallConfig()

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(_write(tmp_path / "doomsetup.yml", "mode: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="mapping"):
            load_config(_write(tmp_path / "doomsetup.yml", "- a\n- b\n"))

    def test_invalid_value(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(_write(tmp_path / "doomsetup.yml", "mode: satellite\n"))

    def test_invalid_executor_setting(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path / "doomsetup.yml", "executor:\n  queue_size: 0\n"))

    def test_unknown_timeout_step(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="warp_drive"):
            load_config(_write(tmp_path / "doomsetup.yml", "timeouts:\n  warp_drive: 5\n"))
