"""
Configuration loader — reads doomsetup.yml into ``InstallConfig``.

The file is optional. Without one the installer runs with the
recommended mode and every component selected; with one, YAML is
parsed, validated against the pydantic schema, and returned typed.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from doomsetup.core.engine.planner import STEP_NAMES
from doomsetup.core.models.config import InstallConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "doomsetup.yml"


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for doomsetup.yml from ``start_dir`` (default: cwd) upward."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path | None = None) -> InstallConfig:
    """Load and validate the install configuration.

    Args:
        path: Explicit config path. If None, searches upward and
            falls back to defaults when nothing is found.

    Raises:
        ConfigError: If an explicit file is missing, or any file is
            unreadable or invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return InstallConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading install config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return InstallConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = InstallConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    unknown = sorted(set(config.timeouts) - set(STEP_NAMES))
    if unknown:
        raise ConfigError(f"Unknown step(s) under timeouts in {path}: {', '.join(unknown)}")

    logger.info("Loaded install config from %s", path)
    return config


def project_root(config_path: Path | None) -> Path:
    """Project root: the config file's directory, else the cwd."""
    if config_path is None:
        return Path.cwd().resolve()
    return config_path.parent.resolve()
