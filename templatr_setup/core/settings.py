"""
User settings for templatr-setup.

Settings are read from an optional YAML file at ``~/.templatr/config.yaml``.
Every key has a default, so the file only needs the values a user wants to
change:

    runtimes_dir: /opt/templatr/runtimes
    probe_timeout: 5
    metadata_timeout: 30
    max_log_files: 10
    lock_timeout: 10
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from templatr_setup.core.directory import get_runtimes_dir, get_settings_file
from templatr_setup.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """
    Tunable settings.

    Attributes:
        runtimes_dir: Base directory for installed runtimes
        probe_timeout: Seconds allowed for one detection probe
        metadata_timeout: Seconds allowed for release-index requests
        max_log_files: Number of run logs kept by rotation
        lock_timeout: Seconds to wait for the ledger lock
    """

    runtimes_dir: Optional[Path] = None
    probe_timeout: float = 10.0
    metadata_timeout: float = 30.0
    max_log_files: int = 10
    lock_timeout: float = 10.0

    def __post_init__(self):
        if self.runtimes_dir is None:
            self.runtimes_dir = get_runtimes_dir()
        else:
            self.runtimes_dir = Path(self.runtimes_dir).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        return {
            "runtimes_dir": str(self.runtimes_dir),
            "probe_timeout": self.probe_timeout,
            "metadata_timeout": self.metadata_timeout,
            "max_log_files": self.max_log_files,
            "lock_timeout": self.lock_timeout,
        }


def load_yaml_config(config_file: Path) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file

    Returns:
        Configuration dictionary (empty dict if file doesn't exist)

    Raises:
        ConfigurationError: If YAML parsing fails or the top level is not a mapping
    """
    if not config_file.exists():
        logger.debug(f"Settings file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading settings from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Invalid settings in {config_file}: expected a mapping at top level"
        )
    return config


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """
    Load settings, applying defaults for anything not configured.

    Args:
        config_file: Settings file (default: ~/.templatr/config.yaml)

    Raises:
        ConfigurationError: If the file is invalid or a value has the wrong type
    """
    config_file = config_file or get_settings_file()
    data = load_yaml_config(Path(config_file))

    known = {f.name: f for f in fields(Settings)}
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown settings key: {key}")
            continue
        if key == "runtimes_dir":
            values[key] = value
            continue
        try:
            values[key] = int(value) if key == "max_log_files" else float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid value for '{key}' in {config_file}: {value!r}"
            ) from e

    return Settings(**values)


__all__ = ["Settings", "load_yaml_config", "load_settings"]
