"""
Directory layout for templatr-setup.

All state lives under a single per-user base directory.

Directory Structure:
    Base (~/.templatr/ or %USERPROFILE%\\.templatr\\):
        - runtimes/<runtime>/<version>/ : Extracted runtime payloads
        - logs/                         : Timestamped run logs (rotated)
        - state.json                    : Installation ledger
        - state.json.lock               : Ledger write lock
        - config.yaml                   : Optional user settings

The base directory can be overridden with the TEMPLATR_HOME environment
variable.
"""

import os
from pathlib import Path

from templatr_setup.core.exceptions import DirectoryError

HOME_ENV_VAR = "TEMPLATR_HOME"
BASE_DIR_NAME = ".templatr"


def get_base_dir() -> Path:
    """
    Get the per-user base directory path.

    Returns:
        Path: The base directory.
            - TEMPLATR_HOME if set
            - Windows: %USERPROFILE%\\.templatr
            - Linux/macOS: ~/.templatr

    Raises:
        DirectoryError: If the user's home directory cannot be determined

    Example:
        >>> get_base_dir()
        PosixPath('/home/user/.templatr')
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override)

    if os.name == "nt":
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine base directory."
            )
        return Path(user_profile) / BASE_DIR_NAME

    try:
        return Path.home() / BASE_DIR_NAME
    except RuntimeError as e:
        raise DirectoryError(f"Cannot determine home directory: {e}") from e


def get_runtimes_dir() -> Path:
    """Directory holding one subdirectory per runtime key."""
    return get_base_dir() / "runtimes"


def get_logs_dir() -> Path:
    """Directory holding timestamped run logs."""
    return get_base_dir() / "logs"


def get_state_file() -> Path:
    """Path to the installation ledger."""
    return get_base_dir() / "state.json"


def get_settings_file() -> Path:
    """Path to the optional YAML settings file."""
    return get_base_dir() / "config.yaml"


def runtime_install_dir(runtimes_dir: Path, runtime: str, version: str) -> Path:
    """
    Compute the install directory for one runtime version.

    Every version gets its own directory so successive installs of the same
    runtime never overwrite each other.

    Args:
        runtimes_dir: Base runtimes directory
        runtime: Runtime key (e.g. 'node')
        version: Exact resolved version (e.g. '20.11.1')

    Returns:
        ``runtimes_dir / runtime / version``
    """
    return Path(runtimes_dir) / runtime / version


__all__ = [
    "HOME_ENV_VAR",
    "get_base_dir",
    "get_runtimes_dir",
    "get_logs_dir",
    "get_state_file",
    "get_settings_file",
    "runtime_install_dir",
]
