"""
Core functionality for templatr-setup.

This package contains the foundational modules that other components depend on:
directory layout, platform detection, downloads, archive handling, the
installation ledger, run logs and user settings.
"""

from .directory import (
    get_base_dir,
    get_runtimes_dir,
    get_logs_dir,
    get_state_file,
    runtime_install_dir,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    clear_platform_cache,
)

from .state import (
    Installation,
    PathModification,
    EnvModification,
    State,
    StateManager,
    UndoResult,
    undo_installation,
    undo_all,
)

from .settings import Settings, load_settings

from .exceptions import (
    TemplatrError,
    StateError,
    DownloadError,
    ChecksumError,
    InstallerError,
)

__all__ = [
    # Directory
    "get_base_dir",
    "get_runtimes_dir",
    "get_logs_dir",
    "get_state_file",
    "runtime_install_dir",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
    # State
    "Installation",
    "PathModification",
    "EnvModification",
    "State",
    "StateManager",
    "UndoResult",
    "undo_installation",
    "undo_all",
    # Settings
    "Settings",
    "load_settings",
    # Exceptions
    "TemplatrError",
    "StateError",
    "DownloadError",
    "ChecksumError",
    "InstallerError",
]
