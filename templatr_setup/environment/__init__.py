"""
Persistent user environment changes.

Dispatches to the shell-rc implementation on POSIX systems and to the user
environment registry on Windows. All functions return the ledger record for
the change they made, or None when nothing needed changing.
"""

from pathlib import Path
from typing import Optional

from templatr_setup.core.filesystem import IS_WINDOWS
from templatr_setup.core.state import (
    METHOD_WINDOWS_ENV,
    EnvModification,
    PathModification,
)
from templatr_setup.environment import posix, windows


def add_to_path(bin_dir, home: Optional[Path] = None) -> Optional[PathModification]:
    """Add bin_dir to the user's PATH."""
    if IS_WINDOWS:
        return windows.add_to_path(str(bin_dir))
    return posix.add_to_path(str(bin_dir), home=home)


def remove_from_path(mod: PathModification) -> None:
    """Reverse a PATH change recorded in the ledger."""
    if mod.method == METHOD_WINDOWS_ENV:
        windows.remove_from_path(mod)
    else:
        posix.remove_from_path(mod)


def set_env_var(name: str, value, home: Optional[Path] = None) -> Optional[EnvModification]:
    """Set a persistent user-level environment variable."""
    if IS_WINDOWS:
        return windows.set_env_var(name, str(value))
    return posix.set_env_var(name, str(value), home=home)


def remove_env_var(mod: EnvModification) -> None:
    """Reverse an environment variable change recorded in the ledger."""
    if mod.method == METHOD_WINDOWS_ENV:
        windows.remove_env_var(mod)
    else:
        posix.remove_env_var(mod)


__all__ = [
    "add_to_path",
    "remove_from_path",
    "set_env_var",
    "remove_env_var",
]
