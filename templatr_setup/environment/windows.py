"""
Persistent PATH and environment changes through the Windows user environment.

Values are read and written with PowerShell's
``[Environment]::Get/SetEnvironmentVariable(..., "User")`` so that new
terminals pick them up without a logoff.
"""

import logging
import os
import subprocess
from typing import List, Optional

from templatr_setup.core.exceptions import EnvironmentMutationError
from templatr_setup.core.state import (
    METHOD_WINDOWS_ENV,
    EnvModification,
    PathModification,
)

logger = logging.getLogger(__name__)

POWERSHELL_TIMEOUT = 30


def _quote(value: str) -> str:
    """Quote a value as a PowerShell double-quoted string."""
    escaped = value.replace("`", "``").replace('"', '`"').replace("$", "`$")
    return f'"{escaped}"'


def _powershell(script: str) -> str:
    """
    Run a PowerShell snippet and return its trimmed stdout.

    Raises:
        EnvironmentMutationError: If PowerShell cannot run or exits non-zero
    """
    try:
        completed = subprocess.run(
            ["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
            capture_output=True,
            text=True,
            timeout=POWERSHELL_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise EnvironmentMutationError(f"Failed to run PowerShell: {e}") from e

    if completed.returncode != 0:
        raise EnvironmentMutationError(
            f"PowerShell exited with {completed.returncode}: {completed.stderr.strip()}"
        )
    return completed.stdout.strip()


def get_user_env(name: str) -> str:
    """Read a user-level environment variable (empty if unset)."""
    return _powershell(f'[Environment]::GetEnvironmentVariable({_quote(name)}, "User")')


def set_user_env(name: str, value: Optional[str]) -> None:
    """Write a user-level environment variable; None deletes it."""
    rendered = "$null" if value is None else _quote(value)
    _powershell(f'[Environment]::SetEnvironmentVariable({_quote(name)}, {rendered}, "User")')


def _split_path(value: str) -> List[str]:
    return [p for p in value.split(";") if p.strip()]


def _contains(entries: List[str], directory: str) -> bool:
    return any(p.strip().lower() == directory.lower() for p in entries)


def add_to_path(bin_dir: str) -> Optional[PathModification]:
    """
    Prepend bin_dir to the user PATH.

    Returns:
        PathModification, or None if the user PATH already contained it
    """
    bin_dir = str(bin_dir)
    entries = _split_path(get_user_env("PATH"))
    if _contains(entries, bin_dir):
        logger.debug(f"User PATH already contains {bin_dir}")
        return None

    set_user_env("PATH", ";".join([bin_dir] + entries))
    logger.info(f"Added {bin_dir} to user PATH")

    current = os.environ.get("PATH", "")
    os.environ["PATH"] = f"{bin_dir};{current}" if current else bin_dir
    return PathModification(method=METHOD_WINDOWS_ENV, value=bin_dir)


def remove_from_path(mod: PathModification) -> None:
    """Drop a directory from the user PATH (case-insensitive)."""
    entries = _split_path(get_user_env("PATH"))
    kept = [p for p in entries if p.strip().lower() != mod.value.lower()]
    set_user_env("PATH", ";".join(kept))
    logger.info(f"Removed {mod.value} from user PATH")

    live = _split_path(os.environ.get("PATH", ""))
    os.environ["PATH"] = ";".join(p for p in live if p.strip().lower() != mod.value.lower())


def set_env_var(name: str, value: str) -> Optional[EnvModification]:
    """Set a user-level environment variable and mirror it in this process."""
    value = str(value)
    set_user_env(name, value)
    os.environ[name] = value
    logger.info(f"Set user variable {name}")
    return EnvModification(name=name, value=value, method=METHOD_WINDOWS_ENV)


def remove_env_var(mod: EnvModification) -> None:
    """Delete a user-level environment variable."""
    set_user_env(mod.name, None)
    os.environ.pop(mod.name, None)
    logger.info(f"Removed user variable {mod.name}")


__all__ = [
    "get_user_env",
    "set_user_env",
    "add_to_path",
    "remove_from_path",
    "set_env_var",
    "remove_env_var",
]
