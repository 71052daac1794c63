"""
Persistent PATH and environment changes through shell startup files.

Each change is written as a two-line block appended to the user's rc file(s):

    # templatr-setup: /home/me/.templatr/runtimes/node/20.11.1/bin
    export PATH="/home/me/.templatr/runtimes/node/20.11.1/bin:$PATH"

The marker line makes writes idempotent and lets removal find the block
again without parsing shell syntax.
"""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from templatr_setup.core.exceptions import EnvironmentMutationError
from templatr_setup.core.state import (
    METHOD_SHELL_RC,
    EnvModification,
    PathModification,
)

logger = logging.getLogger(__name__)

MARKER_PREFIX = "# templatr-setup: "


def marker_for(value: str) -> str:
    """Marker line identifying a block for a directory or variable name."""
    return f"{MARKER_PREFIX}{value}"


def shell_config_files(home: Optional[Path] = None) -> List[Path]:
    """
    Shell startup files to edit on this system.

    zsh and bash files are chosen when $SHELL names the shell or the file
    already exists. With neither, macOS gets .zshrc and others .bashrc.
    """
    home = Path(home) if home else Path.home()
    shell = os.environ.get("SHELL", "")

    files = []
    zshrc = home / ".zshrc"
    bashrc = home / ".bashrc"
    if "zsh" in shell or zshrc.exists():
        files.append(zshrc)
    if "bash" in shell or bashrc.exists():
        files.append(bashrc)

    if not files:
        files.append(zshrc if sys.platform == "darwin" else bashrc)
    return files


def _write_block(marker: str, export_line: str, home: Optional[Path]) -> List[Path]:
    """
    Make every rc file carry marker followed by export_line.

    A file without the marker gets the block appended. A file whose marker
    is followed by a different line has that line replaced.

    Returns:
        Files that were changed, empty if every file was already current

    Raises:
        EnvironmentMutationError: If no rc file could be updated
    """
    modified = []
    present = False
    errors = []
    for rc_file in shell_config_files(home):
        try:
            content = rc_file.read_text(encoding="utf-8") if rc_file.exists() else ""
        except OSError as e:
            logger.warning(f"Cannot read {rc_file}: {e}")
            errors.append(f"{rc_file}: {e}")
            continue

        lines = content.split("\n")
        index = next((i for i, line in enumerate(lines) if line.strip() == marker), None)
        if index is not None and index + 1 < len(lines) and lines[index + 1].strip() == export_line:
            logger.debug(f"{rc_file} already contains '{marker}'")
            present = True
            continue

        try:
            if index is None:
                with open(rc_file, "a", encoding="utf-8") as f:
                    f.write(f"\n{marker}\n{export_line}\n")
            else:
                if index + 1 < len(lines):
                    lines[index + 1] = export_line
                else:
                    lines.append(export_line)
                rc_file.write_text("\n".join(lines), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Cannot write {rc_file}: {e}")
            errors.append(f"{rc_file}: {e}")
            continue

        logger.info(f"Updated {rc_file}")
        modified.append(rc_file)

    if not modified and errors and not present:
        raise EnvironmentMutationError(
            f"Could not update shell config: {'; '.join(errors)}"
        )
    return modified


def _recorded_files(mod) -> List[str]:
    # records from older ledgers only carry a single file
    return list(mod.files) or ([mod.file] if mod.file else [])


def _remove_block(rc_file: str, marker: str) -> None:
    """Delete the marker line and the line after it."""
    path = Path(rc_file)
    try:
        lines = path.read_text(encoding="utf-8").split("\n")
    except FileNotFoundError:
        logger.debug(f"{rc_file} no longer exists, nothing to remove")
        return
    except OSError as e:
        raise EnvironmentMutationError(f"Cannot read {rc_file}: {e}") from e

    kept = []
    skip_next = False
    for line in lines:
        if line.strip() == marker:
            skip_next = True
            continue
        if skip_next:
            skip_next = False
            continue
        kept.append(line)

    try:
        path.write_text("\n".join(kept), encoding="utf-8")
    except OSError as e:
        raise EnvironmentMutationError(f"Cannot write {rc_file}: {e}") from e
    logger.info(f"Removed '{marker}' block from {rc_file}")


def add_to_path(bin_dir: str, home: Optional[Path] = None) -> Optional[PathModification]:
    """
    Put bin_dir on PATH for future shells and for this process.

    Returns:
        PathModification naming every rc file changed, or None if every rc
        file already had it
    """
    bin_dir = str(bin_dir)
    marker = marker_for(bin_dir)
    export_line = f'export PATH="{bin_dir}:$PATH"'

    modified = _write_block(marker, export_line, home)

    current = os.environ.get("PATH", "")
    if bin_dir not in current.split(os.pathsep):
        os.environ["PATH"] = f"{bin_dir}{os.pathsep}{current}" if current else bin_dir

    if not modified:
        return None
    return PathModification(
        method=METHOD_SHELL_RC,
        value=bin_dir,
        file=str(modified[0]),
        files=[str(f) for f in modified],
        line=f"{marker}\n{export_line}",
    )


def remove_from_path(mod: PathModification) -> None:
    """Undo add_to_path for one ledger record."""
    for rc_file in _recorded_files(mod):
        _remove_block(rc_file, marker_for(mod.value))

    parts = os.environ.get("PATH", "").split(os.pathsep)
    if mod.value in parts:
        os.environ["PATH"] = os.pathsep.join(p for p in parts if p != mod.value)


def set_env_var(name: str, value: str, home: Optional[Path] = None) -> Optional[EnvModification]:
    """
    Export NAME=value from the rc files and set it in this process.

    An earlier export of NAME written by this tool is overwritten in place.

    Returns:
        EnvModification naming every rc file changed, or None if every rc
        file already exported this value
    """
    value = str(value)
    marker = marker_for(name)
    modified = _write_block(marker, f'export {name}="{value}"', home)
    os.environ[name] = value

    if not modified:
        return None
    return EnvModification(
        name=name,
        value=value,
        method=METHOD_SHELL_RC,
        file=str(modified[0]),
        files=[str(f) for f in modified],
    )


def remove_env_var(mod: EnvModification) -> None:
    """Undo set_env_var for one ledger record."""
    for rc_file in _recorded_files(mod):
        _remove_block(rc_file, marker_for(mod.name))
    os.environ.pop(mod.name, None)


__all__ = [
    "MARKER_PREFIX",
    "marker_for",
    "shell_config_files",
    "add_to_path",
    "remove_from_path",
    "set_env_var",
    "remove_env_var",
]
