"""
Package-manager and post-setup command runner.

Runs the project's dependency install command, global package installs and
post-setup commands in the project directory. Command failures are returned
as results rather than raised: the caller reports them as warnings and keeps
going, since the runtimes are already installed by the time these run.
"""

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from templatr_setup.core.exceptions import InstallerError
from templatr_setup.manifest.schema import PackagesConfig

logger = logging.getLogger(__name__)

GLOBAL_INSTALL_COMMANDS = {
    "npm": ["npm", "install", "-g"],
    "pnpm": ["pnpm", "add", "-g"],
    "yarn": ["yarn", "global", "add"],
    "bun": ["bun", "add", "-g"],
    "pip": ["pip", "install"],
}

_OUTPUT_TAIL_LINES = 20


@dataclass
class CommandResult:
    """
    Outcome of one command.

    Attributes:
        command: Command line as written
        returncode: Exit status (-1 if the command could not be started)
        output: Combined stdout and stderr
        error: Why the command could not be started, if it could not
    """

    command: str
    returncode: int
    output: str = ""
    error: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def summary(self) -> str:
        """One-line description for warnings."""
        if self.error:
            return f"'{self.command}' could not run: {self.error}"
        if self.success:
            return f"'{self.command}' succeeded"
        return f"'{self.command}' exited with code {self.returncode}"


def run_command(
    command: Union[str, Sequence[str]],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """
    Run a command without a shell.

    The executable is looked up on the current PATH, which includes any
    runtime bin directories added earlier in this process.

    Args:
        command: Command line (split with shlex) or argument list
        cwd: Working directory
        timeout: Seconds before the command is killed (None for no limit)

    Returns:
        CommandResult; never raises for command failures
    """
    if isinstance(command, str):
        display = command
        try:
            args = shlex.split(command)
        except ValueError as e:
            return CommandResult(command=display, returncode=-1, error=str(e))
    else:
        args = list(command)
        display = shlex.join(args)

    if not args:
        return CommandResult(command=display, returncode=-1, error="empty command")

    # Resolve through PATH explicitly so Windows finds .cmd shims like npm.cmd
    executable = shutil.which(args[0]) or args[0]

    logger.info(f"Running: {display}")
    try:
        completed = subprocess.run(
            [executable, *args[1:]],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out after {timeout}s: {display}")
        return CommandResult(command=display, returncode=-1, error=f"timed out after {timeout}s")
    except OSError as e:
        logger.warning(f"Failed to start '{display}': {e}")
        return CommandResult(command=display, returncode=-1, error=str(e))

    output = (completed.stdout or "") + (completed.stderr or "")
    for line in output.splitlines()[-_OUTPUT_TAIL_LINES:]:
        logger.debug(f"  {line}")

    result = CommandResult(command=display, returncode=completed.returncode, output=output)
    if not result.success:
        logger.warning(result.summary())
    return result


def global_install_command(manager: str, packages: Sequence[str]) -> List[str]:
    """
    Build the global install command for a manager.

    Raises:
        InstallerError: If the manager has no global install command
    """
    if manager not in GLOBAL_INSTALL_COMMANDS:
        raise InstallerError(f"Global package install is not supported for {manager}")
    return GLOBAL_INSTALL_COMMANDS[manager] + list(packages)


def install_global_packages(
    manager: str,
    packages: Sequence[str],
    cwd: Optional[Path] = None,
) -> Optional[CommandResult]:
    """
    Install packages globally with one command.

    Returns:
        CommandResult, or None if there is nothing to install

    Raises:
        InstallerError: If the manager has no global install command
    """
    if not packages:
        return None
    return run_command(global_install_command(manager, packages), cwd=cwd)


def run_install_command(
    packages_config: PackagesConfig,
    cwd: Optional[Path] = None,
) -> Optional[CommandResult]:
    """Run the project's dependency install command, if one is configured."""
    if not packages_config.install_command:
        return None
    return run_command(packages_config.install_command, cwd=cwd)


def run_post_setup(commands: Sequence[str], cwd: Optional[Path] = None) -> List[CommandResult]:
    """Run post-setup commands in order; a failure never stops later commands."""
    return [run_command(command, cwd=cwd) for command in commands if command.strip()]


__all__ = [
    "GLOBAL_INSTALL_COMMANDS",
    "CommandResult",
    "run_command",
    "global_install_command",
    "install_global_packages",
    "run_install_command",
    "run_post_setup",
]
