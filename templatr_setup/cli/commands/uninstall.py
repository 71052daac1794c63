"""
Uninstall command.

Removes runtimes recorded in the installation ledger and reverts the PATH
and environment variable changes made for them. Runtimes that were present
before templatr-setup ran are never touched; if one was upgraded, it becomes
active again.
"""

import logging
import sys
from typing import List, Optional

from templatr_setup import environment
from templatr_setup.cli.utils import confirm, print_error, print_warning, safe_print
from templatr_setup.core.exceptions import (
    ConfigurationError,
    EnvironmentMutationError,
    FilesystemError,
    StateError,
)
from templatr_setup.core.settings import load_settings
from templatr_setup.core.state import (
    Installation,
    State,
    StateManager,
    UndoResult,
    undo_all,
    undo_installation,
)

logger = logging.getLogger(__name__)


def print_installations(installations: List[Installation]) -> None:
    """Print ledger records with what removing them would restore."""
    for record in installations:
        if record.action == "upgrade":
            action = f"upgraded from {record.previous_version}"
        else:
            action = "installed"
        print(f"  {record.runtime} {record.version} ({action})")
        print(f"    Path: {record.path}")
        if record.previous_version:
            print(f"    Will revert to: {record.previous_version} ({record.previous_path})")


def select_installations(
    state: State, runtime: str, version: Optional[str] = None
) -> List[Installation]:
    """Ledger records for runtime, optionally narrowed to one version."""
    return [
        record
        for record in state.installations
        if record.runtime == runtime and (version is None or record.version == version)
    ]


def revert_environment(result: UndoResult) -> None:
    """Reverse the live PATH and env changes released by an undo."""
    for path_mod in result.path_modifications:
        try:
            environment.remove_from_path(path_mod)
        except EnvironmentMutationError as e:
            print_warning(f"could not remove PATH entry {path_mod.value}: {e}")

    for env_mod in result.env_modifications:
        try:
            environment.remove_env_var(env_mod)
        except EnvironmentMutationError as e:
            print_warning(f"could not remove {env_mod.name}: {e}")

    if result.previous_version:
        safe_print(
            f"  Reverted {result.runtime} → {result.previous_version} at {result.previous_path}"
        )


def run(args) -> int:
    """
    Run uninstall command.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    runtime = getattr(args, "runtime", None)
    version = getattr(args, "version", None)
    remove_all = getattr(args, "all", False)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print_error("Invalid settings", str(e))
        return 1

    manager = StateManager(lock_timeout=settings.lock_timeout)
    try:
        state = manager.load()
    except StateError as e:
        print_error("Could not load installation ledger", str(e))
        return 1

    if not state.installations:
        print("No runtimes were installed by templatr-setup. Nothing to uninstall.")
        return 0

    if runtime and remove_all:
        print_error("Pass either a runtime or --all, not both")
        return 1

    if runtime:
        targets = select_installations(state, runtime, version)
        if not targets:
            wanted = f"{runtime} {version}" if version else runtime
            print_error(f"No installation of {wanted} recorded by templatr-setup")
            return 1
    elif remove_all:
        targets = list(state.installations)
    else:
        print("The following runtimes were installed by templatr-setup:")
        print()
        print_installations(state.installations)
        print()
        print(
            "Run 'templatr-setup uninstall RUNTIME [VERSION]' or "
            "'templatr-setup uninstall --all' to remove them."
        )
        return 0

    print("The following runtimes will be removed:")
    print()
    print_installations(targets)
    print()

    if not args.yes and not confirm("Remove all of these? [y/N] "):
        print("Uninstall cancelled.")
        return 0

    errors: List[Exception] = []
    if remove_all:
        results, errors = undo_all(state, settings.runtimes_dir)
    else:
        results = []
        for record in targets:
            try:
                results.append(
                    undo_installation(state, record.runtime, record.version, settings.runtimes_dir)
                )
            except (StateError, FilesystemError, ValueError) as e:
                logger.error(f"Failed to undo {record.runtime} {record.version}: {e}")
                errors.append(e)

    for error in errors:
        print(f"  Error: {error}", file=sys.stderr)

    for result in results:
        print(f"  Removed {result.runtime} {result.version}")
        revert_environment(result)

    try:
        manager.save(state)
    except StateError as e:
        print_warning(f"could not save installation ledger: {e}")

    print()
    print("Uninstall complete. Restart your terminal for PATH changes to take effect.")
    return 1 if errors else 0
