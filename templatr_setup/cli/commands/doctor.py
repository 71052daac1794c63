"""
Doctor command for diagnosing the local environment.

Prints platform details, where templatr-setup keeps its files, which tools
are on PATH and what the installation ledger records.
"""

import logging

from templatr_setup.cli.commands.uninstall import print_installations
from templatr_setup.cli.utils import print_error, print_warning
from templatr_setup.core.directory import get_logs_dir, get_state_file
from templatr_setup.core.exceptions import ConfigurationError, StateError
from templatr_setup.core.platform import detect_platform, home_dir
from templatr_setup.core.settings import load_settings
from templatr_setup.core.state import StateManager
from templatr_setup.engine.detector import Detector
from templatr_setup.engine.display import render_detection_table

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run doctor command.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print_error("Invalid settings", str(e))
        return 1

    platform_info = detect_platform()
    logger.debug(f"Platform: {platform_info}")

    print("templatr-setup doctor - System Health Check")
    print()
    print(f"OS:           {platform_info.os} {platform_info.os_version}")
    if platform_info.distribution:
        print(f"Distribution: {platform_info.distribution}")
    print(f"Architecture: {platform_info.arch}")
    print(f"Home:         {home_dir()}")
    print(f"Runtimes:     {settings.runtimes_dir}")
    print(f"Logs:         {get_logs_dir()}")
    print(f"Ledger:       {get_state_file()}")
    print()

    print("Runtime Detection:")
    print(render_detection_table(Detector(timeout=settings.probe_timeout).scan()))
    print()

    try:
        state = StateManager(lock_timeout=settings.lock_timeout).load()
    except StateError as e:
        print_warning(f"could not read installation ledger: {e}")
        return 1

    if not state.installations:
        print("No runtimes installed by templatr-setup.")
        return 0

    print(f"Installed by templatr-setup ({len(state.installations)}):")
    print_installations(state.installations)
    print(
        f"PATH entries: {len(state.path_modifications)}, "
        f"environment variables: {len(state.env_modifications)}"
    )
    return 0
