"""Logs command: list recent run log files."""

import logging

from templatr_setup.cli.utils import format_size
from templatr_setup.core.logs import recent_log_files

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run logs command.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Exit code (0 for success)
    """
    count = max(getattr(args, "count", 5), 1)
    files = recent_log_files(count)

    if not files:
        print("No log files found.")
        print("Log files are created when you run 'templatr-setup setup'.")
        return 0

    print("Recent log files:")
    print()
    for index, log_file in enumerate(files, start=1):
        try:
            size = log_file.stat().st_size
        except OSError as e:
            logger.debug(f"Skipping {log_file}: {e}")
            continue
        print(f"  {index}. {log_file.name}  ({format_size(size)})")

    print(f"\nLog directory: {files[0].parent}")
    print(f"\nTo view the latest log:\n  cat {files[0]}")
    return 0
