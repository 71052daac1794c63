"""
templatr-setup CLI argument parser.

This module implements the command-line interface for templatr-setup using argparse.
"""

import argparse
import importlib
import logging
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from templatr_setup import __version__

logger = logging.getLogger(__name__)


class CLI:
    """templatr-setup command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="templatr-setup",
            description="templatr-setup - install the runtimes a project template needs",
            epilog='Use "templatr-setup COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"templatr-setup {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_setup_command(subparsers)
        self._add_uninstall_command(subparsers)
        self._add_doctor_command(subparsers)
        self._add_logs_command(subparsers)

        return parser

    def _add_setup_command(self, subparsers):
        """Add 'setup' subcommand."""
        parser = subparsers.add_parser(
            "setup",
            help="Install the runtimes required by a template",
            description=(
                "Read the template manifest, detect installed tools, show the plan "
                "and install whatever is missing or outdated"
            ),
        )
        parser.add_argument(
            "--file",
            "-f",
            type=Path,
            metavar="PATH",
            help="Manifest file (default: .templatr.toml in the current directory)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show the plan without installing anything",
        )
        parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Skip the confirmation prompt",
        )

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Remove runtimes installed by templatr-setup",
            description=(
                "List or remove runtimes installed by templatr-setup and revert "
                "the PATH and environment changes made for them"
            ),
        )
        parser.add_argument(
            "runtime",
            nargs="?",
            help="Runtime to remove (e.g. node, python)",
        )
        parser.add_argument(
            "version",
            nargs="?",
            help="Version to remove (default: every recorded version)",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="Remove every recorded installation",
        )
        parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Skip the confirmation prompt",
        )

    def _add_doctor_command(self, subparsers):
        """Add 'doctor' subcommand."""
        subparsers.add_parser(
            "doctor",
            help="Show platform, detected tools and installed runtimes",
            description="Print diagnostics about this machine and templatr-setup's state",
        )

    def _add_logs_command(self, subparsers):
        """Add 'logs' subcommand."""
        parser = subparsers.add_parser(
            "logs",
            help="List recent run logs",
            description="List recent run log files, newest first",
        )
        parser.add_argument(
            "--count",
            "-n",
            type=int,
            default=5,
            metavar="N",
            help="Number of log files to list (default: 5)",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "setup": "templatr_setup.cli.commands.setup",
            "uninstall": "templatr_setup.cli.commands.uninstall",
            "doctor": "templatr_setup.cli.commands.doctor",
            "logs": "templatr_setup.cli.commands.logs",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Failed to load command module: {e}")
            if args.verbose:
                traceback.print_exc()
            return 1

        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return 1

        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
