"""
Setup command.

Loads the template manifest, detects installed tools, prints the plan and,
once confirmed, installs the missing runtimes through a SetupSession.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from templatr_setup.cli.utils import confirm, print_error, print_warning, safe_print
from templatr_setup.core.download import format_progress
from templatr_setup.core.exceptions import (
    ConfigurationError,
    ManifestError,
    ManifestValidationError,
)
from templatr_setup.core.logs import clear_secrets, mask_secret, start_run_log, stop_run_log
from templatr_setup.core.settings import Settings, load_settings
from templatr_setup.core.state import StateManager
from templatr_setup.engine.detector import Detector
from templatr_setup.engine.display import render_plan
from templatr_setup.engine.orchestrator import (
    EventKind,
    ExecutionResult,
    Orchestrator,
    OrchestratorEvent,
)
from templatr_setup.engine.plan import build_plan
from templatr_setup.engine.session import SetupSession
from templatr_setup.installers.registry import build_registry
from templatr_setup.manifest import MANIFEST_FILENAME, Manifest, find_manifest, load_and_validate

logger = logging.getLogger(__name__)


class EventPrinter:
    """Prints orchestrator events as console progress."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self._progress_open = False

    def _end_progress(self) -> None:
        if self._progress_open:
            print()
            self._progress_open = False

    def __call__(self, event: OrchestratorEvent) -> None:
        if event.kind == EventKind.DOWNLOAD_PROGRESS:
            if not self.quiet:
                print(f"\r  Downloading... {format_progress(event.downloaded, event.total)}", end="")
                sys.stdout.flush()
                self._progress_open = True
            return

        self._end_progress()
        if event.kind == EventKind.VERSION_RESOLVED and not self.quiet:
            print(f"  {event.runtime}: resolved version {event.version}")
        elif event.kind == EventKind.INSTALL_COMPLETE and not self.quiet:
            safe_print(f"  ✓ {event.runtime} {event.version} installed")
        elif event.kind == EventKind.INSTALL_FAILED:
            safe_print(f"  ✗ {event.runtime} failed: {event.error}", file=sys.stderr)


def _manifest_path(file_arg: Optional[Path]) -> Optional[Path]:
    if file_arg:
        return Path(file_arg)
    return find_manifest(Path.cwd())


def _print_result(result: ExecutionResult, manifest: Manifest, log_file: Path) -> None:
    """Print the end-of-run report."""
    print()
    if result.success:
        print("Installation complete!")
    else:
        print("Installation finished with errors.")
    print()

    for runtime in result.results:
        if runtime.success:
            safe_print(f"  ✓ {runtime.runtime} {runtime.version} → {runtime.install_path}")
        else:
            safe_print(f"  ✗ {runtime.display_name}: {runtime.error}")

    if result.warnings:
        print()
        for warning in result.warnings:
            print_warning(warning)

    if result.success and (manifest.env or manifest.config):
        print()
        print(
            f"This template defines {len(manifest.env)} environment variable(s) and "
            f"{len(manifest.config)} config file(s); fill them in before running it."
        )

    if result.success and manifest.post_setup.message:
        print()
        print(manifest.post_setup.message.strip())

    print(f"\nLog file: {log_file}")


def _mask_secret_defaults(manifest: Manifest) -> None:
    for env_field in manifest.env:
        if env_field.type == "secret":
            mask_secret(env_field.default)
    for config_file in manifest.config:
        for config_field in config_file.fields:
            if config_field.type == "secret":
                mask_secret(config_field.default)


def _execute(plan, manifest: Manifest, settings: Settings, project_dir: Path, quiet: bool) -> ExecutionResult:
    orchestrator = Orchestrator(
        registry=build_registry(metadata_timeout=settings.metadata_timeout),
        state_manager=StateManager(lock_timeout=settings.lock_timeout),
        runtimes_dir=settings.runtimes_dir,
    )
    session = SetupSession(plan, manifest, orchestrator=orchestrator, project_dir=project_dir)
    printer = EventPrinter(quiet=quiet)

    session.start()
    session.confirm()
    for event in session.events():
        printer(event)
    return session.wait()


def run(args) -> int:
    """
    Run setup command.

    Args:
        args: Parsed arguments from argparse

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    quiet = getattr(args, "quiet", False)

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print_error("Invalid settings", str(e))
        return 1

    log_file = start_run_log("setup", max_files=settings.max_log_files)
    try:
        manifest_path = _manifest_path(getattr(args, "file", None))
        if manifest_path is None:
            print_error(
                f"No {MANIFEST_FILENAME} found in {Path.cwd()}",
                "Run from the template directory or pass --file PATH",
            )
            return 1

        try:
            manifest = load_and_validate(manifest_path)
        except ManifestValidationError as e:
            print_error("Manifest validation errors:")
            for issue in e.issues:
                print(f"  - {issue}", file=sys.stderr)
                logger.error(f"Validation: {issue}")
            return 1
        except ManifestError as e:
            print_error(str(e))
            logger.error(f"Failed to load manifest: {e}")
            return 1

        _mask_secret_defaults(manifest)
        logger.info(
            f"Loaded manifest: {manifest.template.name or manifest_path} "
            f"({manifest.template.tier or 'no tier'})"
        )

        detections = Detector(timeout=settings.probe_timeout).scan()
        plan = build_plan(manifest, detections)

        if not quiet:
            print()
            print(render_plan(plan))
            print()

        if args.dry_run:
            print("Dry run mode - no changes were made.")
            return 0

        if not plan.needs_action():
            print("Nothing to install - all requirements are satisfied.")
            return 0

        if not args.yes and not confirm("Proceed with installation? [y/N] "):
            print("Installation cancelled.")
            logger.info("Installation cancelled by user")
            return 0

        print()
        logger.info("Starting installation...")
        result = _execute(plan, manifest, settings, manifest_path.parent.resolve(), quiet)
        _print_result(result, manifest, log_file)

        if not result.success:
            print(f"See log file for details: {log_file}", file=sys.stderr)
            return 1
        return 0
    finally:
        stop_run_log()
        clear_secrets()
