"""
Plan execution.

The orchestrator walks a plan's runtimes strictly in order. For each runtime
that is not skipped it runs:

    resolve -> install (download, verify, extract) -> PATH -> env vars -> record

A failure in resolve or install is fatal: it stops the run, but runtimes
already installed stay installed and are still recorded. PATH and env var
failures are warnings, as the runtime is usable by absolute path.

The ledger is loaded once at the start and saved once at the end. Package
manager and post-setup commands run after the ledger is saved and can only
produce warnings.

Progress is reported through an ``on_event`` callback receiving
:class:`OrchestratorEvent` values; :mod:`templatr_setup.engine.session` turns
that callback into a queue for UIs running on another thread.
"""

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

from templatr_setup import environment as default_environment
from templatr_setup.core.directory import get_runtimes_dir, runtime_install_dir
from templatr_setup.core.exceptions import (
    EnvironmentMutationError,
    InstallerError,
    StateError,
    TemplatrError,
)
from templatr_setup.core.state import State, StateManager
from templatr_setup.engine.plan import Plan, RuntimePlan
from templatr_setup.installers.registry import InstallerRegistry, default_registry
from templatr_setup.manifest.schema import Manifest
from templatr_setup.packages.runner import (
    CommandResult,
    install_global_packages,
    run_command,
    run_post_setup,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Events and Results
# ============================================================================


class EventKind(str, Enum):
    """Kinds of progress events emitted during execution."""

    STEP_STARTED = "step_started"
    VERSION_RESOLVED = "version_resolved"
    DOWNLOAD_PROGRESS = "download_progress"
    INSTALL_COMPLETE = "install_complete"
    INSTALL_FAILED = "install_failed"
    WARNING = "warning"
    COMPLETE = "complete"


@dataclass
class OrchestratorEvent:
    """
    One progress event.

    Only the fields relevant to the kind are set:
    - step_started: runtime, message (step name)
    - version_resolved: runtime, version
    - download_progress: runtime, downloaded, total (0 if unknown)
    - install_complete: runtime, version, path
    - install_failed: runtime, error
    - warning: message (runtime if tied to one)
    - complete: success, message
    """

    kind: EventKind
    runtime: str = ""
    message: str = ""
    version: str = ""
    path: str = ""
    downloaded: int = 0
    total: int = 0
    error: str = ""
    success: bool = False


EventCallback = Callable[[OrchestratorEvent], None]


@dataclass
class RuntimeResult:
    """Outcome of installing one runtime."""

    runtime: str
    display_name: str
    success: bool = False
    version: str = ""
    install_path: str = ""
    bin_dir: str = ""
    error: str = ""
    warnings: List[str] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """
    Outcome of a whole run.

    Attributes:
        results: One entry per runtime that was attempted
        success: False if any runtime failed
        state_saved: Whether the ledger was written
        warnings: Non-fatal problems, in the order they happened
        commands: Package and post-setup command results
    """

    results: List[RuntimeResult] = field(default_factory=list)
    success: bool = True
    state_saved: bool = False
    warnings: List[str] = field(default_factory=list)
    commands: List[CommandResult] = field(default_factory=list)

    @property
    def failed(self) -> List[RuntimeResult]:
        return [r for r in self.results if not r.success]


# ============================================================================
# Orchestrator
# ============================================================================


class Orchestrator:
    """
    Executes plans against the installers, environment and ledger.

    Example:
        >>> orchestrator = Orchestrator(on_event=print)
        >>> result = orchestrator.execute(plan, manifest)
        >>> result.success
        True
    """

    def __init__(
        self,
        registry: Optional[InstallerRegistry] = None,
        state_manager: Optional[StateManager] = None,
        on_event: Optional[EventCallback] = None,
        runtimes_dir: Optional[Path] = None,
        environment: Any = None,
    ):
        """
        Initialize orchestrator.

        Args:
            registry: Installers to use (default: built-in registry)
            state_manager: Ledger access (default: ~/.templatr/state.json)
            on_event: Called synchronously with every event
            runtimes_dir: Base install directory (default: ~/.templatr/runtimes)
            environment: Object providing add_to_path and set_env_var
                (default: templatr_setup.environment)
        """
        self.registry = registry or default_registry()
        self.state_manager = state_manager or StateManager()
        self.on_event = on_event
        self.runtimes_dir = Path(runtimes_dir) if runtimes_dir else get_runtimes_dir()
        self.environment = environment or default_environment

    def _emit(self, kind: EventKind, **kwargs) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(OrchestratorEvent(kind=kind, **kwargs))
        except Exception as e:
            logger.debug(f"Event callback failed: {e}")

    def _warn(self, result: ExecutionResult, message: str, runtime: str = "") -> None:
        logger.warning(message)
        result.warnings.append(message)
        self._emit(EventKind.WARNING, runtime=runtime, message=message)

    def execute(
        self,
        plan: Plan,
        manifest: Manifest,
        project_dir: Optional[Path] = None,
    ) -> ExecutionResult:
        """
        Execute a plan.

        Args:
            plan: Plan built for manifest
            manifest: Manifest the plan was built from
            project_dir: Directory package and post-setup commands run in
                (default: current directory)

        Returns:
            ExecutionResult; fatal runtime failures are reported in it, not
            raised
        """
        result = ExecutionResult()
        state = self.state_manager.load_or_empty()

        for runtime_plan in plan.pending():
            runtime_result = self._install_runtime(runtime_plan, manifest, state, result)
            result.results.append(runtime_result)
            if not runtime_result.success:
                result.success = False
                break

        try:
            self.state_manager.save(state)
            result.state_saved = True
        except StateError as e:
            self._warn(result, f"Failed to save installation ledger: {e}")

        if result.success:
            self._run_package_steps(plan, manifest, project_dir, result)
            message = "Setup completed successfully"
        else:
            failed = result.failed[0]
            message = f"Setup failed: {failed.display_name}: {failed.error}"

        logger.info(message)
        self._emit(EventKind.COMPLETE, success=result.success, message=message)
        return result

    # ------------------------------------------------------------------------
    # Runtimes
    # ------------------------------------------------------------------------

    def _install_runtime(
        self,
        runtime_plan: RuntimePlan,
        manifest: Manifest,
        state: State,
        execution: ExecutionResult,
    ) -> RuntimeResult:
        key = runtime_plan.key
        name = runtime_plan.display_name
        result = RuntimeResult(runtime=key, display_name=name)

        try:
            installer = self.registry.get(key)

            self._emit(EventKind.STEP_STARTED, runtime=key, message="resolve")
            logger.info(f"Resolving {name} (requires {runtime_plan.required_version})")
            version = installer.resolve_version(runtime_plan.required_version)
            result.version = version
            self._emit(EventKind.VERSION_RESOLVED, runtime=key, version=version)

            target_dir = runtime_install_dir(self.runtimes_dir, key, version)
            self._emit(EventKind.STEP_STARTED, runtime=key, message="install")
            logger.info(f"Installing {name} {version} to {target_dir}")

            def progress(downloaded: int, total: int) -> None:
                self._emit(
                    EventKind.DOWNLOAD_PROGRESS,
                    runtime=key,
                    downloaded=downloaded,
                    total=total,
                )

            installer.install(version, target_dir, progress)
        except TemplatrError as e:
            result.error = str(e)
            logger.error(f"{name} installation failed: {e}")
            self._emit(EventKind.INSTALL_FAILED, runtime=key, error=str(e))
            return result
        except Exception as e:
            result.error = f"Unexpected error: {e}"
            logger.exception(f"{name} installation failed unexpectedly")
            self._emit(EventKind.INSTALL_FAILED, runtime=key, error=result.error)
            return result

        result.install_path = str(target_dir)
        bin_dir = installer.bin_dir(target_dir)
        result.bin_dir = str(bin_dir)

        self._emit(EventKind.STEP_STARTED, runtime=key, message="path")
        try:
            path_mod = self.environment.add_to_path(str(bin_dir))
            if path_mod is not None:
                state.add_path_modification(path_mod)
        except EnvironmentMutationError as e:
            message = (
                f"Failed to add {bin_dir} to PATH: {e}. "
                f"Add it to your PATH manually."
            )
            result.warnings.append(message)
            self._warn(execution, message, runtime=key)

        env_vars = installer.env_vars(target_dir)
        if env_vars:
            self._emit(EventKind.STEP_STARTED, runtime=key, message="env")
        for env_name, env_value in env_vars.items():
            logger.info(f"Setting {env_name}={env_value}")
            try:
                env_mod = self.environment.set_env_var(env_name, env_value)
                if env_mod is not None:
                    state.add_env_modification(env_mod)
            except EnvironmentMutationError as e:
                message = f"Failed to set {env_name}: {e}. Set {env_name}={env_value} manually."
                result.warnings.append(message)
                self._warn(execution, message, runtime=key)

        state.add_installation(
            runtime=key,
            version=version,
            path=str(target_dir),
            template=manifest.template.identifier,
            action=runtime_plan.action.value,
            previous_version=runtime_plan.installed_version,
            previous_path=runtime_plan.installed_path,
        )

        result.success = True
        logger.info(f"{name} {version} installed successfully")
        self._emit(
            EventKind.INSTALL_COMPLETE, runtime=key, version=version, path=str(target_dir)
        )
        return result

    # ------------------------------------------------------------------------
    # Package and post-setup commands
    # ------------------------------------------------------------------------

    def _run_package_steps(
        self,
        plan: Plan,
        manifest: Manifest,
        project_dir: Optional[Path],
        result: ExecutionResult,
    ) -> None:
        packages = plan.packages
        if packages is not None:
            if packages.global_packages:
                self._emit(EventKind.STEP_STARTED, message="global_packages")
                try:
                    outcome = install_global_packages(
                        packages.manager, packages.global_packages, cwd=project_dir
                    )
                except InstallerError as e:
                    self._warn(result, str(e))
                else:
                    self._record_command(result, outcome)

            if packages.install_command:
                # The manager may have arrived with a runtime installed in this run
                if packages.available or shutil.which(packages.manager):
                    self._emit(EventKind.STEP_STARTED, message="install_command")
                    self._record_command(
                        result, run_command(packages.install_command, cwd=project_dir)
                    )
                else:
                    self._warn(
                        result,
                        f"{packages.manager} not found; run '{packages.install_command}' "
                        "manually once it is installed",
                    )

        if manifest.post_setup.commands:
            self._emit(EventKind.STEP_STARTED, message="post_setup")
            for outcome in run_post_setup(manifest.post_setup.commands, cwd=project_dir):
                self._record_command(result, outcome)

    def _record_command(self, result: ExecutionResult, outcome: Optional[CommandResult]) -> None:
        if outcome is None:
            return
        result.commands.append(outcome)
        if not outcome.success:
            self._warn(result, outcome.summary())


def execute_plan(
    plan: Plan,
    manifest: Manifest,
    registry: Optional[InstallerRegistry] = None,
    state_manager: Optional[StateManager] = None,
    on_event: Optional[EventCallback] = None,
    runtimes_dir: Optional[Path] = None,
    environment: Any = None,
    project_dir: Optional[Path] = None,
) -> ExecutionResult:
    """Execute a plan with a one-off Orchestrator."""
    orchestrator = Orchestrator(
        registry=registry,
        state_manager=state_manager,
        on_event=on_event,
        runtimes_dir=runtimes_dir,
        environment=environment,
    )
    return orchestrator.execute(plan, manifest, project_dir=project_dir)


__all__ = [
    "EventKind",
    "OrchestratorEvent",
    "EventCallback",
    "RuntimeResult",
    "ExecutionResult",
    "Orchestrator",
    "execute_plan",
]
