"""
Installation plan construction.

The plan joins what a manifest requires with what detection found. It is a
pure function of (manifest, detection results): no network, no filesystem,
so the same plan drives both dry runs and real runs.

For each runtime the action is:
- skip:    a detected version exists and satisfies the requirement
- install: nothing was detected
- upgrade: a detected version does not satisfy the requirement, or its
           version could not be compared (unknown or unparseable)
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from templatr_setup.core.exceptions import VersionParseError
from templatr_setup.engine.detector import DetectionResult, find_result
from templatr_setup.engine.version import satisfies
from templatr_setup.manifest.schema import ConfigFile, EnvField, Manifest

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """What the orchestrator must do for a runtime."""

    SKIP = "skip"
    INSTALL = "install"
    UPGRADE = "upgrade"


RUNTIME_DISPLAY_NAMES: Dict[str, str] = {
    "node": "Node.js",
    "python": "Python",
    "flutter": "Flutter",
    "java": "Java (Temurin)",
    "go": "Go",
    "rust": "Rust",
    "ruby": "Ruby",
    "php": "PHP",
    "dotnet": ".NET",
}

RUNTIME_DETECT_NAMES: Dict[str, str] = {
    "node": "Node.js",
    "python": "Python",
    "flutter": "Flutter",
    "java": "Java",
    "go": "Go",
    "rust": "Rust",
    "ruby": "Ruby",
    "php": "PHP",
    "dotnet": ".NET",
}

MANAGER_DETECT_NAMES: Dict[str, str] = {
    "npm": "npm",
    "pnpm": "pnpm",
    "yarn": "yarn",
    "bun": "bun",
    "pip": "pip",
    "pub": "Dart",
    "cargo": "Cargo",
    "go": "Go",
}


def display_name(key: str) -> str:
    """Human-readable runtime name; unknown keys are returned unchanged."""
    return RUNTIME_DISPLAY_NAMES.get(key, key)


def detect_name(key: str) -> str:
    """Detection catalogue name for a runtime key."""
    return RUNTIME_DETECT_NAMES.get(key, key)


@dataclass(frozen=True)
class RuntimePlan:
    """
    Planned action for one runtime.

    Attributes:
        key: Manifest runtime key (e.g. 'node')
        display_name: Human-readable name (e.g. 'Node.js')
        required_version: Requirement string from the manifest
        installed_version: Detected version, empty if not detected
        action: Planned action
        installed_path: Executable path detected before this run, if any
    """

    key: str
    display_name: str
    required_version: str
    installed_version: str
    action: Action
    installed_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["action"] = self.action.value
        return data


@dataclass(frozen=True)
class PackagePlan:
    """
    Package-manager availability.

    Attributes:
        manager: Manager name from the manifest
        install_command: Command to run in the project directory
        available: Whether the manager was detected
        global_packages: Packages to install globally
    """

    manager: str
    install_command: str
    available: bool
    global_packages: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["global_packages"] = list(self.global_packages)
        return data


@dataclass(frozen=True)
class Plan:
    """
    The full plan for a manifest.

    Plans are never mutated; re-planning builds a new one.
    """

    runtimes: tuple = ()
    packages: Optional[PackagePlan] = None
    env_fields: tuple = ()
    config_files: tuple = ()

    def needs_action(self) -> bool:
        """True iff any runtime needs installing or upgrading."""
        return any(r.action != Action.SKIP for r in self.runtimes)

    def pending(self) -> List[RuntimePlan]:
        """Runtimes whose action is not skip, in plan order."""
        return [r for r in self.runtimes if r.action != Action.SKIP]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "runtimes": [r.to_dict() for r in self.runtimes],
            "packages": self.packages.to_dict() if self.packages else None,
            "env_fields": [asdict(f) for f in self.env_fields],
            "config_files": [asdict(c) for c in self.config_files],
            "needs_action": self.needs_action(),
        }


def decide_action(installed_version: str, requirement: str) -> Action:
    """
    Decide the action for one runtime.

    A comparison that cannot be made (unknown or unparseable version, bad
    requirement) leads to UPGRADE, never to a silent SKIP.
    """
    if not installed_version:
        return Action.INSTALL
    try:
        if satisfies(installed_version, requirement):
            return Action.SKIP
    except VersionParseError as e:
        logger.debug(f"Cannot confirm '{installed_version}' meets '{requirement}': {e}")
    return Action.UPGRADE


def build_plan(manifest: Manifest, detections: Sequence[DetectionResult]) -> Plan:
    """
    Build the plan for a manifest against a detection snapshot.

    Args:
        manifest: Validated manifest
        detections: Results from the detector

    Returns:
        Plan with one RuntimePlan per manifest runtime, in manifest order
    """
    runtimes = []
    for key, requirement in manifest.runtimes.items():
        detected = find_result(detections, detect_name(key))
        installed_version = ""
        installed_path = ""
        if detected is not None and detected.installed:
            installed_version = detected.version
            installed_path = detected.path

        action = decide_action(installed_version, requirement)
        runtimes.append(
            RuntimePlan(
                key=key,
                display_name=display_name(key),
                required_version=requirement,
                installed_version=installed_version,
                action=action,
                installed_path=installed_path,
            )
        )
        logger.debug(
            f"Plan: {key} requires {requirement}, found "
            f"{installed_version or 'nothing'} -> {action.value}"
        )

    packages = None
    if manifest.packages is not None and manifest.packages.manager:
        manager = manifest.packages.manager
        detected = find_result(detections, MANAGER_DETECT_NAMES.get(manager, manager))
        packages = PackagePlan(
            manager=manager,
            install_command=manifest.packages.install_command,
            available=bool(detected and detected.installed),
            global_packages=tuple(manifest.packages.global_packages),
        )

    env_fields: List[EnvField] = list(manifest.env)
    config_files: List[ConfigFile] = list(manifest.config)

    return Plan(
        runtimes=tuple(runtimes),
        packages=packages,
        env_fields=tuple(env_fields),
        config_files=tuple(config_files),
    )


__all__ = [
    "Action",
    "RUNTIME_DISPLAY_NAMES",
    "RUNTIME_DETECT_NAMES",
    "MANAGER_DETECT_NAMES",
    "display_name",
    "detect_name",
    "RuntimePlan",
    "PackagePlan",
    "Plan",
    "decide_action",
    "build_plan",
]
