"""
Registry of runtime installers, keyed by manifest runtime name.
"""

import logging
from typing import Dict, List, Optional

from templatr_setup.core.download import METADATA_TIMEOUT
from templatr_setup.core.exceptions import UnknownRuntimeError
from templatr_setup.core.platform import PlatformInfo
from templatr_setup.installers.base import RuntimeInstaller
from templatr_setup.installers.flutter import FlutterInstaller
from templatr_setup.installers.go import GoInstaller
from templatr_setup.installers.java import JavaInstaller
from templatr_setup.installers.node import NodeInstaller
from templatr_setup.installers.python import PythonInstaller
from templatr_setup.installers.rust import RustInstaller
from templatr_setup.installers.stubs import manual_installers

logger = logging.getLogger(__name__)


class InstallerRegistry:
    """
    Maps runtime keys to installer instances.

    Example:
        >>> registry = build_registry()
        >>> registry.get("node").display_name
        'Node.js'
    """

    def __init__(self):
        """Initialize empty registry."""
        self._installers: Dict[str, RuntimeInstaller] = {}

    def register(self, installer: RuntimeInstaller, replace: bool = False) -> None:
        """
        Register an installer under its name.

        Raises:
            ValueError: If the name is empty, or already registered and
                replace is False
        """
        if not installer.name:
            raise ValueError(f"Installer {installer!r} has no runtime name")
        if installer.name in self._installers and not replace:
            raise ValueError(f"Installer '{installer.name}' is already registered")
        self._installers[installer.name] = installer

    def get(self, name: str) -> RuntimeInstaller:
        """
        Look up the installer for a runtime.

        Raises:
            UnknownRuntimeError: If nothing is registered under name
        """
        try:
            return self._installers[name]
        except KeyError:
            raise UnknownRuntimeError(name) from None

    def names(self) -> List[str]:
        return list(self._installers)

    def __contains__(self, name: str) -> bool:
        return name in self._installers

    def __len__(self) -> int:
        return len(self._installers)


def build_registry(
    platform_info: Optional[PlatformInfo] = None,
    metadata_timeout: float = METADATA_TIMEOUT,
) -> InstallerRegistry:
    """Create a registry holding every built-in installer."""
    options = {"platform_info": platform_info, "metadata_timeout": metadata_timeout}
    registry = InstallerRegistry()
    for installer in (
        NodeInstaller(**options),
        PythonInstaller(**options),
        FlutterInstaller(**options),
        JavaInstaller(**options),
        GoInstaller(**options),
        RustInstaller(**options),
        *manual_installers(**options),
    ):
        registry.register(installer)
    return registry


_default: Optional[InstallerRegistry] = None


def default_registry() -> InstallerRegistry:
    """Process-wide registry of built-in installers (created on first use)."""
    global _default
    if _default is None:
        _default = build_registry()
    return _default


def get_installer(name: str) -> RuntimeInstaller:
    """Installer for a runtime from the default registry."""
    return default_registry().get(name)


def register_installer(installer: RuntimeInstaller) -> None:
    """Add or replace an installer in the default registry."""
    default_registry().register(installer, replace=True)
    logger.debug(f"Registered installer for {installer.name}")


def registered_runtimes() -> List[str]:
    return default_registry().names()


__all__ = [
    "InstallerRegistry",
    "build_registry",
    "default_registry",
    "get_installer",
    "register_installer",
    "registered_runtimes",
]
