"""
Runtime installers.

One installer per runtime key a manifest can name. Node.js, Python, Go,
Java, Flutter and Rust are installed automatically; Ruby, PHP and .NET are
placeholders that explain how to install them manually.
"""

from templatr_setup.installers.base import (
    ArchiveInstaller,
    NotImplementedInstaller,
    ReleaseAsset,
    RuntimeInstaller,
)
from templatr_setup.installers.registry import (
    InstallerRegistry,
    build_registry,
    default_registry,
    get_installer,
    register_installer,
    registered_runtimes,
)

__all__ = [
    "RuntimeInstaller",
    "ArchiveInstaller",
    "NotImplementedInstaller",
    "ReleaseAsset",
    "InstallerRegistry",
    "build_registry",
    "default_registry",
    "get_installer",
    "register_installer",
    "registered_runtimes",
]
