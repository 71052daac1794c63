"""
Platform detection for templatr-setup.

Installers need the current OS and CPU architecture in a handful of vendor
spellings (Node uses 'darwin'/'x64', Adoptium uses 'mac'/'aarch64', Rust uses
target triples). This module detects the platform once and exposes the
normalized values; each installer maps them to its vendor's naming.

Usage:
    from templatr_setup.core.platform import detect_platform

    info = detect_platform()
    print(info.platform_string())   # e.g. 'linux-x64'
"""

import functools
import os
import platform
from dataclasses import dataclass
from typing import Optional

import distro


@dataclass
class PlatformInfo:
    """
    Platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
        os_version: OS version string (e.g. '10.0.19041', '6.5.0', '14.1')
        distribution: Human-readable Linux distribution name or empty
    """

    os: str
    arch: str
    os_version: str
    distribution: str = ""

    def platform_string(self) -> str:
        """
        Get canonical platform string (e.g. 'linux-x64', 'macos-arm64').

        Example:
            >>> PlatformInfo('linux', 'x64', '6.5').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def is_macos(self) -> bool:
        return self.os == "macos"

    def __str__(self) -> str:
        parts = [self.platform_string()]
        if self.distribution:
            parts.append(f"({self.distribution})")
        parts.append(f"v{self.os_version}")
        return " ".join(parts)


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo instance with detected platform information
    """
    os_name = _detect_os()
    return PlatformInfo(
        os=os_name,
        arch=_detect_architecture(),
        os_version=_detect_os_version(os_name),
        distribution=distro.name(pretty=True) if os_name == "linux" else "",
    )


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'windows', 'linux', 'macos'

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm'
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        return machine


def _detect_os_version(os_name: str) -> str:
    if os_name == "windows":
        return platform.version()
    elif os_name == "macos":
        return platform.mac_ver()[0] or "unknown"
    return platform.release()


def archive_extension(info: Optional[PlatformInfo] = None) -> str:
    """
    Archive extension most vendors publish for this platform.

    Returns:
        'zip' on Windows, 'tar.gz' elsewhere
    """
    info = info or detect_platform()
    return "zip" if info.is_windows else "tar.gz"


def executable_name(name: str, info: Optional[PlatformInfo] = None) -> str:
    """Append '.exe' on Windows."""
    info = info or detect_platform()
    return f"{name}.exe" if info.is_windows else name


def home_dir() -> str:
    """User home directory as shown by the doctor command."""
    return os.path.expanduser("~")


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    Useful for testing.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "archive_extension",
    "executable_name",
    "home_dir",
    "clear_platform_cache",
]
