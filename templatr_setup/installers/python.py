"""
Python installer.

Uses the relocatable CPython builds from python-build-standalone. Versions
are read from the asset names of the project's latest GitHub release, e.g.
``cpython-3.12.4+20240713-x86_64-unknown-linux-gnu-install_only.tar.gz``.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from templatr_setup.core.download import (
    fetch_json,
    fetch_text,
    parse_checksum_manifest,
)
from templatr_setup.core.exceptions import InstallerError, ResolutionError
from templatr_setup.engine.version import sort_versions
from templatr_setup.installers.base import ArchiveInstaller, ReleaseAsset

logger = logging.getLogger(__name__)

RELEASE_URL = (
    "https://api.github.com/repos/astral-sh/python-build-standalone/releases/latest"
)

_ASSET_RE = re.compile(r"^cpython-(?P<version>[^+]+)\+(?P<build>\d+)-(?P<rest>.+)$")

_TARGETS = {
    ("linux", "x64"): "x86_64-unknown-linux-gnu",
    ("linux", "arm64"): "aarch64-unknown-linux-gnu",
    ("macos", "x64"): "x86_64-apple-darwin",
    ("macos", "arm64"): "aarch64-apple-darwin",
    ("windows", "x64"): "x86_64-pc-windows-msvc",
}


def parse_asset_version(name: str) -> str:
    """
    Extract the CPython version from a release asset name.

    Example:
        >>> parse_asset_version("cpython-3.13.2+20250212-x86_64-unknown-linux-gnu-install_only.tar.gz")
        '3.13.2'
        >>> parse_asset_version("SHA256SUMS")
        ''
    """
    match = _ASSET_RE.match(name)
    return match.group("version") if match else ""


class PythonInstaller(ArchiveInstaller):
    """Installs CPython from python-build-standalone."""

    name = "python"
    display_name = "Python"
    fallback_to_newest = False

    def __init__(self, *args, release_url: str = RELEASE_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.release_url = release_url
        self._release: Optional[Dict[str, Any]] = None

    @property
    def target(self) -> str:
        """python-build-standalone target triple for this platform."""
        key = (self.platform.os, self.platform.arch)
        if key not in _TARGETS:
            raise InstallerError(
                f"python-build-standalone has no build for {self.platform.platform_string()}"
            )
        return _TARGETS[key]

    def _assets(self) -> List[Dict[str, Any]]:
        if self._release is None:
            self._release = fetch_json(
                self.release_url,
                timeout=self.metadata_timeout,
                headers={"Accept": "application/vnd.github+json"},
            )
        assets = self._release.get("assets", []) if isinstance(self._release, dict) else []
        return [a for a in assets if isinstance(a, dict) and a.get("name")]

    def list_versions(self) -> List[str]:
        versions = {parse_asset_version(a["name"]) for a in self._assets()}
        versions.discard("")
        if not versions:
            raise ResolutionError("No Python versions found in release")
        return sort_versions(versions)

    def _install_only_asset(self, version: str) -> Optional[Dict[str, Any]]:
        """Prefer the full install_only build, then the stripped one."""
        target = self.target
        candidates = [
            a
            for a in self._assets()
            if parse_asset_version(a["name"]) == version
            and f"-{target}-install_only" in a["name"]
            and a["name"].endswith(".tar.gz")
        ]
        candidates.sort(key=lambda a: "stripped" in a["name"])
        return candidates[0] if candidates else None

    def find_asset(self, version: str) -> ReleaseAsset:
        asset = self._install_only_asset(version)
        if asset is None:
            raise InstallerError(f"No Python {version} binary found for {self.target}")

        name = asset["name"]
        return ReleaseAsset(
            url=asset["browser_download_url"],
            filename=name,
            sha256=self._checksum_for(name),
        )

    def _checksum_for(self, name: str) -> str:
        """Digest from a sibling '<name>.sha256' asset or the SHA256SUMS file."""
        by_name = {a["name"]: a for a in self._assets()}

        sibling = by_name.get(f"{name}.sha256")
        if sibling is not None:
            content = fetch_text(sibling["browser_download_url"], timeout=self.metadata_timeout)
            parts = content.split()
            return parts[0].lower() if parts else ""

        sums = by_name.get("SHA256SUMS")
        if sums is not None:
            content = fetch_text(sums["browser_download_url"], timeout=self.metadata_timeout)
            return parse_checksum_manifest(content, name) or ""

        return ""

    def bin_dir(self, install_dir: Path) -> Path:
        # python.exe sits at the archive root on Windows
        if self.platform.is_windows:
            return Path(install_dir)
        return Path(install_dir) / "bin"
