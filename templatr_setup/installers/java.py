"""
Java installer.

Installs Eclipse Temurin JDKs through the Adoptium API. The API is queried
per feature release ("major"), so a requirement is first mapped onto one of
the known majors and the newest build of that major is installed.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List

from templatr_setup.core.download import fetch_json
from templatr_setup.core.exceptions import InstallerError, ResolutionError, VersionParseError
from templatr_setup.engine.version import is_wildcard, satisfies
from templatr_setup.installers.base import ArchiveInstaller, ReleaseAsset

logger = logging.getLogger(__name__)

API_URL = "https://api.adoptium.net/v3"

# Checked in order; the first one the requirement accepts wins
KNOWN_MAJORS = (25, 24, 23, 22, 21, 17, 11, 8)
DEFAULT_MAJOR = 21

_OS_NAMES = {"windows": "windows", "linux": "linux", "macos": "mac"}
_ARCH_NAMES = {"x64": "x64", "arm64": "aarch64", "x86": "x32", "arm": "arm"}


def pick_major(requirement: str) -> int:
    """
    Map a requirement onto a Java feature release.

    Example:
        >>> pick_major(">=17 <22")
        21
        >>> pick_major("latest")
        21
    """
    if is_wildcard(requirement):
        return DEFAULT_MAJOR
    try:
        for major in KNOWN_MAJORS:
            if satisfies(f"{major}.0.0", requirement):
                return major
    except VersionParseError:
        match = re.search(r"\d+", requirement)
        if match:
            return int(match.group())
    return DEFAULT_MAJOR


class JavaInstaller(ArchiveInstaller):
    """Installs Temurin JDKs from Adoptium."""

    name = "java"
    display_name = "Java (Temurin)"

    def __init__(self, *args, api_url: str = API_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_url = api_url.rstrip("/")

    def _assets_url(self, major: int) -> str:
        os_name = _OS_NAMES.get(self.platform.os, self.platform.os)
        arch = _ARCH_NAMES.get(self.platform.arch, self.platform.arch)
        return (
            f"{self.api_url}/assets/latest/{major}/hotspot"
            f"?architecture={arch}&image_type=jdk&os={os_name}&vendor=eclipse"
        )

    def _latest_assets(self, major: int) -> List[Dict[str, Any]]:
        data = fetch_json(self._assets_url(major), timeout=self.metadata_timeout)
        if not isinstance(data, list) or not data:
            raise ResolutionError(
                f"No Adoptium JDK {major} found for {self.platform.platform_string()}"
            )
        return data

    def resolve_version(self, requirement: str) -> str:
        major = pick_major(requirement)
        asset = self._latest_assets(major)[0]
        version = asset.get("version", {}).get("semver", "")
        if not version:
            raise ResolutionError(f"Adoptium returned no version for JDK {major}")
        logger.debug(f"Resolved Java '{requirement}' to {version} (major {major})")
        return version

    def list_versions(self) -> List[str]:
        return [str(major) for major in KNOWN_MAJORS]

    def find_asset(self, version: str) -> ReleaseAsset:
        major = int(version.split(".")[0].split("+")[0])
        assets = self._latest_assets(major)
        asset = next(
            (a for a in assets if a.get("version", {}).get("semver") == version), assets[0]
        )
        package = asset.get("binary", {}).get("package", {})
        if not package.get("link") or not package.get("name"):
            raise InstallerError(f"Adoptium returned no download for JDK {version}")
        return ReleaseAsset(
            url=package["link"],
            filename=package["name"],
            sha256=package.get("checksum", ""),
        )

    def java_home(self, install_dir: Path) -> Path:
        # macOS JDK bundles keep the real home inside Contents/Home
        if self.platform.is_macos:
            return Path(install_dir) / "Contents" / "Home"
        return Path(install_dir)

    def bin_dir(self, install_dir: Path) -> Path:
        return self.java_home(install_dir) / "bin"

    def env_vars(self, install_dir: Path) -> Dict[str, str]:
        return {"JAVA_HOME": str(self.java_home(install_dir))}
