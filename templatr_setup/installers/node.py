"""
Node.js installer.

Releases come from the official distribution index; only LTS lines are
considered. Archives are verified against the release's SHASUMS256.txt.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from templatr_setup.core.download import fetch_checksum_from_url, fetch_json
from templatr_setup.core.exceptions import ResolutionError
from templatr_setup.core.platform import archive_extension
from templatr_setup.installers.base import ArchiveInstaller, ReleaseAsset

logger = logging.getLogger(__name__)

DIST_URL = "https://nodejs.org/dist"

_OS_NAMES = {"windows": "win", "linux": "linux", "macos": "darwin"}
_ARCH_NAMES = {"x64": "x64", "arm64": "arm64", "x86": "x86", "arm": "armv7l"}


class NodeInstaller(ArchiveInstaller):
    """Installs Node.js LTS releases from nodejs.org."""

    name = "node"
    display_name = "Node.js"

    def __init__(self, *args, dist_url: str = DIST_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.dist_url = dist_url.rstrip("/")
        self._index: Optional[List[Dict[str, Any]]] = None

    def _releases(self) -> List[Dict[str, Any]]:
        if self._index is None:
            data = fetch_json(f"{self.dist_url}/index.json", timeout=self.metadata_timeout)
            if not isinstance(data, list):
                raise ResolutionError("Unexpected Node.js release index format")
            self._index = data
        return self._index

    def list_versions(self) -> List[str]:
        # 'lts' is false for current releases and a codename string for LTS
        versions = [
            str(entry["version"]).lstrip("v")
            for entry in self._releases()
            if isinstance(entry.get("lts"), str) and entry.get("version")
        ]
        if not versions:
            raise ResolutionError("No Node.js LTS releases found")
        return versions

    def archive_name(self, version: str) -> str:
        """
        Archive file name for version on this platform.

        Example:
            >>> NodeInstaller(PlatformInfo("linux", "x64", "6.5")).archive_name("20.11.1")
            'node-v20.11.1-linux-x64.tar.gz'
        """
        os_name = _OS_NAMES.get(self.platform.os, self.platform.os)
        arch = _ARCH_NAMES.get(self.platform.arch, self.platform.arch)
        return f"node-v{version}-{os_name}-{arch}.{archive_extension(self.platform)}"

    def find_asset(self, version: str) -> ReleaseAsset:
        filename = self.archive_name(version)
        release_url = f"{self.dist_url}/v{version}"
        sha256 = fetch_checksum_from_url(
            f"{release_url}/SHASUMS256.txt", filename, timeout=self.metadata_timeout
        )
        return ReleaseAsset(url=f"{release_url}/{filename}", filename=filename, sha256=sha256)

    def bin_dir(self, install_dir: Path) -> Path:
        # node.exe sits at the archive root on Windows
        if self.platform.is_windows:
            return Path(install_dir)
        return Path(install_dir) / "bin"
