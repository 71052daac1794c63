"""
Go installer.

Releases come from go.dev's JSON download index, which embeds the SHA-256
of every file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from templatr_setup.core.download import fetch_json
from templatr_setup.core.exceptions import InstallerError, ResolutionError
from templatr_setup.installers.base import ArchiveInstaller, ReleaseAsset

logger = logging.getLogger(__name__)

INDEX_URL = "https://go.dev/dl/?mode=json"
DOWNLOAD_URL = "https://go.dev/dl"

_OS_NAMES = {"windows": "windows", "linux": "linux", "macos": "darwin"}
_ARCH_NAMES = {"x64": "amd64", "arm64": "arm64", "x86": "386", "arm": "armv6l"}


class GoInstaller(ArchiveInstaller):
    """Installs stable Go releases from go.dev."""

    name = "go"
    display_name = "Go"

    def __init__(
        self,
        *args,
        index_url: str = INDEX_URL,
        download_url: str = DOWNLOAD_URL,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.index_url = index_url
        self.download_url = download_url.rstrip("/")
        self._index: Optional[List[Dict[str, Any]]] = None

    def _stable_releases(self) -> List[Dict[str, Any]]:
        if self._index is None:
            data = fetch_json(self.index_url, timeout=self.metadata_timeout)
            if not isinstance(data, list):
                raise ResolutionError("Unexpected Go release index format")
            self._index = data
        return [r for r in self._index if r.get("stable") and r.get("version")]

    def list_versions(self) -> List[str]:
        versions = [str(r["version"]).removeprefix("go") for r in self._stable_releases()]
        if not versions:
            raise ResolutionError("No stable Go versions found")
        return versions

    def find_asset(self, version: str) -> ReleaseAsset:
        release = next(
            (r for r in self._stable_releases() if r["version"] == f"go{version}"), None
        )
        if release is None:
            raise InstallerError(f"Go {version} not found in release list")

        go_os = _OS_NAMES.get(self.platform.os, self.platform.os)
        go_arch = _ARCH_NAMES.get(self.platform.arch, self.platform.arch)
        for entry in release.get("files", []):
            if (
                entry.get("os") == go_os
                and entry.get("arch") == go_arch
                and entry.get("kind") == "archive"
            ):
                filename = entry["filename"]
                return ReleaseAsset(
                    url=f"{self.download_url}/{filename}",
                    filename=filename,
                    sha256=entry.get("sha256", ""),
                )

        raise InstallerError(f"No Go {version} archive found for {go_os}/{go_arch}")

    def env_vars(self, install_dir: Path) -> Dict[str, str]:
        return {"GOROOT": str(install_dir)}
