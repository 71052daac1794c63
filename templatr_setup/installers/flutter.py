"""
Flutter installer.

Release metadata comes from the Flutter infra bucket; each platform has its
own releases file listing every channel build with its archive path and
SHA-256.
"""

import logging
from typing import Any, Dict, List, Optional

from templatr_setup.core.download import fetch_json
from templatr_setup.core.exceptions import InstallerError, ResolutionError
from templatr_setup.installers.base import ArchiveInstaller, ReleaseAsset

logger = logging.getLogger(__name__)

RELEASES_URL = "https://storage.googleapis.com/flutter_infra_release/releases"
STABLE_CHANNEL = "stable"


class FlutterInstaller(ArchiveInstaller):
    """Installs stable Flutter SDK releases."""

    name = "flutter"
    display_name = "Flutter"

    def __init__(self, *args, releases_url: str = RELEASES_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.releases_url = releases_url.rstrip("/")
        self._data: Optional[Dict[str, Any]] = None

    def _releases_document(self) -> Dict[str, Any]:
        if self._data is None:
            url = f"{self.releases_url}/releases_{self.platform.os}.json"
            data = fetch_json(url, timeout=self.metadata_timeout)
            if not isinstance(data, dict):
                raise ResolutionError("Unexpected Flutter releases format")
            self._data = data
        return self._data

    def _stable(self) -> List[Dict[str, Any]]:
        return [
            r
            for r in self._releases_document().get("releases", [])
            if r.get("channel") == STABLE_CHANNEL and r.get("version")
        ]

    def list_versions(self) -> List[str]:
        versions = [str(r["version"]) for r in self._stable()]
        if not versions:
            raise ResolutionError("No stable Flutter releases found")
        return versions

    def find_asset(self, version: str) -> ReleaseAsset:
        release = next((r for r in self._stable() if r["version"] == version), None)
        if release is None or not release.get("archive"):
            raise InstallerError(f"Flutter {version} not found in stable releases")

        base_url = str(self._releases_document().get("base_url", self.releases_url))
        archive = str(release["archive"])
        return ReleaseAsset(
            url=f"{base_url.rstrip('/')}/{archive}",
            filename=archive.rsplit("/", 1)[-1],
            sha256=release.get("sha256", ""),
        )
