"""
Base classes for runtime installers.

Every runtime the manifest can name has one installer. An installer knows
four things about its ecosystem:

1. How to turn a requirement (``>=20``, ``latest``) into a concrete version,
   using the vendor's release index
2. How to download, verify and unpack that version into a target directory
3. Which subdirectory holds the executables (added to PATH)
4. Which extra environment variables the runtime expects (e.g. JAVA_HOME)

Most ecosystems publish plain archives; those installers derive from
:class:`ArchiveInstaller`, which handles the download/verify/extract cycle
and only asks subclasses for the release list and the asset for a version.
"""

import logging
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from templatr_setup.core.download import (
    METADATA_TIMEOUT,
    ProgressCallback,
    download_file,
    verify_checksum,
)
from templatr_setup.core.exceptions import (
    NotImplementedInstallerError,
    ResolutionError,
    VersionParseError,
)
from templatr_setup.core.filesystem import extract_and_flatten
from templatr_setup.core.platform import PlatformInfo, detect_platform
from templatr_setup.engine.version import WILDCARD, is_wildcard, select_best

logger = logging.getLogger(__name__)


# =============================================================================
# Installer Contract
# =============================================================================


class RuntimeInstaller(ABC):
    """
    Abstract base class for runtime installers.

    Attributes:
        name: Manifest runtime key (e.g. 'node')
        display_name: Human-readable name used in messages
        platform: Host platform the installer targets
        metadata_timeout: Seconds allowed for release index requests
    """

    name: str = ""
    display_name: str = ""

    def __init__(
        self,
        platform_info: Optional[PlatformInfo] = None,
        metadata_timeout: float = METADATA_TIMEOUT,
    ):
        self._platform = platform_info
        self.metadata_timeout = metadata_timeout

    @property
    def platform(self) -> PlatformInfo:
        if self._platform is None:
            self._platform = detect_platform()
        return self._platform

    @abstractmethod
    def resolve_version(self, requirement: str) -> str:
        """
        Resolve a requirement to a concrete, installable version.

        Raises:
            ResolutionError: If no release can be chosen
            DownloadError: If the release index cannot be fetched
        """

    @abstractmethod
    def install(
        self,
        version: str,
        target_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Install version into target_dir.

        On failure target_dir is either absent or left as it was before.

        Raises:
            InstallerError: If no asset exists for this platform
            DownloadError: If the download fails
            ChecksumError: If the archive does not match its published digest
            ArchiveExtractionError: If the archive cannot be unpacked
        """

    def bin_dir(self, install_dir: Path) -> Path:
        """Directory holding the runtime's executables."""
        return Path(install_dir) / "bin"

    def env_vars(self, install_dir: Path) -> Dict[str, str]:
        """Extra environment variables the runtime expects."""
        return {}

    def choose_version(
        self,
        candidates: Sequence[str],
        requirement: str,
        fallback_to_newest: bool = True,
    ) -> str:
        """
        Pick the best release from candidates.

        The wildcard selects the newest stable release. A requirement that
        cannot be parsed also selects the newest release, as does a
        requirement nothing satisfies when fallback_to_newest is set.

        Raises:
            ResolutionError: If candidates is empty, or nothing matches and
                fallback_to_newest is False
        """
        if not candidates:
            raise ResolutionError(f"No {self.display_name} releases found")

        newest = select_best(candidates, WILDCARD) or candidates[0]
        if is_wildcard(requirement):
            return newest

        try:
            best = select_best(candidates, requirement)
        except VersionParseError as e:
            logger.warning(
                f"Cannot parse {self.display_name} requirement '{requirement}' ({e}); "
                f"using newest release {newest}"
            )
            return newest

        if best is not None:
            return best
        if fallback_to_newest:
            logger.warning(
                f"No {self.display_name} release satisfies '{requirement}'; "
                f"using newest release {newest}"
            )
            return newest
        raise ResolutionError(
            f"No {self.display_name} version satisfying {requirement} found"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


# =============================================================================
# Archive Installers
# =============================================================================


@dataclass
class ReleaseAsset:
    """
    A downloadable archive for one version on one platform.

    Attributes:
        url: Download URL
        filename: Archive file name (its extension selects the extractor)
        sha256: Expected SHA-256 digest, empty if the vendor publishes none
    """

    url: str
    filename: str
    sha256: str = ""


class ArchiveInstaller(RuntimeInstaller):
    """
    Installer for runtimes distributed as a single archive.

    Subclasses implement :meth:`list_versions` and :meth:`find_asset`; the
    download, checksum verification and extraction are shared.
    """

    #: Fall back to the newest release when nothing satisfies the requirement
    fallback_to_newest = True

    @abstractmethod
    def list_versions(self) -> List[str]:
        """Installable versions, newest first."""

    @abstractmethod
    def find_asset(self, version: str) -> ReleaseAsset:
        """
        Locate the archive for version on this platform.

        Raises:
            InstallerError: If the vendor publishes no archive for it
        """

    def resolve_version(self, requirement: str) -> str:
        version = self.choose_version(
            self.list_versions(), requirement, self.fallback_to_newest
        )
        logger.debug(f"Resolved {self.display_name} '{requirement}' to {version}")
        return version

    def install(
        self,
        version: str,
        target_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        asset = self.find_asset(version)
        download_and_unpack(asset, Path(target_dir), progress, label=self.display_name)


def download_and_unpack(
    asset: ReleaseAsset,
    target_dir: Path,
    progress: Optional[ProgressCallback] = None,
    label: str = "",
) -> None:
    """
    Download an asset to a temporary directory, verify it and unpack it.

    The temporary directory is always removed; extract_and_flatten removes a
    partially populated target_dir on failure.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix="templatr-download-"))
    archive_path = temp_dir / asset.filename
    try:
        logger.info(f"Downloading {label or asset.filename} from {asset.url}")
        download_file(asset.url, archive_path, progress_callback=progress)

        if asset.sha256:
            verify_checksum(archive_path, asset.sha256)
        else:
            logger.warning(f"No published checksum for {asset.filename}; skipping verification")

        logger.info(f"Extracting {asset.filename} to {target_dir}")
        extract_and_flatten(archive_path, target_dir)
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


# =============================================================================
# Placeholders
# =============================================================================


class NotImplementedInstaller(RuntimeInstaller):
    """
    Installer for runtimes that must be installed manually.

    Both resolve_version and install fail with an actionable message that
    points at the vendor's download page.
    """

    def __init__(
        self,
        name: str,
        display_name: str,
        download_url: str,
        platform_info: Optional[PlatformInfo] = None,
        metadata_timeout: float = METADATA_TIMEOUT,
    ):
        super().__init__(platform_info, metadata_timeout)
        self.name = name
        self.display_name = display_name
        self.download_url = download_url

    def resolve_version(self, requirement: str) -> str:
        raise NotImplementedInstallerError(self.display_name, self.download_url)

    def install(
        self,
        version: str,
        target_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        raise NotImplementedInstallerError(self.display_name, self.download_url)

    def bin_dir(self, install_dir: Path) -> Path:
        if self.platform.is_windows:
            return Path(install_dir)
        return Path(install_dir) / "bin"


__all__ = [
    "RuntimeInstaller",
    "ReleaseAsset",
    "ArchiveInstaller",
    "NotImplementedInstaller",
    "download_and_unpack",
]
