"""
Centralized exception hierarchy for templatr-setup.

Exceptions are grouped by the stage that raises them. The orchestrator and
CLI decide whether an error is fatal or a warning; the classes here only
describe what went wrong.
"""

from typing import List


# ============================================================================
# Base Exceptions
# ============================================================================


class TemplatrError(Exception):
    """Base exception for all templatr-setup errors."""

    pass


class ConfigurationError(TemplatrError):
    """Raised when the user settings file cannot be read."""

    pass


class DirectoryError(TemplatrError):
    """Raised when the per-user base directory cannot be determined."""

    pass


# ============================================================================
# Manifest Exceptions
# ============================================================================


class ManifestError(TemplatrError):
    """Raised when a manifest file cannot be found or parsed."""

    pass


class ManifestValidationError(ManifestError):
    """Raised when a parsed manifest fails validation."""

    def __init__(self, issues: List["object"]):
        self.issues = list(issues)
        lines = [f"  - {issue}" for issue in self.issues]
        super().__init__(
            f"Manifest validation failed with {len(self.issues)} issue(s):\n"
            + "\n".join(lines)
        )


# ============================================================================
# Version Exceptions
# ============================================================================


class VersionParseError(TemplatrError):
    """Raised when a version or a version requirement cannot be parsed."""

    pass


# ============================================================================
# Download and Extraction Exceptions
# ============================================================================


class DownloadError(TemplatrError):
    """Raised when an HTTP download or metadata fetch fails."""

    pass


class ChecksumError(TemplatrError):
    """Raised when a file does not match its published checksum."""

    pass


class FilesystemError(TemplatrError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains an entry that would land outside the destination."""

    pass


# ============================================================================
# Installer Exceptions
# ============================================================================


class InstallerError(TemplatrError):
    """Base exception for runtime installer failures."""

    pass


class ResolutionError(InstallerError):
    """Raised when no release matches a requirement on this platform."""

    pass


class NotImplementedInstallerError(InstallerError):
    """Raised by runtimes that have no automated installer."""

    def __init__(self, display_name: str, url: str):
        self.display_name = display_name
        self.url = url
        super().__init__(
            f"{display_name} installer not yet implemented - "
            f"install {display_name} manually from {url}"
        )


class UnknownRuntimeError(InstallerError):
    """Raised when no installer is registered for a runtime key."""

    def __init__(self, runtime: str):
        self.runtime = runtime
        super().__init__(f"No installer registered for runtime: {runtime}")


# ============================================================================
# Environment Exceptions
# ============================================================================


class EnvironmentMutationError(TemplatrError):
    """Raised when PATH or an environment variable cannot be changed."""

    pass


# ============================================================================
# State Exceptions
# ============================================================================


class StateError(TemplatrError):
    """Base exception for installation ledger errors."""

    pass


class StateLockTimeout(StateError):
    """Raised when the ledger lock cannot be acquired within timeout."""

    pass


class InstallationNotFoundError(StateError):
    """Raised when an undo targets an installation the ledger does not hold."""

    def __init__(self, runtime: str, version: str):
        self.runtime = runtime
        self.version = version
        super().__init__(f"Installation not found: {runtime} {version}")


__all__ = [
    "TemplatrError",
    "ConfigurationError",
    "DirectoryError",
    "ManifestError",
    "ManifestValidationError",
    "VersionParseError",
    "DownloadError",
    "ChecksumError",
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "InstallerError",
    "ResolutionError",
    "NotImplementedInstallerError",
    "UnknownRuntimeError",
    "EnvironmentMutationError",
    "StateError",
    "StateLockTimeout",
    "InstallationNotFoundError",
]
