"""
Unit tests for the installer registry, manual stubs and version choice.
"""

import pytest

from templatr_setup.core.exceptions import (
    NotImplementedInstallerError,
    ResolutionError,
    UnknownRuntimeError,
)
from templatr_setup.installers.base import NotImplementedInstaller
from templatr_setup.installers.go import GoInstaller
from templatr_setup.installers.registry import InstallerRegistry, build_registry
from templatr_setup.installers.stubs import MANUAL_INSTALL_PAGES, manual_installers


class TestInstallerRegistry:
    """Test InstallerRegistry class."""

    def test_build_registry_names(self, linux_x64):
        """Test every built-in runtime is registered."""
        registry = build_registry(linux_x64)

        assert registry.names() == [
            "node",
            "python",
            "flutter",
            "java",
            "go",
            "rust",
            "ruby",
            "php",
            "dotnet",
        ]
        assert registry.get("node").display_name == "Node.js"
        assert registry.get("go").platform is linux_x64

    def test_metadata_timeout_passed_through(self, linux_x64):
        """Test installers get the configured index timeout."""
        registry = build_registry(linux_x64, metadata_timeout=5)

        assert all(registry.get(name).metadata_timeout == 5 for name in registry.names())

    def test_unknown_runtime(self):
        """Test unknown keys raise UnknownRuntimeError."""
        with pytest.raises(UnknownRuntimeError, match="elixir"):
            InstallerRegistry().get("elixir")

    def test_duplicate_registration(self, linux_x64):
        """Test registering a name twice without replace fails."""
        registry = InstallerRegistry()
        registry.register(GoInstaller(linux_x64))

        with pytest.raises(ValueError):
            registry.register(GoInstaller(linux_x64))

        registry.register(GoInstaller(linux_x64), replace=True)
        assert len(registry) == 1
        assert "go" in registry

    def test_empty_name_rejected(self):
        """Test installers without a runtime name are rejected."""
        with pytest.raises(ValueError):
            InstallerRegistry().register(NotImplementedInstaller("", "Nothing", "https://x"))


class TestManualInstallers:
    """Test runtimes without an automatic installer."""

    def test_one_stub_per_page(self):
        """Test a stub exists for every manual download page."""
        assert [i.name for i in manual_installers()] == list(MANUAL_INSTALL_PAGES)

    @pytest.mark.parametrize("runtime", ["ruby", "php", "dotnet"])
    def test_error_points_at_download_page(self, tmp_path, linux_x64, runtime):
        """Test resolve and install fail with the vendor URL."""
        installer = build_registry(linux_x64).get(runtime)
        _, url = MANUAL_INSTALL_PAGES[runtime]

        with pytest.raises(NotImplementedInstallerError, match="not yet implemented") as exc:
            installer.resolve_version("latest")
        assert url in str(exc.value)

        with pytest.raises(NotImplementedInstallerError):
            installer.install("3.3.0", tmp_path / runtime)
        assert not (tmp_path / runtime).exists()


class TestChooseVersion:
    """Test RuntimeInstaller.choose_version."""

    CANDIDATES = ["1.22.5", "1.22.4", "1.21.12", "1.23.0-rc.1"]

    def test_wildcard_newest_stable(self, linux_x64):
        """Test the wildcard skips prereleases."""
        assert GoInstaller(linux_x64).choose_version(self.CANDIDATES, "latest") == "1.22.5"

    def test_matching(self, linux_x64):
        """Test newest satisfying candidate."""
        assert GoInstaller(linux_x64).choose_version(self.CANDIDATES, "~1.21") == "1.21.12"

    def test_fallback(self, linux_x64):
        """Test unsatisfiable requirements fall back when allowed."""
        installer = GoInstaller(linux_x64)

        assert installer.choose_version(self.CANDIDATES, ">=2") == "1.22.5"
        with pytest.raises(ResolutionError):
            installer.choose_version(self.CANDIDATES, ">=2", fallback_to_newest=False)

    def test_empty_candidates(self, linux_x64):
        """Test no releases raises ResolutionError."""
        with pytest.raises(ResolutionError):
            GoInstaller(linux_x64).choose_version([], "latest")
