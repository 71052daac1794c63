"""
Pytest configuration and shared fixtures for templatr-setup tests.
"""

import io
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from templatr_setup.core.platform import PlatformInfo


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def templatr_home(temp_dir: Path, monkeypatch) -> Path:
    """Point ~/.templatr at a temporary directory."""
    home = temp_dir / "templatr-home"
    monkeypatch.setenv("TEMPLATR_HOME", str(home))
    return home


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated user home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))

    return fake_home


@pytest.fixture
def linux_x64() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="x64", os_version="6.5.0")


@pytest.fixture
def macos_arm64() -> PlatformInfo:
    return PlatformInfo(os="macos", arch="arm64", os_version="14.1")


@pytest.fixture
def windows_x64() -> PlatformInfo:
    return PlatformInfo(os="windows", arch="x64", os_version="10.0.19041")


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    from templatr_setup.core import platform
    from templatr_setup.core import logs

    platform.detect_platform.cache_clear()
    yield
    logs.stop_run_log()
    logs.clear_secrets()


# ============================================================================
# Archive Builders
# ============================================================================


def _write_tar(path: Path, files: Dict[str, bytes], mode: str) -> Path:
    with tarfile.open(path, mode) as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return path


def _write_zip(path: Path, files: Dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def make_archive():
    """
    Build an archive whose format follows the file suffix.

    Example:
        make_archive(tmp_path / "node.tar.gz", {"node-v1/bin/node": b"#!"})
    """

    def _make(path: Path, files: Dict[str, bytes]) -> Path:
        name = path.name
        if name.endswith(".zip"):
            return _write_zip(path, files)
        if name.endswith(".tar.xz"):
            return _write_tar(path, files, "w:xz")
        return _write_tar(path, files, "w:gz")

    return _make
