"""
Rust installer.

Rust is installed through its own bootstrapper, rustup-init, which is run
with CARGO_HOME and RUSTUP_HOME pointed inside the target directory so the
toolchain never touches ~/.cargo or ~/.rustup.
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, Optional

from templatr_setup.core.download import (
    ProgressCallback,
    download_file,
    fetch_text,
    verify_checksum,
)
from templatr_setup.core.exceptions import InstallerError
from templatr_setup.core.platform import executable_name
from templatr_setup.installers.base import RuntimeInstaller

logger = logging.getLogger(__name__)

RUSTUP_URL = "https://static.rust-lang.org/rustup/dist"
DEFAULT_TOOLCHAIN = "stable"
RUSTUP_TIMEOUT = 1800

_PINNED_RE = re.compile(r"^=?\s*(\d+\.\d+(?:\.\d+)?)$")

_TARGETS = {
    ("linux", "x64"): "x86_64-unknown-linux-gnu",
    ("linux", "arm64"): "aarch64-unknown-linux-gnu",
    ("macos", "x64"): "x86_64-apple-darwin",
    ("macos", "arm64"): "aarch64-apple-darwin",
    ("windows", "x64"): "x86_64-pc-windows-msvc",
    ("windows", "arm64"): "aarch64-pc-windows-msvc",
}


class RustInstaller(RuntimeInstaller):
    """Installs a Rust toolchain with rustup-init."""

    name = "rust"
    display_name = "Rust"

    def __init__(self, *args, rustup_url: str = RUSTUP_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.rustup_url = rustup_url.rstrip("/")

    @property
    def target(self) -> str:
        key = (self.platform.os, self.platform.arch)
        if key not in _TARGETS:
            raise InstallerError(f"rustup has no build for {self.platform.platform_string()}")
        return _TARGETS[key]

    def resolve_version(self, requirement: str) -> str:
        """
        Pick the toolchain channel to install.

        Example:
            >>> RustInstaller().resolve_version(">=1.70")
            'stable'
            >>> RustInstaller().resolve_version("1.78.0")
            '1.78.0'
        """
        match = _PINNED_RE.match(requirement.strip())
        return match.group(1) if match else DEFAULT_TOOLCHAIN

    def install(
        self,
        version: str,
        target_dir: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        target_dir = Path(target_dir)
        binary = executable_name("rustup-init", self.platform)
        url = f"{self.rustup_url}/{self.target}/{binary}"

        temp_dir = Path(tempfile.mkdtemp(prefix="templatr-rustup-"))
        rustup_init = temp_dir / binary
        try:
            logger.info(f"Downloading rustup-init from {url}")
            download_file(url, rustup_init, progress_callback=progress)
            expected = fetch_text(f"{url}.sha256", timeout=self.metadata_timeout).split()
            if expected:
                verify_checksum(rustup_init, expected[0])
            os.chmod(rustup_init, 0o755)

            target_dir.mkdir(parents=True, exist_ok=True)
            try:
                self._run_rustup(rustup_init, version, target_dir)
            except InstallerError:
                logger.debug(f"Removing partial Rust install at {target_dir}")
                shutil.rmtree(target_dir, ignore_errors=True)
                raise
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def _run_rustup(self, rustup_init: Path, toolchain: str, target_dir: Path) -> None:
        env = os.environ.copy()
        env.update(self.env_vars(target_dir))
        command = [
            str(rustup_init),
            "--default-toolchain",
            toolchain,
            "-y",
            "--no-modify-path",
        ]
        logger.info(f"Running {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                env=env,
                capture_output=True,
                text=True,
                timeout=RUSTUP_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise InstallerError(f"rustup-init failed: {e}") from e

        for line in (completed.stdout + completed.stderr).splitlines():
            logger.debug(f"rustup-init: {line}")
        if completed.returncode != 0:
            tail = completed.stderr.strip().splitlines()[-1:] or [""]
            raise InstallerError(
                f"rustup-init failed with exit code {completed.returncode}: {tail[0]}"
            )

    def bin_dir(self, install_dir: Path) -> Path:
        return Path(install_dir) / ".cargo" / "bin"

    def env_vars(self, install_dir: Path) -> Dict[str, str]:
        return {
            "CARGO_HOME": str(Path(install_dir) / ".cargo"),
            "RUSTUP_HOME": str(Path(install_dir) / ".rustup"),
        }
