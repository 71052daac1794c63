"""
Unit tests for run logs.
"""

import logging
import os
import time

from templatr_setup.core.logs import (
    current_log_file,
    mask_secret,
    recent_log_files,
    rotate_logs,
    start_run_log,
    stop_run_log,
)


def _make_logs(directory, count):
    directory.mkdir(parents=True, exist_ok=True)
    now = time.time()
    paths = []
    for i in range(count):
        path = directory / f"setup-2024-01-01_0000{i:02d}.log"
        path.write_text(f"log {i}")
        os.utime(path, (now - (count - i) * 60, now - (count - i) * 60))
        paths.append(path)
    return paths


class TestRunLog:
    """Test start_run_log / stop_run_log."""

    def test_log_file_created(self, tmp_path):
        """Test the run log captures DEBUG records."""
        log_path = start_run_log("setup", logs_dir=tmp_path)
        logging.getLogger("templatr_setup.test").debug("probe details")
        stop_run_log()

        assert log_path.parent == tmp_path
        assert log_path.name.startswith("setup-")
        assert log_path.suffix == ".log"
        assert "probe details" in log_path.read_text(encoding="utf-8")

    def test_current_log_file(self, tmp_path):
        """Test current_log_file tracks the active handler."""
        assert current_log_file() is None

        log_path = start_run_log("setup", logs_dir=tmp_path)
        assert current_log_file() == log_path

        stop_run_log()
        assert current_log_file() is None

    def test_secrets_masked(self, tmp_path):
        """Test registered secrets never reach the file."""
        mask_secret("sk_live_123456")
        log_path = start_run_log("setup", logs_dir=tmp_path)
        logging.getLogger("templatr_setup.test").info("Setting STRIPE_KEY=%s", "sk_live_123456")
        stop_run_log()

        content = log_path.read_text(encoding="utf-8")
        assert "sk_live_123456" not in content
        assert "STRIPE_KEY=****" in content


class TestRotation:
    """Test log rotation and listing."""

    def test_rotate_keeps_newest(self, tmp_path):
        """Test only the newest max_files logs remain."""
        paths = _make_logs(tmp_path, 12)

        removed = rotate_logs(tmp_path, max_files=10)

        assert sorted(removed) == sorted(paths[:2])
        assert len(list(tmp_path.glob("*.log"))) == 10

    def test_recent_log_files_newest_first(self, tmp_path):
        """Test listing is newest first and limited."""
        paths = _make_logs(tmp_path, 5)

        recent = recent_log_files(3, logs_dir=tmp_path)

        assert recent == [paths[4], paths[3], paths[2]]

    def test_recent_log_files_missing_dir(self, tmp_path):
        """Test a missing log directory lists nothing."""
        assert recent_log_files(5, logs_dir=tmp_path / "missing") == []

    def test_start_rotates(self, tmp_path):
        """Test starting a run log applies rotation."""
        _make_logs(tmp_path, 4)

        start_run_log("setup", logs_dir=tmp_path, max_files=2)
        stop_run_log()

        assert len(list(tmp_path.glob("*.log"))) == 2
