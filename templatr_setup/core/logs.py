"""
Run logs for templatr-setup.

Each command that changes the machine writes a full DEBUG-level log to
``~/.templatr/logs/<command>-YYYY-MM-DD_HHMMSS.log`` in addition to the
console output. Old logs are rotated so only the newest ``max_files`` remain.

Values registered with :func:`mask_secret` (e.g. secret env fields) are
replaced by ``****`` before any record reaches the file.

Example:
    >>> log_path = start_run_log("setup")
    >>> logging.getLogger(__name__).info("Installing Node.js 20.11.1")
    >>> stop_run_log()
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

from templatr_setup.core.directory import get_logs_dir

logger = logging.getLogger(__name__)

MAX_LOG_FILES = 10
MASK = "****"

_FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
_NOISY_LOGGERS = ("urllib3", "filelock")

_secrets: Set[str] = set()
_handler: Optional[logging.FileHandler] = None


class SecretMaskingFilter(logging.Filter):
    """Replace registered secret values in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in _secrets:
            masked = masked.replace(secret, MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def mask_secret(value: str) -> None:
    """Register a value that must never appear in run logs."""
    if value:
        _secrets.add(value)


def clear_secrets() -> None:
    _secrets.clear()


def start_run_log(
    command: str,
    logs_dir: Optional[Path] = None,
    max_files: int = MAX_LOG_FILES,
) -> Path:
    """
    Attach a timestamped DEBUG file handler to the root logger.

    Console handlers that were configured without an explicit level keep
    their current effective level, so the console does not get noisier.

    Args:
        command: Command name used as the file prefix
        logs_dir: Log directory (default: ~/.templatr/logs)
        max_files: Number of log files kept after rotation

    Returns:
        Path of the new log file
    """
    global _handler

    stop_run_log()

    logs_dir = Path(logs_dir) if logs_dir else get_logs_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    log_path = logs_dir / f"{command}-{timestamp}.log"

    root = logging.getLogger()
    for existing in root.handlers:
        if existing.level == logging.NOTSET:
            existing.setLevel(root.level)
    root.setLevel(logging.DEBUG)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    handler.addFilter(SecretMaskingFilter())
    root.addHandler(handler)
    _handler = handler

    rotate_logs(logs_dir, max_files)
    logger.debug(f"Run log started at {log_path}")
    return log_path


def stop_run_log() -> None:
    """Detach and close the run log handler, if any."""
    global _handler
    if _handler is None:
        return
    logging.getLogger().removeHandler(_handler)
    _handler.close()
    _handler = None


def current_log_file() -> Optional[Path]:
    """Path of the active run log, or None."""
    if _handler is None:
        return None
    return Path(_handler.baseFilename)


def rotate_logs(logs_dir: Path, max_files: int = MAX_LOG_FILES) -> List[Path]:
    """
    Delete all but the newest ``max_files`` log files.

    Returns:
        The deleted paths
    """
    files = _sorted_logs(logs_dir)
    removed = []
    for old in files[max_files:]:
        try:
            old.unlink()
            removed.append(old)
        except OSError as e:
            logger.debug(f"Could not remove old log {old}: {e}")
    return removed


def recent_log_files(count: int = MAX_LOG_FILES, logs_dir: Optional[Path] = None) -> List[Path]:
    """List run logs, newest first."""
    logs_dir = Path(logs_dir) if logs_dir else get_logs_dir()
    return _sorted_logs(logs_dir)[:count]


def _sorted_logs(logs_dir: Path) -> List[Path]:
    if not logs_dir.is_dir():
        return []
    # newest first; the timestamped name breaks mtime ties
    return sorted(
        logs_dir.glob("*.log"),
        key=lambda p: (p.stat().st_mtime, p.name),
        reverse=True,
    )


__all__ = [
    "MAX_LOG_FILES",
    "SecretMaskingFilter",
    "mask_secret",
    "clear_secrets",
    "start_run_log",
    "stop_run_log",
    "current_log_file",
    "rotate_logs",
    "recent_log_files",
]
