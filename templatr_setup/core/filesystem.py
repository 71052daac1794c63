"""
File system utilities for templatr-setup.

This module provides:
- Archive extraction (.tar.gz/.tgz, .tar.xz and .zip) with path-traversal protection
- Flattening of archives that wrap their payload in one top-level directory
- Moving directory trees (rename, falling back to a symlink-preserving copy)
- Safe file operations (atomic writes, guarded recursive deletion)
"""

import logging
import os
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional, Union

from templatr_setup.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"

_TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz")


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is under parent directory.

    Example:
        >>> is_relative_to(Path("/home/user/project/file.txt"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Args:
        path: Member path from archive
        destination: Extraction destination

    Raises:
        InsecureArchiveError: If path is absolute or escapes destination
    """
    if os.path.isabs(path) or path.startswith(("/", "\\")):
        logger.error(f"Rejected absolute archive entry: {path}")
        raise InsecureArchiveError(
            f"Archive member '{path}' has an absolute path. "
            "Extraction has been blocked."
        )

    root = destination.resolve()
    member_path = (root / path).resolve()
    if not is_relative_to(member_path, root):
        logger.error(f"Rejected path traversal in archive entry: {path}")
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "Extraction has been blocked."
        )


def _validate_tar_link(member: tarfile.TarInfo, destination: Path) -> None:
    """Reject symlinks and hardlinks whose target resolves outside destination."""
    root = destination.resolve()
    if member.issym():
        link_parent = (root / member.name).parent
        target = (link_parent / member.linkname).resolve()
    else:
        target = (root / member.linkname).resolve()

    if os.path.isabs(member.linkname) or not is_relative_to(target, root):
        logger.error(
            f"Rejected archive link {member.name} -> {member.linkname}: "
            "target outside destination"
        )
        raise InsecureArchiveError(
            f"Archive link '{member.name}' points outside the destination "
            f"('{member.linkname}'). Extraction has been blocked."
        )


def extract_archive(archive_path: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Extract an archive to a destination directory.

    The format is selected by file extension. Every member is validated
    before anything is written, so a rejected archive leaves nothing behind
    outside (or inside) the destination.

    Supported formats:
    - .tar.gz, .tgz
    - .tar.xz
    - .zip

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        InsecureArchiveError: If archive contains malicious paths
        ArchiveExtractionError: If extraction fails for any other reason

    Example:
        >>> extract_archive('node-v20.11.1-linux-x64.tar.gz', '/tmp/node')
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    archive_name = archive_path.name.lower()
    if not archive_name.endswith(_TAR_SUFFIXES + (".zip",)):
        raise UnsupportedArchiveFormat(
            f"Unsupported archive format: {archive_path.name}. "
            "Supported: .tar.gz, .tgz, .tar.xz, .zip"
        )

    destination.mkdir(parents=True, exist_ok=True)

    try:
        if archive_name.endswith(".zip"):
            _extract_zip(archive_path, destination)
        else:
            mode = "r:xz" if archive_name.endswith(".tar.xz") else "r:gz"
            _extract_tar(archive_path, destination, mode)
    except (InsecureArchiveError, UnsupportedArchiveFormat):
        raise
    except (OSError, tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e

    logger.debug(f"Extracted {archive_path.name} to {destination}")


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive, restoring POSIX permission bits."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        for member in members:
            _validate_archive_path(member.filename, destination)

        for member in members:
            extracted = zf.extract(member, destination)
            mode = (member.external_attr >> 16) & 0o777
            if mode and not IS_WINDOWS and not member.is_dir():
                os.chmod(extracted, mode)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    """Extract a compressed tar archive."""
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()

        for member in members:
            _validate_archive_path(member.name, destination)
            if member.issym() or member.islnk():
                _validate_tar_link(member, destination)

        # Python 3.12+ also enforces the data filter on top of our checks
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)


def extract_and_flatten(archive_path: Union[str, Path], target_dir: Union[str, Path]) -> Path:
    """
    Extract an archive into target_dir, dropping a single enclosing directory.

    The archive is extracted into a scratch directory created next to
    target_dir (so the final move stays on one filesystem). If the scratch
    directory holds exactly one entry and it is a directory, that directory
    becomes target_dir; otherwise the scratch directory itself does. Any
    previous content of target_dir is replaced.

    Args:
        archive_path: Archive to extract
        target_dir: Final payload location

    Returns:
        target_dir

    Raises:
        ArchiveExtractionError: If extraction or the final move fails; no
            partial target_dir is left behind
    """
    archive_path = Path(archive_path)
    target_dir = Path(target_dir)
    target_dir.parent.mkdir(parents=True, exist_ok=True)

    scratch = Path(
        tempfile.mkdtemp(dir=target_dir.parent, prefix=f".{target_dir.name}-extract-")
    )
    os.chmod(scratch, 0o755)
    moving = False
    try:
        extract_archive(archive_path, scratch)

        entries = list(scratch.iterdir())
        if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
            payload = entries[0]
        else:
            payload = scratch

        if target_dir.exists():
            safe_rmtree(target_dir)

        moving = True
        move_tree(payload, target_dir)
        logger.debug(f"Installed payload of {archive_path.name} at {target_dir}")
        return target_dir

    except FilesystemError:
        if moving:
            _remove_partial(target_dir)
        raise
    except OSError as e:
        if moving:
            _remove_partial(target_dir)
        raise ArchiveExtractionError(
            f"Failed to move extracted payload into {target_dir}: {e}"
        ) from e
    finally:
        shutil.rmtree(scratch, ignore_errors=True)


def _remove_partial(path: Path) -> None:
    if path.exists() or path.is_symlink():
        logger.debug(f"Removing partial install at {path}")
        shutil.rmtree(path, ignore_errors=True)


# ============================================================================
# Moving and Copying
# ============================================================================


def move_tree(source: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Move a directory tree, preferring an atomic rename.

    Falls back to a symlink-preserving copy followed by removal of the source
    when the rename fails (e.g. across filesystem boundaries).
    """
    source = Path(source)
    destination = Path(destination)
    try:
        os.rename(source, destination)
        return
    except OSError as e:
        logger.debug(f"Rename {source} -> {destination} failed ({e}), copying instead")

    copy_tree(source, destination)
    shutil.rmtree(source, ignore_errors=True)


def copy_tree(source: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Recursively copy a directory tree, keeping symbolic links as links.

    Raises:
        FilesystemError: If source is missing or not a directory
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    destination.mkdir(parents=True, exist_ok=True)

    for item in sorted(source.rglob("*")):
        dest_item = destination / item.relative_to(source)

        if item.is_symlink():
            if dest_item.exists() or dest_item.is_symlink():
                dest_item.unlink()
            dest_item.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(os.readlink(item), dest_item)
        elif item.is_dir():
            dest_item.mkdir(parents=True, exist_ok=True)
        else:
            dest_item.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, dest_item)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('state.json', '{"version": "1.0.0"}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)
        temp_path.replace(file_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree with safeguards.

    Args:
        path: Directory to remove; a missing path is not an error
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If path is not a directory or deletion fails

    Example:
        >>> safe_rmtree('~/.templatr/runtimes/node/20.11.1',
        ...             require_prefix='~/.templatr/runtimes')
    """
    path = Path(path).expanduser().resolve()

    if require_prefix is not None:
        prefix = Path(require_prefix).expanduser().resolve()
        if not is_relative_to(path, prefix) or path == prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    def _make_writable(func, failed_path, _exc):
        # read-only files (common in Windows payloads) block rmtree
        os.chmod(failed_path, stat.S_IWRITE | stat.S_IREAD)
        func(failed_path)

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_make_writable)
        else:
            shutil.rmtree(path, onerror=_make_writable)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


__all__ = [
    "IS_WINDOWS",
    "is_relative_to",
    "extract_archive",
    "extract_and_flatten",
    "move_tree",
    "copy_tree",
    "atomic_write",
    "safe_rmtree",
]
