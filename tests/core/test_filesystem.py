"""
Unit tests for filesystem module.

Covers archive extraction safety, payload flattening and tree moves.
"""

import io
import os
import tarfile

import pytest

from templatr_setup.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)
from templatr_setup.core.filesystem import (
    atomic_write,
    copy_tree,
    extract_and_flatten,
    extract_archive,
    is_relative_to,
    move_tree,
    safe_rmtree,
)


class TestExtractArchive:
    """Test extract_archive function."""

    def test_extract_tar_gz(self, tmp_path, make_archive):
        """Test .tar.gz members are extracted."""
        archive = make_archive(tmp_path / "a.tar.gz", {"dir/file.txt": b"hello"})

        extract_archive(archive, tmp_path / "out")

        assert (tmp_path / "out" / "dir" / "file.txt").read_bytes() == b"hello"

    def test_extract_tar_xz(self, tmp_path, make_archive):
        """Test .tar.xz members are extracted."""
        archive = make_archive(tmp_path / "flutter.tar.xz", {"flutter/bin/flutter": b"#!"})

        extract_archive(archive, tmp_path / "out")

        assert (tmp_path / "out" / "flutter" / "bin" / "flutter").exists()

    def test_extract_zip(self, tmp_path, make_archive):
        """Test .zip members are extracted."""
        archive = make_archive(tmp_path / "a.zip", {"go/bin/go.exe": b"MZ"})

        extract_archive(archive, tmp_path / "out")

        assert (tmp_path / "out" / "go" / "bin" / "go.exe").read_bytes() == b"MZ"

    def test_unsupported_format(self, tmp_path):
        """Test unknown extension raises UnsupportedArchiveFormat."""
        archive = tmp_path / "a.rar"
        archive.write_bytes(b"x")

        with pytest.raises(UnsupportedArchiveFormat):
            extract_archive(archive, tmp_path / "out")

    def test_missing_archive(self, tmp_path):
        """Test missing archive raises ArchiveExtractionError."""
        with pytest.raises(ArchiveExtractionError):
            extract_archive(tmp_path / "missing.tar.gz", tmp_path / "out")

    def test_corrupt_archive(self, tmp_path):
        """Test corrupt content raises ArchiveExtractionError."""
        archive = tmp_path / "bad.tar.gz"
        archive.write_bytes(b"definitely not gzip")

        with pytest.raises(ArchiveExtractionError):
            extract_archive(archive, tmp_path / "out")

    def test_tar_traversal_rejected(self, tmp_path, make_archive):
        """Test '..' entries are rejected and nothing lands outside."""
        archive = make_archive(
            tmp_path / "evil.tar.gz", {"ok.txt": b"ok", "../escaped.txt": b"pwned"}
        )

        with pytest.raises(InsecureArchiveError, match="traversal"):
            extract_archive(archive, tmp_path / "out")

        assert not (tmp_path / "escaped.txt").exists()
        assert not (tmp_path / "out" / "ok.txt").exists()

    def test_zip_traversal_rejected(self, tmp_path, make_archive):
        """Test '..' entries in zip archives are rejected."""
        archive = make_archive(tmp_path / "evil.zip", {"../../escaped.txt": b"pwned"})

        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, tmp_path / "out")

        assert not (tmp_path / "escaped.txt").exists()

    def test_absolute_path_rejected(self, tmp_path, make_archive):
        """Test absolute entry names are rejected."""
        archive = make_archive(tmp_path / "abs.tar.gz", {"/etc/evil": b"x"})

        with pytest.raises(InsecureArchiveError, match="absolute"):
            extract_archive(archive, tmp_path / "out")

    def test_symlink_escape_rejected(self, tmp_path):
        """Test symlinks pointing outside the destination are rejected."""
        archive = tmp_path / "link.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("pkg/link")
            info.type = tarfile.SYMTYPE
            info.linkname = "../../outside"
            tar.addfile(info)

        with pytest.raises(InsecureArchiveError, match="outside"):
            extract_archive(archive, tmp_path / "out")

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_tar_preserves_exec_bit(self, tmp_path):
        """Test executable permission survives extraction."""
        archive = tmp_path / "exec.tar.gz"
        with tarfile.open(archive, "w:gz") as tar:
            info = tarfile.TarInfo("bin/tool")
            info.size = 2
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(b"#!"))

        extract_archive(archive, tmp_path / "out")

        assert os.access(tmp_path / "out" / "bin" / "tool", os.X_OK)


class TestExtractAndFlatten:
    """Test extract_and_flatten function."""

    def test_single_top_level_directory_is_dropped(self, tmp_path, make_archive):
        """Test node-v20.11.1-linux-x64/bin/node lands at target/bin/node."""
        archive = make_archive(
            tmp_path / "node.tar.gz",
            {
                "node-v20.11.1-linux-x64/bin/node": b"node",
                "node-v20.11.1-linux-x64/README.md": b"readme",
            },
        )
        target = tmp_path / "runtimes" / "node" / "20.11.1"

        result = extract_and_flatten(archive, target)

        assert result == target
        assert (target / "bin" / "node").read_bytes() == b"node"
        assert (target / "README.md").exists()
        assert not (target / "node-v20.11.1-linux-x64").exists()

    def test_multiple_top_level_entries_kept(self, tmp_path, make_archive):
        """Test archives with several top-level entries are not flattened."""
        archive = make_archive(tmp_path / "a.zip", {"bin/tool": b"x", "lib/a.so": b"y"})
        target = tmp_path / "target"

        extract_and_flatten(archive, target)

        assert (target / "bin" / "tool").exists()
        assert (target / "lib" / "a.so").exists()

    def test_single_top_level_file_not_flattened(self, tmp_path, make_archive):
        """Test a lone top-level file stays in target."""
        archive = make_archive(tmp_path / "a.tar.gz", {"tool": b"x"})
        target = tmp_path / "target"

        extract_and_flatten(archive, target)

        assert (target / "tool").read_bytes() == b"x"

    def test_existing_target_replaced(self, tmp_path, make_archive):
        """Test previous target content is replaced."""
        target = tmp_path / "target"
        target.mkdir()
        (target / "stale.txt").write_text("old")
        archive = make_archive(tmp_path / "a.tar.gz", {"pkg/new.txt": b"new"})

        extract_and_flatten(archive, target)

        assert (target / "new.txt").exists()
        assert not (target / "stale.txt").exists()

    def test_failed_extraction_leaves_nothing(self, tmp_path, make_archive):
        """Test an insecure archive leaves no target and no scratch directory."""
        archive = make_archive(tmp_path / "evil.tar.gz", {"../x": b"x"})
        parent = tmp_path / "runtimes"
        target = parent / "node" / "1.0.0"

        with pytest.raises(InsecureArchiveError):
            extract_and_flatten(archive, target)

        assert not target.exists()
        assert list((parent / "node").iterdir()) == []


class TestCopyAndMove:
    """Test copy_tree and move_tree."""

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_copy_tree_preserves_symlinks(self, tmp_path):
        """Test symlinks are recreated as links, not followed."""
        source = tmp_path / "src"
        (source / "bin").mkdir(parents=True)
        (source / "lib").mkdir()
        (source / "lib" / "real").write_text("payload")
        os.symlink("../lib/real", source / "bin" / "link")

        copy_tree(source, tmp_path / "dst")

        link = tmp_path / "dst" / "bin" / "link"
        assert link.is_symlink()
        assert os.readlink(link) == "../lib/real"
        assert link.read_text() == "payload"

    def test_copy_tree_requires_directory(self, tmp_path):
        """Test copying a missing source raises FilesystemError."""
        with pytest.raises(FilesystemError):
            copy_tree(tmp_path / "missing", tmp_path / "dst")

    def test_move_tree_falls_back_to_copy(self, tmp_path, monkeypatch):
        """Test move_tree copies when rename fails."""
        source = tmp_path / "src"
        source.mkdir()
        (source / "f.txt").write_text("x")

        def fail_rename(*args):
            raise OSError("cross-device link")

        monkeypatch.setattr("templatr_setup.core.filesystem.os.rename", fail_rename)
        move_tree(source, tmp_path / "dst")

        assert (tmp_path / "dst" / "f.txt").read_text() == "x"
        assert not source.exists()


class TestSafeFileOperations:
    """Test atomic_write and safe_rmtree."""

    def test_atomic_write_creates_parents(self, tmp_path):
        """Test atomic_write creates parent directories."""
        target = tmp_path / "a" / "b" / "state.json"

        atomic_write(target, '{"version": "1.0.0"}')

        assert target.read_text() == '{"version": "1.0.0"}'
        assert [p.name for p in target.parent.iterdir()] == ["state.json"]

    def test_safe_rmtree_missing_path(self, tmp_path):
        """Test removing a missing path is a no-op."""
        safe_rmtree(tmp_path / "missing")

    def test_safe_rmtree_prefix_guard(self, tmp_path):
        """Test paths outside the required prefix are refused."""
        victim = tmp_path / "victim"
        victim.mkdir()

        with pytest.raises(ValueError):
            safe_rmtree(victim, require_prefix=tmp_path / "runtimes")

        assert victim.exists()

    def test_safe_rmtree_file_rejected(self, tmp_path):
        """Test a regular file raises FilesystemError."""
        file = tmp_path / "f.txt"
        file.write_text("x")

        with pytest.raises(FilesystemError):
            safe_rmtree(file)

    def test_is_relative_to(self, tmp_path):
        """Test is_relative_to helper."""
        assert is_relative_to(tmp_path / "a" / "b", tmp_path)
        assert not is_relative_to(tmp_path, tmp_path / "a")
