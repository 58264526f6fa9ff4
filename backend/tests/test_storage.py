"""Tests for the storage backends."""
import os

import pytest

from lanshare.files.storage import (
    LocalDirectoryStorage,
    MemoryStorage,
    StoredEntry,
    is_storable_name,
)


class TestIsStorableName:
    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b"])
    def test_rejects_names_that_leave_the_root(self, name):
        assert not is_storable_name(name)

    @pytest.mark.parametrize("name", ["a.txt", ".env", "...", "name with spaces"])
    def test_accepts_plain_segments(self, name):
        assert is_storable_name(name)


class TestLocalDirectoryStorage:
    """Tests for LocalDirectoryStorage."""

    def test_ensure_root_creates_nested_directory(self, tmp_path):
        storage = LocalDirectoryStorage(tmp_path / "a" / "b")
        storage.ensure_root()
        assert (tmp_path / "a" / "b").is_dir()

    def test_list_missing_root_is_empty(self, tmp_path):
        storage = LocalDirectoryStorage(tmp_path / "missing")
        assert storage.list() == []

    def test_list_reports_files_only(self, local_storage):
        """Subdirectories are neither listed nor recursed into."""
        root = local_storage.root
        (root / "a.txt").write_bytes(b"hello")
        (root / "sub").mkdir()
        (root / "sub" / "nested.txt").write_bytes(b"hidden")

        entries = local_storage.list()

        assert [e.name for e in entries] == ["a.txt"]
        assert entries[0].size == 5

    def test_list_uses_mtime_seconds(self, local_storage):
        path = local_storage.root / "a.txt"
        path.write_bytes(b"x")
        os.utime(path, (1000.7, 1000.7))

        assert local_storage.list() == [StoredEntry(name="a.txt", size=1, modified_at=1000)]

    def test_list_skips_dangling_symlink(self, local_storage):
        root = local_storage.root
        (root / "real.txt").write_bytes(b"ok")
        try:
            os.symlink(root / "gone.txt", root / "dangling.txt")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")

        assert [e.name for e in local_storage.list()] == ["real.txt"]

    def test_create_is_exclusive(self, local_storage):
        (local_storage.root / "a.txt").write_bytes(b"keep")
        with pytest.raises(FileExistsError):
            local_storage.create("a.txt")
        assert (local_storage.root / "a.txt").read_bytes() == b"keep"

    def test_create_and_read_back(self, local_storage):
        with local_storage.create("b.bin") as fh:
            fh.write(b"\x00\x01\x02")
        with local_storage.open_for_read("b.bin") as fh:
            assert fh.read() == b"\x00\x01\x02"

    def test_open_for_read_rejects_directories(self, local_storage):
        (local_storage.root / "dir").mkdir()
        with pytest.raises(FileNotFoundError):
            local_storage.open_for_read("dir")

    def test_parent_segment_is_never_resolved(self, local_storage):
        with pytest.raises(FileNotFoundError):
            local_storage.open_for_read("..")
        assert not local_storage.exists("..")

    def test_remove(self, local_storage):
        (local_storage.root / "a.txt").write_bytes(b"x")
        local_storage.remove("a.txt")
        assert not local_storage.exists("a.txt")

    def test_remove_missing_raises(self, local_storage):
        with pytest.raises(FileNotFoundError):
            local_storage.remove("nope.txt")

    def test_overlong_name_is_absent(self, local_storage):
        """Names the filesystem cannot hold read as missing, not as I/O failures."""
        name = "a" * 300 + ".txt"

        assert not local_storage.exists(name)
        with pytest.raises(FileNotFoundError):
            local_storage.open_for_read(name)
        with pytest.raises(FileNotFoundError):
            local_storage.remove(name)

    def test_remove_directory_raises(self, local_storage):
        (local_storage.root / "dir").mkdir()
        with pytest.raises(OSError):
            local_storage.remove("dir")
        assert (local_storage.root / "dir").is_dir()


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_writes_are_visible_before_close(self):
        """A half-written upload shows up with the bytes written so far."""
        storage = MemoryStorage(clock=lambda: 50)
        handle = storage.create("a.txt")
        handle.write(b"abc")
        assert storage.list() == [StoredEntry(name="a.txt", size=3, modified_at=50)]
        handle.close()

    def test_create_is_exclusive(self):
        storage = MemoryStorage()
        storage.put("a.txt", b"x")
        with pytest.raises(FileExistsError):
            storage.create("a.txt")

    def test_read_missing_raises(self):
        with pytest.raises(FileNotFoundError):
            MemoryStorage().open_for_read("a.txt")

    def test_remove(self):
        storage = MemoryStorage()
        storage.put("a.txt", b"x")
        storage.remove("a.txt")
        assert storage.list() == []
        with pytest.raises(FileNotFoundError):
            storage.remove("a.txt")
