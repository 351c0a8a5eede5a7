"""
@description 下载文件存储测试
@responsibility 验证目录初始化、文件定位、越界防护和删除
"""

from unittest.mock import patch

import pytest

from app.core.errors import NotFoundError, StorageError
from app.services.artifact_store import ArtifactStore


class TestEnsureRoot:
    def test_creates_nested_directory(self, tmp_path):
        store = ArtifactStore(tmp_path / "a" / "b")

        store.ensure_root()

        assert (tmp_path / "a" / "b").is_dir()

    def test_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = ArtifactStore(blocker / "downloads")

        with pytest.raises(StorageError):
            store.ensure_root()


class TestResolve:
    """测试文件定位"""

    def test_resolve_existing_file(self, store):
        (store.root / "movie.mkv").write_bytes(b"0" * 128)

        artifact = store.resolve("movie.mkv")

        assert artifact.name == "movie.mkv"
        assert artifact.size == 128
        assert artifact.path == store.root / "movie.mkv"

    @pytest.mark.parametrize(
        "name", ["missing.mkv", "", ".", "..", "../secret.txt", "sub/file.txt"]
    )
    def test_resolve_not_found(self, store, name):
        with pytest.raises(NotFoundError):
            store.resolve(name)

    def test_directory_is_not_downloadable(self, store):
        (store.root / "season1").mkdir()

        with pytest.raises(NotFoundError):
            store.resolve("season1")

    def test_symlink_outside_root_rejected(self, store, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        (store.root / "link.txt").symlink_to(outside)

        with pytest.raises(NotFoundError):
            store.resolve("link.txt")


class TestListAndDelete:
    """测试枚举和删除"""

    def test_list_artifacts(self, store):
        (store.root / "a.bin").write_bytes(b"12345")
        folder = store.root / "album"
        folder.mkdir()
        (folder / "01.flac").write_bytes(b"0" * 10)
        (folder / "02.flac").write_bytes(b"0" * 20)

        artifacts = {a.name: a for a in store.list_artifacts()}

        assert artifacts["a.bin"].size == 5
        assert not artifacts["a.bin"].is_dir
        assert artifacts["album"].size == 30
        assert artifacts["album"].is_dir

    def test_delete_file_and_directory(self, store):
        (store.root / "a.bin").write_bytes(b"1")
        folder = store.root / "album"
        folder.mkdir()
        (folder / "01.flac").write_bytes(b"1")

        store.delete("a.bin")
        store.delete("album")

        assert list(store.root.iterdir()) == []

    def test_delete_missing_is_noop(self, store):
        store.delete("already-gone.bin")

    def test_delete_error_raises_storage_error(self, store):
        (store.root / "a.bin").write_bytes(b"1")

        with patch("pathlib.Path.unlink", side_effect=PermissionError("denied")):
            with pytest.raises(StorageError):
                store.delete("a.bin")
