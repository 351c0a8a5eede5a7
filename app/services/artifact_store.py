"""
@description 下载文件存储服务
@responsibility 管理扁平下载目录：初始化、枚举、定位和删除已下载文件
"""

import shutil
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from app.core.errors import NotFoundError, StorageError


@dataclass(frozen=True)
class StoredArtifact:
    name: str
    path: Path
    size: int
    modified_at: float
    is_dir: bool = False


def _dir_size(path: Path) -> int:
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())


class ArtifactStore:
    """以文件名为键的扁平下载目录"""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def ensure_root(self) -> None:
        """创建下载目录，失败时抛出 StorageError（启动阶段视为致命错误）"""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"无法创建下载目录 {self.root}: {e}") from e
        logger.info(f"下载目录: {self.root}")

    def list_artifacts(self) -> list[StoredArtifact]:
        """枚举下载目录中的所有文件和目录（单个条目读取失败时跳过）"""
        try:
            entries = list(self.root.iterdir())
        except OSError as e:
            raise StorageError(f"读取下载目录失败: {e}") from e

        artifacts = []
        for entry in entries:
            try:
                stat = entry.stat()
                is_dir = entry.is_dir()
                size = _dir_size(entry) if is_dir else stat.st_size
            except OSError as e:
                logger.warning(f"读取文件信息失败，跳过: {entry.name}, 错误: {e}")
                continue
            artifacts.append(
                StoredArtifact(
                    name=entry.name,
                    path=entry,
                    size=size,
                    modified_at=stat.st_mtime,
                    is_dir=is_dir,
                )
            )
        return artifacts

    def resolve(self, name: str) -> StoredArtifact:
        """
        按文件名定位可下载的文件

        Raises:
            NotFoundError: 文件不存在、不是普通文件或文件名越出下载目录
            StorageError: 读取文件信息失败
        """
        path = self._path_for(name)
        if not path.is_file() or path.resolve().parent != self.root:
            raise NotFoundError(f"文件不存在: {name}")
        try:
            stat = path.stat()
        except OSError as e:
            raise StorageError(f"读取文件信息失败: {name}, 错误: {e}") from e
        return StoredArtifact(
            name=path.name, path=path, size=stat.st_size, modified_at=stat.st_mtime
        )

    def delete(self, name: str) -> None:
        """删除文件或目录，失败时抛出 StorageError"""
        path = self._path_for(name)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            logger.debug(f"文件已不存在: {name}")
        except OSError as e:
            raise StorageError(f"删除文件失败: {name}, 错误: {e}") from e

    def _path_for(self, name: str) -> Path:
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise NotFoundError(f"非法文件名: {name}")
        return self.root / name
