"""
@description 过期文件清理
@responsibility 删除超过保留时长的下载文件及其任务记录，单个文件失败不影响其余文件
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from loguru import logger

from app.core.config import RetentionConfig
from app.core.errors import StorageError
from app.services.artifact_store import ArtifactStore
from app.services.download_manager import DownloadManager
from app.tasks.periodic import PeriodicTask


@dataclass
class SweepResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dropped_tasks: list[str] = field(default_factory=list)


class RetentionSweeper(PeriodicTask):
    """按保留时长清理下载目录，默认每小时执行一次"""

    name = "过期文件清理任务"

    def __init__(
        self,
        manager: DownloadManager,
        store: ArtifactStore,
        config: RetentionConfig,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(config.sweep_interval)
        self._manager = manager
        self._store = store
        self._window = config.window_seconds
        self._clock = clock

    async def run_once(self) -> None:
        await self.sweep()

    async def sweep(self) -> SweepResult:
        """
        清理过期文件

        以文件修改时间判断是否过期；活跃任务正在写入的文件即使过期也不会删除。
        重复执行是安全的，没有新文件过期时不做任何操作。
        """
        result = SweepResult()
        threshold = self._clock() - self._window

        try:
            artifacts = await asyncio.to_thread(self._store.list_artifacts)
        except StorageError as e:
            logger.error(f"清理任务读取下载目录失败: {e}")
            return result

        present = set()
        for artifact in artifacts:
            if artifact.modified_at >= threshold:
                present.add(artifact.name)
                continue
            if artifact.name in self._manager.active_artifact_names():
                logger.debug(f"文件仍在下载中，跳过清理: {artifact.name}")
                present.add(artifact.name)
                continue

            try:
                await asyncio.to_thread(self._store.delete, artifact.name)
            except StorageError as e:
                logger.error(f"清理文件失败: {e}")
                result.failed.append(artifact.name)
                present.add(artifact.name)
                continue

            logger.info(f"已清理过期文件: {artifact.name}")
            result.deleted.append(artifact.name)
            result.dropped_tasks.extend(self._manager.forget_artifact(artifact.name))

        result.dropped_tasks.extend(
            self._manager.forget_stale(datetime.fromtimestamp(threshold), present)
        )

        if result.deleted or result.failed or result.dropped_tasks:
            logger.info(
                f"清理完成: 删除文件 {len(result.deleted)}, 失败 {len(result.failed)}, "
                f"移除任务 {len(result.dropped_tasks)}"
            )
        return result
