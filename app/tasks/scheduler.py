"""
@description 下载调度循环
@responsibility 按固定间隔应用引擎事件、在并发上限内启动排队任务，并记录终态任务历史
"""

from loguru import logger

from app.core.config import SchedulerConfig
from app.services.download_manager import DownloadManager
from app.services.history import record_finished
from app.tasks.periodic import PeriodicTask


class DownloadScheduler(PeriodicTask):
    """调度主循环，单个协调者负责所有任务状态变更"""

    name = "下载调度循环"

    def __init__(self, manager: DownloadManager, config: SchedulerConfig):
        super().__init__(config.tick_interval)
        self._manager = manager

    async def run_once(self) -> None:
        await self.tick()

    async def tick(self) -> None:
        finished = self._manager.tick()
        if finished:
            logger.debug(f"本轮 {len(finished)} 个任务进入终态")
            await record_finished(finished)
