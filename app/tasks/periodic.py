"""
@description 周期性后台任务基类
@responsibility 提供启动、停止和固定间隔循环，出错时记录日志并继续运行
"""

import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger


class PeriodicTask:
    """固定间隔执行 run_once 的后台任务"""

    name = "后台任务"

    def __init__(self, interval: float):
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.last_run_time: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        """启动后台任务"""
        if self.is_running:
            logger.warning(f"{self.name}已在运行中")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"{self.name}已启动")

    async def stop(self) -> None:
        """停止后台任务"""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning(f"等待{self.name}停止超时，强制取消")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info(f"{self.name}已停止")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
                self.last_run_time = datetime.now()
            except Exception as e:
                logger.error(f"{self.name}循环出错: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
