"""
@description 下载任务管理器
@responsibility 持有任务表和并发计数，负责提交、调度、取消、状态快照与引擎事件处理
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from queue import Empty, SimpleQueue
from typing import Optional

from loguru import logger

from app.core.errors import EngineRuntimeError, EngineStartError, NotFoundError
from app.services.admission_queue import AdmissionQueue
from app.services.engine_adapter import (
    EngineEvent,
    EventKind,
    TransferEngineAdapter,
)
from app.services.task_record import TaskRecord, TaskStatus
from app.services.transfer_engine import TransferEngine
from app.utils.helpers import artifact_url, parse_info_hash_from_magnet, validate_locator


@dataclass(frozen=True)
class TaskView:
    """任务的只读快照"""

    id: str
    locator: str
    info_hash: Optional[str]
    status: str
    progress: int
    artifact_name: Optional[str]
    artifact_size: Optional[int]
    artifact_location: Optional[str]
    error_message: Optional[str]
    created_at: datetime
    download_rate: Optional[float] = None
    eta_seconds: Optional[float] = None


class DownloadManager:
    """
    下载任务的唯一所有者

    任务表和活跃计数只在协调事件循环中修改；引擎回调线程只能通过
    post_event 投递事件，由 tick 统一应用，保证单写者。
    """

    def __init__(
        self, engine: TransferEngine, destination: Path, max_concurrent: int = 3
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent 必须大于等于 1")
        self._max_concurrent = max_concurrent
        self._tasks: dict[str, TaskRecord] = {}
        self._queue = AdmissionQueue()
        self._inbox: SimpleQueue[EngineEvent] = SimpleQueue()
        self._active_count = 0
        self._destination = Path(destination)
        self._adapter = TransferEngineAdapter(engine, destination, self.post_event)

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        return self._active_count

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    def submit(self, locator: Optional[str]) -> TaskRecord:
        """校验并登记新任务，返回排队中的任务记录"""
        locator = validate_locator(locator)
        task = TaskRecord(locator=locator)
        self._tasks[task.id] = task
        self._queue.enqueue(task)
        logger.info(f"任务已加入队列: {task.id}, 排队数 {len(self._queue)}")
        return task

    def cancel(self, task_id: str) -> TaskRecord:
        """
        取消并移除任务

        排队中的任务直接出队，不会触发引擎；活跃任务释放并发名额并尽力销毁引擎会话。

        Raises:
            NotFoundError: 任务不存在（调用方可视为无操作）
        """
        task = self._tasks.pop(task_id, None)
        if task is None:
            raise NotFoundError(f"任务不存在: {task_id}")

        if task.status is TaskStatus.QUEUED:
            self._queue.remove(task)
        elif task.status is TaskStatus.ACTIVE:
            handle = task.transfer_handle
            task.transfer_handle = None
            self._active_count -= 1
            self._adapter.cancel(handle)

        logger.info(f"任务已取消: {task_id} (status={task.status.value})")
        return task

    def post_event(self, event: EngineEvent) -> None:
        """供引擎线程调用，线程安全"""
        self._inbox.put(event)

    def tick(self) -> list[TaskRecord]:
        """应用待处理的引擎事件并按空闲名额启动排队任务，返回本轮进入终态的任务"""
        finished = self.process_events()
        finished.extend(self.promote())
        return finished

    def process_events(self) -> list[TaskRecord]:
        finished = []
        while True:
            try:
                event = self._inbox.get_nowait()
            except Empty:
                break
            task = self.apply_event(event)
            if task is not None:
                finished.append(task)
        return finished

    def promote(self) -> list[TaskRecord]:
        """在并发上限内按 FIFO 启动任务，返回启动失败的任务"""
        failed = []
        while self._active_count < self._max_concurrent:
            task = self._queue.dequeue_next()
            if task is None:
                break
            try:
                handle = self._adapter.start(task)
            except EngineStartError as e:
                task.fail(str(e))
                logger.error(f"任务启动失败: {task.id}, 错误: {e}")
                failed.append(task)
                continue
            task.activate(handle)
            self._active_count += 1
            logger.info(
                f"任务开始下载: {task.id} "
                f"({self._active_count}/{self._max_concurrent})"
            )
        return failed

    def apply_event(self, event: EngineEvent) -> Optional[TaskRecord]:
        """应用单个引擎事件，任务进入终态时返回该任务"""
        task = self._tasks.get(event.task_id)
        if task is None or task.transfer_handle is not event.handle:
            # 已取消/已清理的任务或旧会话的迟到回调
            logger.debug(f"忽略过期引擎事件: {event.kind.value} task_id={event.task_id}")
            return None

        if event.kind is EventKind.READY:
            task.set_artifact(event.name, event.size)
            logger.info(f"任务元数据就绪: {task.id}, 文件 {event.name} ({event.size} 字节)")
            return None

        if event.kind is EventKind.PROGRESS:
            task.update_progress(event.done or 0, event.total or 0)
            return None

        if event.kind is EventKind.DONE:
            if not task.artifact_name:
                handle = task.fail("引擎未报告文件信息")
                logger.error(f"任务完成但缺少文件信息: {task.id}")
            elif (self._destination / task.artifact_name).is_dir():
                # 多文件种子落地为目录，文件下载接口只提供单个文件
                handle = task.complete(None)
                logger.info(f"任务下载完成: {task.id}, 目录 {task.artifact_name}")
            else:
                handle = task.complete(artifact_url(task.artifact_name))
                logger.info(f"任务下载完成: {task.id}, 文件 {task.artifact_name}")
        else:
            error = EngineRuntimeError(event.message or "下载失败")
            handle = task.fail(str(error))
            logger.error(f"任务下载失败: {task.id}, 错误: {error}")

        self._active_count -= 1
        self._adapter.cancel(handle)
        return task

    def snapshot(self) -> list[TaskView]:
        """按提交顺序返回所有任务的只读视图"""
        return [self._view(task) for task in self._tasks.values()]

    def get(self, task_id: str) -> Optional[TaskView]:
        task = self._tasks.get(task_id)
        return self._view(task) if task is not None else None

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status.value] += 1
        return counts

    def active_artifact_names(self) -> set[str]:
        return {
            task.artifact_name
            for task in self._tasks.values()
            if task.status is TaskStatus.ACTIVE and task.artifact_name
        }

    def forget_artifact(self, name: str) -> list[str]:
        """移除文件名匹配的终态任务记录，返回被移除的任务 ID"""
        removed = [
            task_id
            for task_id, task in self._tasks.items()
            if task.status.is_terminal and task.artifact_name == name
        ]
        for task_id in removed:
            del self._tasks[task_id]
        return removed

    def forget_stale(self, threshold: datetime, present: set[str]) -> list[str]:
        """移除早于 threshold 结束且没有对应文件的终态任务记录"""
        removed = [
            task_id
            for task_id, task in self._tasks.items()
            if task.status.is_terminal
            and task.finished_at is not None
            and task.finished_at < threshold
            and task.artifact_name not in present
        ]
        for task_id in removed:
            del self._tasks[task_id]
        return removed

    def shutdown(self) -> None:
        """释放所有活跃任务的引擎会话"""
        for task in self._tasks.values():
            if task.status is TaskStatus.ACTIVE:
                self._adapter.cancel(task.transfer_handle)

    def _view(self, task: TaskRecord) -> TaskView:
        rate = eta = None
        if task.status is TaskStatus.ACTIVE:
            rate, eta = self._adapter.telemetry(task.transfer_handle)
        return TaskView(
            id=task.id,
            locator=task.locator,
            info_hash=parse_info_hash_from_magnet(task.locator),
            status=task.status.value,
            progress=task.progress,
            artifact_name=task.artifact_name,
            artifact_size=task.artifact_size,
            artifact_location=task.artifact_location,
            error_message=task.error_message,
            created_at=task.created_at,
            download_rate=rate,
            eta_seconds=eta,
        )
