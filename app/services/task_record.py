"""
@description 下载任务记录与状态机
@responsibility 定义任务状态、进度计算及合法的状态迁移
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class TaskStatus(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


def _new_task_id() -> str:
    return str(uuid.uuid4())


@dataclass(eq=False)
class TaskRecord:
    """
    单个下载任务的调度单元

    状态只能向前迁移：
        queued -> active -> completed / failed
        queued -> failed（引擎启动失败）
    所有变更都在协调事件循环上执行，迁移方法返回 False 表示该事件已过期被忽略。
    """

    locator: str
    id: str = field(default_factory=_new_task_id)
    status: TaskStatus = TaskStatus.QUEUED
    progress: int = 0
    artifact_name: Optional[str] = None
    artifact_size: Optional[int] = None
    artifact_location: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    transfer_handle: Optional[Any] = field(default=None, repr=False)

    def activate(self, handle: Any) -> None:
        if self.status is not TaskStatus.QUEUED:
            raise RuntimeError(f"任务 {self.id} 状态为 {self.status.value}，无法启动")
        self.status = TaskStatus.ACTIVE
        self.transfer_handle = handle

    def set_artifact(self, name: str, size: int) -> bool:
        if self.status is not TaskStatus.ACTIVE:
            return False
        self.artifact_name = name
        self.artifact_size = size
        return True

    def update_progress(self, done: int, total: int) -> bool:
        """根据已传输字节数重新计算百分比，进度只增不减"""
        if self.status is not TaskStatus.ACTIVE or total <= 0:
            return False
        percent = min(100, max(0, round(done * 100 / total)))
        if percent > self.progress:
            self.progress = percent
        return True

    def complete(self, location: Optional[str]) -> Any:
        """标记完成并返回需要释放的传输句柄"""
        if self.status is not TaskStatus.ACTIVE:
            return None
        handle = self._release()
        self.status = TaskStatus.COMPLETED
        self.progress = 100
        self.artifact_location = location
        return handle

    def fail(self, message: str) -> Any:
        """标记失败并返回需要释放的传输句柄（queued 状态下没有句柄）"""
        if self.status.is_terminal:
            return None
        handle = self._release()
        self.status = TaskStatus.FAILED
        self.error_message = message
        return handle

    def _release(self) -> Any:
        handle = self.transfer_handle
        self.transfer_handle = None
        self.finished_at = datetime.now()
        return handle
