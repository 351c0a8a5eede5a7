"""
@description 下载任务排队队列
@responsibility 按提交顺序（FIFO）保存尚未开始的任务
"""

from collections import deque
from typing import Optional

from app.services.task_record import TaskRecord


class AdmissionQueue:
    """先进先出的待启动任务队列，不去重、无优先级"""

    def __init__(self):
        self._items: deque[TaskRecord] = deque()

    def enqueue(self, task: TaskRecord) -> None:
        self._items.append(task)

    def dequeue_next(self) -> Optional[TaskRecord]:
        """取出队首任务，队列为空时返回 None"""
        if not self._items:
            return None
        return self._items.popleft()

    def remove(self, task: TaskRecord) -> bool:
        """从队列中移除指定任务（用于取消排队中的任务）"""
        try:
            self._items.remove(task)
        except ValueError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, task: TaskRecord) -> bool:
        return task in self._items
