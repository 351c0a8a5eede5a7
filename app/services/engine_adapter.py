"""
@description 传输引擎适配层
@responsibility 启动/取消引擎会话，将引擎回调转换为任务状态迁移事件
"""

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from app.core.errors import EngineStartError
from app.services.task_record import TaskRecord
from app.services.transfer_engine import EngineSession, TransferEngine


class EventKind(str, Enum):
    READY = "ready"
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


@dataclass(eq=False)
class TransferHandle:
    """任务持有的引擎会话引用，同一任务每次启动都会生成新的句柄"""

    task_id: str
    session: Optional[EngineSession] = None
    released: bool = False


@dataclass(frozen=True)
class EngineEvent:
    kind: EventKind
    task_id: str
    handle: TransferHandle
    name: Optional[str] = None
    size: Optional[int] = None
    done: Optional[int] = None
    total: Optional[int] = None
    message: Optional[str] = None


EventSink = Callable[[EngineEvent], None]


class _HandleListener:
    """
    绑定到单个句柄的引擎回调

    回调只负责投递事件，不直接修改任务记录，真正的状态变更由调度器在事件循环中完成。
    """

    def __init__(self, handle: TransferHandle, sink: EventSink):
        self._handle = handle
        self._sink = sink

    def _post(self, kind: EventKind, **payload) -> None:
        self._sink(
            EngineEvent(
                kind=kind, task_id=self._handle.task_id, handle=self._handle, **payload
            )
        )

    def on_ready(self, name: str, size: int) -> None:
        self._post(EventKind.READY, name=name, size=size)

    def on_progress(self, done: int, total: int) -> None:
        self._post(EventKind.PROGRESS, done=done, total=total)

    def on_done(self) -> None:
        self._post(EventKind.DONE)

    def on_error(self, message: str) -> None:
        self._post(EventKind.ERROR, message=message)


def _normalize_metric(value: Optional[float]) -> Optional[float]:
    # 引擎尚无数据时可能给出负数、NaN 或无穷大，统一视为未知
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


class TransferEngineAdapter:
    """调度器与传输引擎之间的桥接"""

    def __init__(self, engine: TransferEngine, destination: Path, sink: EventSink):
        self._engine = engine
        self._destination = Path(destination)
        self._sink = sink

    def start(self, task: TaskRecord) -> TransferHandle:
        """请求引擎开始下载，失败时抛出 EngineStartError"""
        handle = TransferHandle(task_id=task.id)
        listener = _HandleListener(handle, self._sink)
        try:
            handle.session = self._engine.add(
                task.locator, self._destination, listener
            )
        except EngineStartError:
            raise
        except Exception as e:
            raise EngineStartError(f"引擎拒绝任务: {e}") from e
        logger.debug(f"引擎会话已创建: task_id={task.id}")
        return handle

    def cancel(self, handle: Optional[TransferHandle]) -> None:
        """尽力释放引擎资源，可重复调用，不抛出异常"""
        if handle is None or handle.released:
            return
        handle.released = True
        if handle.session is None:
            return
        try:
            self._engine.remove(handle.session)
        except Exception as e:
            logger.warning(f"释放引擎会话失败: task_id={handle.task_id}, 错误: {e}")

    def telemetry(
        self, handle: Optional[TransferHandle]
    ) -> tuple[Optional[float], Optional[float]]:
        """返回 (下载速度 bytes/s, 剩余时间秒)，无数据时为 None"""
        if handle is None or handle.released or handle.session is None:
            return None, None
        try:
            rate = handle.session.download_rate
            eta = handle.session.eta_seconds
        except Exception as e:
            logger.debug(f"读取传输速率失败: task_id={handle.task_id}, 错误: {e}")
            return None, None
        return _normalize_metric(rate), _normalize_metric(eta)
