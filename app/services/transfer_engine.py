"""
@description 传输引擎接口定义
@responsibility 约定调度器与具体传输引擎（如 libtorrent）之间的最小接口
"""

from pathlib import Path
from typing import Optional, Protocol


class TransferListener(Protocol):
    """引擎回调接口，回调可能在引擎内部线程中触发"""

    def on_ready(self, name: str, size: int) -> None: ...

    def on_progress(self, done: int, total: int) -> None: ...

    def on_done(self) -> None: ...

    def on_error(self, message: str) -> None: ...


class EngineSession(Protocol):
    """引擎侧的单个传输会话"""

    @property
    def download_rate(self) -> Optional[float]: ...

    @property
    def eta_seconds(self) -> Optional[float]: ...


class TransferEngine(Protocol):
    def add(
        self, locator: str, destination: Path, listener: TransferListener
    ) -> EngineSession:
        """开始传输，磁力链接非法或引擎拒绝时抛出 EngineStartError"""
        ...

    def remove(self, session: EngineSession) -> None: ...

    def close(self) -> None: ...
