"""
@description 测试公共夹具
@responsibility 提供内存传输引擎、下载目录和任务管理器
"""

import pytest

from app.core.errors import EngineStartError
from app.services.artifact_store import ArtifactStore
from app.services.download_manager import DownloadManager


class FakeSession:
    """记录回调监听器的假引擎会话"""

    def __init__(self, locator, destination, listener):
        self.locator = locator
        self.destination = destination
        self.listener = listener
        self.download_rate = None
        self.eta_seconds = None
        self.removed = False


class FakeEngine:
    """内存传输引擎，测试中手动触发回调"""

    def __init__(self):
        self.sessions: list[FakeSession] = []
        self.rejected_locators: set[str] = set()
        self.add_calls = 0
        self.remove_calls = 0

    def add(self, locator, destination, listener):
        self.add_calls += 1
        if locator in self.rejected_locators:
            raise EngineStartError("引擎拒绝了该链接")
        session = FakeSession(locator, destination, listener)
        self.sessions.append(session)
        return session

    def remove(self, session):
        self.remove_calls += 1
        session.removed = True

    def close(self):
        pass

    def session_for(self, locator) -> FakeSession:
        for session in self.sessions:
            if session.locator == locator:
                return session
        raise KeyError(locator)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def store(tmp_path):
    artifact_store = ArtifactStore(tmp_path / "downloads")
    artifact_store.ensure_root()
    return artifact_store


@pytest.fixture
def manager(fake_engine, store):
    return DownloadManager(fake_engine, store.root, max_concurrent=3)
