"""
@description libtorrent 传输引擎封装
@responsibility 基于 libtorrent 会话实现 TransferEngine 接口，后台线程添加种子、轮询状态并触发回调
"""

import threading
from pathlib import Path
from typing import Optional

import libtorrent as lt
from loguru import logger

from app.core.config import EngineConfig
from app.core.errors import EngineStartError
from app.services.transfer_engine import TransferListener


class TorrentSession:
    """单个种子任务，实现 EngineSession 接口"""

    def __init__(self, params, listener: TransferListener):
        self.params = params
        self.listener = listener
        # 由轮询线程添加种子后赋值
        self.handle = None
        self.ready_notified = False
        self.last_done = -1
        self.finished = False
        self.removed = False

    def _status(self):
        if self.removed or self.handle is None:
            return None
        try:
            return self.handle.status()
        except RuntimeError:
            return None

    @property
    def download_rate(self) -> Optional[float]:
        status = self._status()
        if status is None or not status.has_metadata:
            return None
        return float(status.download_rate)

    @property
    def eta_seconds(self) -> Optional[float]:
        status = self._status()
        if status is None or not status.has_metadata or status.download_rate <= 0:
            return None
        remaining = status.total_wanted - status.total_wanted_done
        return remaining / status.download_rate


class LibtorrentEngine:
    """
    libtorrent 会话封装

    add 只解析磁力链接并登记任务，真正的 add_torrent 调用和所有回调都在轮询线程中执行，
    调度器所在的事件循环不会被引擎阻塞。
    """

    def __init__(self, config: EngineConfig):
        self._session = lt.session(
            {
                "listen_interfaces": config.listen_interfaces,
                "enable_dht": config.enable_dht,
                "enable_lsd": config.enable_lsd,
                "alert_mask": lt.alert.category_t.error_notification,
            }
        )
        self._poll_interval = config.poll_interval
        self._pending: list[TorrentSession] = []
        self._sessions: list[TorrentSession] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._poll_loop, name="torrent-poller", daemon=True
        )
        self._thread.start()
        logger.info(
            f"libtorrent 引擎已初始化 (版本 {lt.__version__}, "
            f"监听 {config.listen_interfaces}, DHT={config.enable_dht})"
        )

    def add(
        self, locator: str, destination: Path, listener: TransferListener
    ) -> TorrentSession:
        try:
            params = lt.parse_magnet_uri(locator)
        except Exception as e:
            raise EngineStartError(f"磁力链接解析失败: {e}") from e

        params.save_path = str(destination)
        session = TorrentSession(params, listener)
        with self._lock:
            self._pending.append(session)
        return session

    def remove(self, session: TorrentSession) -> None:
        """从会话中移除种子（保留已下载文件），重复调用无副作用"""
        with self._lock:
            if session.removed:
                return
            session.removed = True
            if session in self._pending:
                self._pending.remove(session)
            if session in self._sessions:
                self._sessions.remove(session)
            handle = session.handle

        # 尚未添加到 libtorrent 的任务由轮询线程在添加后清理
        if handle is not None:
            self._remove_handle(handle)

    def close(self) -> None:
        self._stop_event.set()
        self._thread.join(timeout=5.0)
        with self._lock:
            sessions = self._pending + self._sessions
        for session in sessions:
            self.remove(session)
        self._session.pause()
        logger.info("libtorrent 引擎已关闭")

    def _remove_handle(self, handle) -> None:
        try:
            self._session.remove_torrent(handle)
        except Exception as e:
            logger.warning(f"移除种子失败: {e}")

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            self._attach_pending()
            with self._lock:
                sessions = list(self._sessions)
            for session in sessions:
                try:
                    self._poll(session)
                except Exception as e:
                    logger.error(f"轮询种子状态出错: {e}")

    def _attach_pending(self) -> None:
        """把已登记的任务添加到 libtorrent 会话"""
        with self._lock:
            pending, self._pending = self._pending, []

        for session in pending:
            try:
                handle = self._session.add_torrent(session.params)
            except Exception as e:
                logger.error(f"添加种子失败: {e}")
                session.finished = True
                session.listener.on_error(f"添加种子失败: {e}")
                continue

            with self._lock:
                session.handle = handle
                if not session.removed:
                    self._sessions.append(session)
                    continue
            # 添加期间任务已被取消
            self._remove_handle(handle)

    def _poll(self, session: TorrentSession) -> None:
        status = session._status()
        if status is None or session.finished:
            return

        if status.errc.value() != 0:
            self._finish(session)
            session.listener.on_error(status.errc.message())
            return

        if not status.has_metadata:
            return

        if not session.ready_notified:
            session.ready_notified = True
            session.listener.on_ready(status.name, status.total_wanted)

        if status.total_wanted_done != session.last_done:
            session.last_done = status.total_wanted_done
            session.listener.on_progress(status.total_wanted_done, status.total_wanted)

        if status.is_finished or status.is_seeding:
            self._finish(session)
            session.listener.on_done()

    def _finish(self, session: TorrentSession) -> None:
        # 终态回调只触发一次，之后不再轮询
        session.finished = True
        with self._lock:
            if session in self._sessions:
                self._sessions.remove(session)
