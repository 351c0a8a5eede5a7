"""
@description 下载任务管理器测试
@responsibility 验证提交校验、并发上限、FIFO 调度、取消和引擎事件处理
"""

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.services.download_manager import DownloadManager

LOCATOR_A = "magnet:?xt=urn:btih:AAA"
LOCATOR_B = "magnet:?xt=urn:btih:BBB"


def _statuses(manager):
    return {view.id: view.status for view in manager.snapshot()}


def _finish(session, name="movie.mkv", size=1000):
    session.listener.on_ready(name, size)
    session.listener.on_progress(size, size)
    session.listener.on_done()


class TestSubmit:
    """测试任务提交"""

    @pytest.mark.parametrize("locator", ["", "   ", None, "http://example.com/a"])
    def test_invalid_locator_rejected(self, manager, locator):
        with pytest.raises(ValidationError):
            manager.submit(locator)

        assert manager.snapshot() == []
        assert manager.queued_count == 0

    def test_submit_creates_queued_task(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)

        assert task.status.value == "queued"
        assert manager.queued_count == 1
        assert fake_engine.add_calls == 0

    def test_duplicate_locators_get_independent_ids(self, manager):
        first = manager.submit(LOCATOR_A)
        second = manager.submit(LOCATOR_A)

        assert first.id != second.id
        assert len(manager.snapshot()) == 2

    def test_invalid_max_concurrent(self, fake_engine, tmp_path):
        with pytest.raises(ValueError):
            DownloadManager(fake_engine, tmp_path, max_concurrent=0)


class TestConcurrencyCap:
    """测试并发上限与 FIFO 调度"""

    def test_only_cap_tasks_become_active(self, manager, fake_engine):
        tasks = [manager.submit(f"magnet:?xt=urn:btih:{i}") for i in range(5)]

        manager.tick()

        statuses = _statuses(manager)
        assert [statuses[t.id] for t in tasks] == [
            "active",
            "active",
            "active",
            "queued",
            "queued",
        ]
        assert manager.active_count == 3
        assert fake_engine.add_calls == 3

        manager.tick()
        assert manager.active_count == 3
        assert fake_engine.add_calls == 3

    def test_second_task_waits_for_first(self, fake_engine, tmp_path):
        manager = DownloadManager(fake_engine, tmp_path, max_concurrent=1)
        task_a = manager.submit(LOCATOR_A)
        task_b = manager.submit(LOCATOR_B)

        manager.tick()
        assert _statuses(manager) == {task_a.id: "active", task_b.id: "queued"}

        manager.tick()
        assert _statuses(manager)[task_b.id] == "queued"

        _finish(fake_engine.session_for(LOCATOR_A))
        manager.tick()

        statuses = _statuses(manager)
        assert statuses[task_a.id] == "completed"
        assert statuses[task_b.id] == "active"
        assert manager.active_count == 1

    def test_start_failure_does_not_consume_slot(self, manager, fake_engine):
        fake_engine.rejected_locators.add(LOCATOR_A)
        bad = manager.submit(LOCATOR_A)
        good = manager.submit(LOCATOR_B)

        finished = manager.tick()

        view = manager.get(bad.id)
        assert view.status == "failed"
        assert "拒绝" in view.error_message
        assert finished == [bad]
        assert manager.get(good.id).status == "active"
        assert manager.active_count == 1

    def test_empty_queue_tick_is_noop(self, manager, fake_engine):
        assert manager.tick() == []
        assert fake_engine.add_calls == 0


class TestEngineEvents:
    """测试引擎回调事件的处理"""

    def test_ready_and_progress(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)

        session.listener.on_ready("movie.mkv", 200)
        session.listener.on_progress(50, 200)
        manager.tick()

        view = manager.get(task.id)
        assert view.artifact_name == "movie.mkv"
        assert view.artifact_size == 200
        assert view.progress == 25

        session.listener.on_progress(10, 200)
        manager.tick()
        assert manager.get(task.id).progress == 25

    def test_events_are_applied_on_tick_only(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()

        fake_engine.session_for(LOCATOR_A).listener.on_ready("movie.mkv", 200)

        assert manager.get(task.id).artifact_name is None
        manager.tick()
        assert manager.get(task.id).artifact_name == "movie.mkv"

    def test_completion(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)

        _finish(session, name="my movie.mkv", size=1000)
        finished = manager.tick()

        view = manager.get(task.id)
        assert finished == [task]
        assert view.status == "completed"
        assert view.progress == 100
        assert view.artifact_location == "/api/files/my%20movie.mkv"
        assert view.download_rate is None
        assert manager.active_count == 0
        assert session.removed
        assert task.transfer_handle is None

    def test_directory_artifact_has_no_download_location(
        self, manager, fake_engine, store
    ):
        """多文件种子完成后没有单文件下载地址"""
        (store.root / "album").mkdir()
        task = manager.submit(LOCATOR_A)
        manager.tick()

        _finish(fake_engine.session_for(LOCATOR_A), name="album", size=30)
        manager.tick()

        view = manager.get(task.id)
        assert view.status == "completed"
        assert view.progress == 100
        assert view.artifact_name == "album"
        assert view.artifact_location is None
        assert manager.active_count == 0

    def test_runtime_failure(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)

        session.listener.on_error("tracker 无响应")
        manager.tick()

        view = manager.get(task.id)
        assert view.status == "failed"
        assert view.error_message == "tracker 无响应"
        assert manager.active_count == 0
        assert session.removed

    def test_done_without_metadata_fails(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()

        fake_engine.session_for(LOCATOR_A).listener.on_done()
        manager.tick()

        assert manager.get(task.id).status == "failed"
        assert manager.active_count == 0

    def test_duplicate_terminal_events_release_once(self, manager, fake_engine):
        manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)

        _finish(session)
        session.listener.on_error("迟到的错误")
        session.listener.on_done()
        manager.tick()

        assert manager.active_count == 0
        assert fake_engine.remove_calls == 1

    def test_telemetry_only_while_active(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        queued_view = manager.get(task.id)
        assert queued_view.download_rate is None

        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)
        session.download_rate = 2048.0
        session.eta_seconds = 30.0

        view = manager.get(task.id)
        assert view.download_rate == 2048.0
        assert view.eta_seconds == 30.0

    @pytest.mark.parametrize("eta", [-1, float("inf"), float("nan")])
    def test_invalid_eta_reported_as_unknown(self, manager, fake_engine, eta):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)
        session.download_rate = 100.0
        session.eta_seconds = eta

        view = manager.get(task.id)
        assert view.download_rate == 100.0
        assert view.eta_seconds is None


class TestCancel:
    """测试任务取消"""

    def test_cancel_queued_never_starts_engine(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)

        manager.cancel(task.id)
        manager.tick()

        assert fake_engine.add_calls == 0
        assert manager.get(task.id) is None
        assert manager.queued_count == 0

    def test_cancel_active_releases_slot_once(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        session = fake_engine.session_for(LOCATOR_A)
        assert manager.active_count == 1

        manager.cancel(task.id)
        assert manager.active_count == 0
        assert session.removed

        # 取消后迟到的终态回调不能再次释放名额，也不能复活任务
        session.listener.on_done()
        session.listener.on_error("已被取消")
        assert manager.tick() == []

        assert manager.active_count == 0
        assert manager.get(task.id) is None
        assert fake_engine.remove_calls == 1

    def test_cancel_active_lets_next_task_start(self, fake_engine, tmp_path):
        manager = DownloadManager(fake_engine, tmp_path, max_concurrent=1)
        task_a = manager.submit(LOCATOR_A)
        task_b = manager.submit(LOCATOR_B)
        manager.tick()

        manager.cancel(task_a.id)
        manager.tick()

        assert manager.get(task_b.id).status == "active"
        assert manager.active_count == 1

    def test_cancel_unknown_raises_not_found(self, manager):
        with pytest.raises(NotFoundError):
            manager.cancel("no-such-task")

    def test_cancel_terminal_task_removes_record(self, manager, fake_engine):
        task = manager.submit(LOCATOR_A)
        manager.tick()
        _finish(fake_engine.session_for(LOCATOR_A))
        manager.tick()

        manager.cancel(task.id)

        assert manager.get(task.id) is None
        assert manager.active_count == 0


class TestSnapshot:
    """测试状态快照"""

    def test_snapshot_in_submission_order(self, manager):
        ids = [manager.submit(f"magnet:?xt=urn:btih:{i}").id for i in range(4)]

        assert [view.id for view in manager.snapshot()] == ids

    def test_snapshot_info_hash(self, manager):
        locator = "magnet:?xt=urn:btih:0123456789ABCDEF0123456789ABCDEF01234567&dn=x"
        manager.submit(locator)

        view = manager.snapshot()[0]
        assert view.info_hash == "0123456789abcdef0123456789abcdef01234567"

    def test_counts(self, manager, fake_engine):
        fake_engine.rejected_locators.add(LOCATOR_B)
        manager.submit(LOCATOR_A)
        manager.submit(LOCATOR_B)
        manager.submit("magnet:?xt=urn:btih:CCC")
        manager.tick()

        assert manager.counts() == {
            "queued": 0,
            "active": 2,
            "completed": 0,
            "failed": 1,
        }
