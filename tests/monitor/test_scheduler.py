import asyncio
import threading
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from focuswatch.errors import ConfigError, MonitorNotRunningError, UnsupportedError
from focuswatch.model.models import ActiveApp, MonitorConfig, OcrText
from focuswatch.monitor.config_store import ConfigStore
from focuswatch.monitor.result_log import ResultLog
from focuswatch.monitor.scheduler import FocusMonitor, MonitorState

TICK = 0.01


async def wait_until(predicate, timeout=2.0):
    """条件が満たされるまでイベントループを回す"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met in time")
        await asyncio.sleep(TICK)


def _config(**overrides):
    values = {
        "task_description": "write the quarterly report",
        "interval_seconds": TICK,
        "allowed_apps": ("Visual Studio Code",),
        "blocked_apps": ("Slack",),
    }
    values.update(overrides)
    return MonitorConfig(**values)


@pytest.fixture
def store():
    return ConfigStore(_config())


@pytest.fixture
def single_tick(store):
    """1回目のチェックで間隔を60秒に延ばし, 2回目が走らないようにする"""

    def _slow_down():
        store.set_interval(60)

    return _slow_down


class TestStartStop:
    """開始・停止のテスト"""

    @pytest.mark.asyncio
    async def test_start_requires_task(self, fake_provider):
        monitor = FocusMonitor(fake_provider, ConfigStore())

        with pytest.raises(ConfigError):
            monitor.start()
        with pytest.raises(ConfigError):
            monitor.start(_config(task_description="   "))

        assert monitor.state is MonitorState.STOPPED

    @pytest.mark.asyncio
    async def test_rejected_config_is_not_stored(self, fake_provider, store):
        """不正な設定でstart()が失敗しても保存済みの設定は変わらない"""
        before = store.snapshot()
        monitor = FocusMonitor(fake_provider, store)

        with pytest.raises(ConfigError):
            monitor.start(_config(task_description="   ", blocked_apps=("Steam",)))

        assert store.snapshot() == before
        assert monitor.state is MonitorState.STOPPED

    @pytest.mark.asyncio
    async def test_start_requires_positive_interval(self, fake_provider):
        monitor = FocusMonitor(fake_provider)

        with pytest.raises(ConfigError):
            monitor.start(_config(interval_seconds=0))
        assert monitor.is_running is False

    @pytest.mark.asyncio
    async def test_start_unsupported_platform(self, provider_factory, store):
        monitor = FocusMonitor(provider_factory(supported=False), store)

        with pytest.raises(UnsupportedError, match="not supported"):
            monitor.start()
        assert monitor.state is MonitorState.STOPPED

    @pytest.mark.asyncio
    async def test_double_start_keeps_single_timer(self, fake_provider, store):
        """動作中の再start()は無視され, タイマーも増えない"""
        store.set_interval(60)
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()
        timer = monitor._timer

        monitor.start(_config(task_description="other task"))

        assert monitor._timer is timer
        assert monitor.state is MonitorState.SCHEDULED
        assert store.snapshot().task_description == "write the quarterly report"
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_check(self, fake_provider, store):
        store.set_interval(0.05)
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()
        monitor.stop()

        await asyncio.sleep(0.1)

        assert fake_provider.calls == 0
        assert monitor.state is MonitorState.STOPPED
        assert monitor.log_snapshot() == ()

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, fake_provider):
        monitor = FocusMonitor(fake_provider)
        monitor.stop()
        assert monitor.state is MonitorState.STOPPED

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, fake_provider, store, single_tick):
        fake_provider.on_call = single_tick
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()
        monitor.stop()
        store.set_interval(TICK)

        monitor.start()
        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()


class TestPeriodicCheck:
    """定期チェックのテスト"""

    @pytest.mark.asyncio
    async def test_check_records_result_and_rearms(
        self, fake_provider, store, single_tick
    ):
        fake_provider.on_call = single_tick
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert entry.active_app == "Code.exe"
        assert "Visual Studio Code" in entry.reason
        assert monitor.statistics_snapshot().total_checks == 1
        assert monitor.state is MonitorState.SCHEDULED
        assert monitor._timer is not None
        assert monitor.status()["last_check_time"] == entry.timestamp
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_distracted_result(self, provider_factory, store, single_tick):
        provider = provider_factory(ActiveApp(name="slack.exe", pid=7))
        provider.on_call = single_tick
        monitor = FocusMonitor(provider, store)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is False
        assert entry.reason.startswith("blocked application in use: Slack")
        assert monitor.statistics_snapshot().distracted_checks == 1
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_config_change_applies_on_next_tick(self, fake_provider, store):
        """2回目のチェックは変更後の設定で判定される"""
        calls = []

        def _on_call():
            calls.append(1)
            if len(calls) == 1:
                store.replace(_config(allowed_apps=(), blocked_apps=("code",)))
            else:
                store.set_interval(60)

        fake_provider.on_call = _on_call
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 2)

        first, second = monitor.log_snapshot()
        # 1回目はチェック開始時点の設定を使う
        assert first.is_focused is True
        assert second.is_focused is False
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_result_discarded_after_stop(self, fake_provider, store):
        """チェック中にstop()した場合, その結果は記録されない"""
        fake_provider.release = threading.Event()
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        await wait_until(lambda: monitor.state is MonitorState.CHECKING)
        monitor.stop()
        fake_provider.release.set()
        await monitor.aclose()

        assert monitor.log_snapshot() == ()
        assert monitor.statistics_snapshot().total_checks == 0
        assert monitor.state is MonitorState.STOPPED
        assert monitor._timer is None

    @pytest.mark.asyncio
    async def test_log_capacity(self, fake_provider, store):
        calls = []

        def _on_call():
            calls.append(1)
            if len(calls) >= 3:
                store.set_interval(60)

        fake_provider.on_call = _on_call
        monitor = FocusMonitor(fake_provider, store, result_log=ResultLog(capacity=2))
        monitor.start()

        await wait_until(lambda: monitor.statistics_snapshot().total_checks == 3)

        assert len(monitor.log_snapshot()) == 2
        await monitor.aclose()


class TestFailures:
    """外部呼び出しの失敗時のテスト"""

    @pytest.mark.asyncio
    async def test_provider_error_is_fail_open(self, fake_provider, store, single_tick):
        fake_provider.on_call = single_tick
        fake_provider.error = RuntimeError("boom")
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert entry.reason.startswith("check failed:")
        assert "boom" in entry.reason
        assert entry.active_app is None
        # 失敗しても監視は継続する
        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_provider_timeout(self, fake_provider, store, single_tick):
        fake_provider.on_call = single_tick
        fake_provider.release = threading.Event()
        monitor = FocusMonitor(fake_provider, store, check_timeout=0.05)
        monitor.start()

        try:
            await wait_until(lambda: len(monitor.log_snapshot()) == 1)
        finally:
            fake_provider.release.set()

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert "timed out" in entry.reason
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_callback_error_does_not_stop_monitoring(
        self, fake_provider, store, single_tick
    ):
        fake_provider.on_call = single_tick
        received = []
        monitor = FocusMonitor(fake_provider, store)
        monitor.add_result_callback(Mock(side_effect=RuntimeError("callback")))
        monitor.add_result_callback(received.append)
        monitor.start()

        await wait_until(lambda: len(received) == 1)

        assert received[0] == monitor.log_snapshot()[0]
        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_evaluation_error_is_fail_open(
        self, fake_provider, store, single_tick
    ):
        """判定処理の例外もプロバイダ失敗と同様に集中扱いで記録される"""
        fake_provider.on_call = single_tick
        monitor = FocusMonitor(fake_provider, store)

        with patch(
            "focuswatch.monitor.scheduler.evaluate",
            side_effect=ZeroDivisionError("division by zero"),
        ):
            monitor.start()
            await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert entry.reason.startswith("check failed: evaluation failed")
        assert monitor.statistics_snapshot().focused_checks == 1
        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_malformed_assessment_keeps_reason(
        self, fake_provider, store, single_tick
    ):
        """AI判定の値が不正でもチェックは完了し, 理由は元のまま"""
        fake_provider.on_call = single_tick
        augmenter = Mock()
        augmenter.assess.return_value = SimpleNamespace(
            is_focused=True, confidence=None, reason="x"
        )
        monitor = FocusMonitor(fake_provider, store, augmenter=augmenter)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert entry.reason == (
            "using allowed application: Visual Studio Code (match 100%)"
        )
        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_provider_result_does_not_wedge(
        self, fake_provider, store, single_tick
    ):
        """想定外の戻り値でも監視は止まらず, 停止後に再開できる"""
        fake_provider.on_call = single_tick
        fake_provider.app = object()
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        entry = monitor.log_snapshot()[0]
        assert entry.is_focused is True
        assert entry.reason.startswith("check failed:")
        assert monitor.state is MonitorState.SCHEDULED

        monitor.stop()
        monitor.start()
        assert monitor.state is MonitorState.SCHEDULED
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_manual_check_contains_unexpected_error(self, fake_provider, store):
        store.set_interval(60)
        fake_provider.app = object()
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert entry.is_focused is True
        assert entry.reason.startswith("check failed:")
        await monitor.aclose()


class TestManualCheck:
    """手動チェックのテスト"""

    @pytest.mark.asyncio
    async def test_requires_running_monitor(self, fake_provider, store):
        monitor = FocusMonitor(fake_provider, store)
        with pytest.raises(MonitorNotRunningError):
            await monitor.perform_manual_check()

    @pytest.mark.asyncio
    async def test_not_recorded(self, fake_provider, store):
        store.set_interval(60)
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert entry.is_focused is True
        assert entry.active_app == "Code.exe"
        assert monitor.log_snapshot() == ()
        assert monitor.statistics_snapshot().total_checks == 0
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_augmenter_refines_reason(self, provider_factory, store):
        """AI判定は理由を補足するだけで, 判定自体は変えない"""
        store.set_interval(60)
        augmenter = Mock()
        augmenter.assess.return_value = SimpleNamespace(
            is_focused=True, confidence=0.8, reason="chat during work"
        )
        monitor = FocusMonitor(
            provider_factory(ActiveApp(name="Slack", pid=9)), store, augmenter=augmenter
        )
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert entry.is_focused is False
        assert entry.reason == (
            "blocked application in use: Slack (match 100%)"
            " | AI: chat during work (confidence 80%)"
        )
        augmenter.assess.assert_called_once_with(
            "write the quarterly report", "Slack", None
        )
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_augmenter_failure_keeps_reason(self, fake_provider, store):
        store.set_interval(60)
        augmenter = Mock()
        augmenter.assess.side_effect = RuntimeError("llm down")
        monitor = FocusMonitor(fake_provider, store, augmenter=augmenter)
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert "AI:" not in entry.reason
        assert entry.is_focused is True
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_screen_text_attached(self, fake_provider, store):
        store.set_interval(60)
        screen = Mock()
        screen.capture_screen.return_value = "image"
        screen.extract_text.return_value = OcrText(text="quarterly report", confidence=0.9)
        screen.encode_base64.return_value = "aW1hZ2U="
        augmenter = Mock()
        augmenter.assess.return_value = None
        monitor = FocusMonitor(
            fake_provider,
            store,
            screen_text=screen,
            augmenter=augmenter,
            keep_screenshots=True,
        )
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert entry.ocr_text == "quarterly report"
        assert entry.screenshot == "aW1hZ2U="
        screen.extract_text.assert_called_once_with("image")
        augmenter.assess.assert_called_once_with(
            "write the quarterly report", "Code.exe", "quarterly report"
        )
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_screen_capture_failure_is_ignored(self, fake_provider, store):
        store.set_interval(60)
        screen = Mock()
        screen.capture_screen.side_effect = OSError("no display")
        monitor = FocusMonitor(fake_provider, store, screen_text=screen)
        monitor.start()

        entry = await monitor.perform_manual_check()

        assert entry.ocr_text is None
        assert entry.is_focused is True
        await monitor.aclose()


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_dict(self, fake_provider, store):
        store.set_interval(60)
        monitor = FocusMonitor(fake_provider, store)
        assert monitor.status() == {
            "state": "stopped",
            "is_running": False,
            "last_check_time": None,
            "interval_seconds": 60,
        }

        monitor.start()
        status = monitor.status()
        assert status["state"] == "scheduled"
        assert status["is_running"] is True
        await monitor.aclose()

    @pytest.mark.asyncio
    async def test_clear_logs_and_reset_statistics(
        self, fake_provider, store, single_tick
    ):
        fake_provider.on_call = single_tick
        monitor = FocusMonitor(fake_provider, store)
        monitor.start()
        await wait_until(lambda: len(monitor.log_snapshot()) == 1)

        monitor.clear_logs()
        assert monitor.log_snapshot() == ()
        # ログの削除は統計に影響しない
        assert monitor.statistics_snapshot().total_checks == 1

        monitor.reset_statistics()
        assert monitor.statistics_snapshot().total_checks == 0
        await monitor.aclose()
