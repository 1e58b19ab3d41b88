import os
import tempfile
import threading

import pytest

# ログはテスト用の一時ディレクトリへ (focuswatch.logger の import 前に設定)
os.environ.setdefault("FOCUSWATCH_LOG_DIR", tempfile.mkdtemp(prefix="focuswatch-log-"))

from focuswatch.model.models import (  # noqa: E402
    ActiveApp,
    MonitorConfig,
    ProcessInfo,
    SupportInfo,
)
from focuswatch.monitor.config_store import ConfigStore  # noqa: E402
from focuswatch.watchers.active_window import ActiveAppProvider  # noqa: E402


class FakeAppProvider(ActiveAppProvider):
    """テスト用のアプリプロバイダ (前面アプリを差し替え可能)."""

    def __init__(
        self,
        app: ActiveApp | None = None,
        processes: list[ProcessInfo] | None = None,
        *,
        supported: bool = True,
    ) -> None:
        self.app = app
        self.processes = processes or []
        self.supported = supported
        self.calls = 0
        self.error: Exception | None = None
        self.release: threading.Event | None = None
        self.on_call = None

    def get_active_app(self) -> ActiveApp | None:
        self.calls += 1
        if self.on_call is not None:
            self.on_call()
        if self.release is not None:
            self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.app

    def get_running_processes(self) -> list[ProcessInfo]:
        return list(self.processes)

    def is_supported(self) -> SupportInfo:
        return SupportInfo(
            supported=self.supported,
            capabilities={"active_window": self.supported},
            error=None if self.supported else "not supported in tests",
        )


@pytest.fixture
def fake_provider():
    """VS Code が前面にあるプロバイダ"""
    return FakeAppProvider(ActiveApp(name="Code.exe", pid=100, title="main.py - Code"))


@pytest.fixture
def monitor_config():
    """テスト用の監視設定"""
    return MonitorConfig(
        task_description="write the quarterly report",
        interval_seconds=60,
        allowed_apps=("Visual Studio Code",),
        blocked_apps=("Slack",),
    )


@pytest.fixture
def config_store(monitor_config):
    return ConfigStore(monitor_config)


@pytest.fixture
def provider_factory():
    """FakeAppProvider のクラスそのもの (テストごとに組み立てる)"""
    return FakeAppProvider
