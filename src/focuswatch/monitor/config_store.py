import threading
from dataclasses import replace

from focuswatch.errors import ConfigError
from focuswatch.model.models import MonitorConfig

__all__ = ["ConfigStore"]


class ConfigStore:
    """Caller-owned, mutable monitor configuration.

    監視ループは毎回 :meth:`snapshot` で最新の設定を読むので, 変更は次の
    チェックから反映される (チェック途中には反映されない).
    """

    def __init__(self, config: MonitorConfig | None = None) -> None:
        self._lock = threading.Lock()
        self._config = config or MonitorConfig()

    def snapshot(self) -> MonitorConfig:
        with self._lock:
            return self._config

    def replace(self, config: MonitorConfig) -> None:
        _check_interval(config.interval_seconds)
        with self._lock:
            self._config = config

    def set_task_description(self, description: str) -> None:
        with self._lock:
            self._config = replace(self._config, task_description=description)

    def set_interval(self, seconds: float) -> None:
        _check_interval(seconds)
        with self._lock:
            self._config = replace(self._config, interval_seconds=seconds)

    def add_allowed_app(self, app: str) -> None:
        with self._lock:
            if app not in self._config.allowed_apps:
                self._config = replace(
                    self._config, allowed_apps=(*self._config.allowed_apps, app)
                )

    def remove_allowed_app(self, app: str) -> None:
        with self._lock:
            self._config = replace(
                self._config,
                allowed_apps=tuple(a for a in self._config.allowed_apps if a != app),
            )

    def add_blocked_app(self, app: str) -> None:
        with self._lock:
            if app not in self._config.blocked_apps:
                self._config = replace(
                    self._config, blocked_apps=(*self._config.blocked_apps, app)
                )

    def remove_blocked_app(self, app: str) -> None:
        with self._lock:
            self._config = replace(
                self._config,
                blocked_apps=tuple(a for a in self._config.blocked_apps if a != app),
            )


def _check_interval(seconds: float) -> None:
    if seconds <= 0:
        msg = f"interval must be positive, got {seconds}"
        raise ConfigError(msg)
