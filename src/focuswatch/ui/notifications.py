import platform
import sys
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

from focuswatch.logger import logger
from focuswatch.model.models import LogEntry

if sys.platform == "win32":
    from win10toast import ToastNotifier  # type: ignore[import-untyped, unused-ignore]

APP_TITLE = "focuswatch"
TOAST_SECONDS = 5
HISTORY_LIMIT = 100


class NotificationLevel(Enum):
    """Notification severity levels used by the service."""

    INFO = "info"
    WARNING = "warning"
    URGENT = "urgent"


@dataclass
class NotificationConfig:
    """Configuration for :class:`NotificationService`."""

    sound: bool = False
    duration: int = TOAST_SECONDS


class NotificationService:
    """Desktop notification service with history tracking."""

    def __init__(self, config: NotificationConfig | None = None) -> None:
        self.platform = platform.system()
        self.config = config or NotificationConfig()
        self._history: deque[dict[str, Any]] = deque(maxlen=HISTORY_LIMIT)

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        *,
        sound: bool | None = None,
    ) -> bool:
        """Display a notification and record it.

        On Windows a toast is shown through ``win10toast``.  Elsewhere the
        notification is only recorded and ``False`` is returned.
        """
        sound = self.config.sound if sound is None else sound

        delivered = False
        if self.platform == "Windows":
            try:
                ToastNotifier().show_toast(  # pyright: ignore[reportUnknownMemberType]
                    title, message, duration=self.config.duration, threaded=True
                )
                delivered = True
            except Exception as exc:  # noqa: BLE001
                logger.warning("Toast notification failed: %s", exc)
        self._history.append(
            {
                "title": title,
                "message": message,
                "level": level.value,
                "sound": sound,
                "timestamp": time.time(),
                "delivered": delivered,
            },
        )
        return delivered

    def get_capabilities(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "supports_toast": self.platform == "Windows",
        }

    def get_notification_history(self) -> list[dict[str, Any]]:
        """Return a copy of the most recent notifications (oldest first)."""
        return list(self._history)

    def notify_distraction(self, entry: LogEntry, task_description: str) -> bool:
        """脱線を検出したときの介入通知. 集中中のエントリは通知しない."""
        if entry.is_focused:
            return False

        message_parts = []
        if entry.active_app:
            message_parts.append(f"Current: {entry.active_app}")
        message_parts.append(f"Task: {task_description}")
        message_parts.append(f"Reason: {entry.reason}")

        return self.notify(
            f"{APP_TITLE} - stay focused",
            "\n".join(message_parts),
            NotificationLevel.WARNING,
            sound=True,
        )
