"""Foreground application providers, one per platform.

``get_active_app`` returns ``None`` when no foreground window can be
identified (locked screen, desktop focused, process vanished).  Genuine
faults such as a missing helper binary propagate as :class:`ProviderError`.
"""

import shutil
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from typing import Any, cast

import psutil

from focuswatch.errors import ProviderError
from focuswatch.logger import logger
from focuswatch.matching.normalizer import extract_app_name_from_title
from focuswatch.model.models import ActiveApp, ProcessInfo, SupportInfo

if sys.platform == "win32":
    import pywintypes  # pyright: ignore[reportMissingImports]
    import win32gui  # pyright: ignore[reportMissingImports]
    import win32process  # pyright: ignore[reportMissingImports]
else:  # pragma: no cover
    pywintypes = cast("Any", None)
    win32gui = cast("Any", None)
    win32process = cast("Any", None)

__all__ = [
    "ActiveAppProvider",
    "OsascriptAppProvider",
    "UnsupportedAppProvider",
    "Win32AppProvider",
    "XdotoolAppProvider",
    "create_app_provider",
]

SUBPROCESS_TIMEOUT = 3


class ActiveAppProvider(ABC):
    """Common interface for querying the foreground app and process list."""

    @abstractmethod
    def get_active_app(self) -> ActiveApp | None:
        """Return the foreground application, or None if there is none."""

    @abstractmethod
    def is_supported(self) -> SupportInfo:
        """Report whether this platform can detect the foreground app."""

    def get_running_processes(self) -> list[ProcessInfo]:
        """実行中プロセスの一覧 (psutilで取得)."""
        processes: list[ProcessInfo] = []
        for proc in psutil.process_iter(["pid", "name", "memory_info"]):
            info = proc.info
            name = (info.get("name") or "").strip()
            pid = int(info.get("pid") or 0)
            if not name or pid <= 0:
                continue
            memory = info.get("memory_info")
            processes.append(
                ProcessInfo(
                    name=name,
                    pid=pid,
                    memory_bytes=int(memory.rss) if memory else 0,
                )
            )
        return processes


def _process_name(pid: int) -> str | None:
    try:
        return psutil.Process(pid).name()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


def _active_app(name: str | None, pid: int, title: str) -> ActiveApp | None:
    app_name = name or extract_app_name_from_title(title)
    if not app_name:
        return None
    return ActiveApp(name=app_name, pid=pid, title=title)


class Win32AppProvider(ActiveAppProvider):
    """Windows環境での前面ウィンドウ取得 (pywin32 + psutil)."""

    def get_active_app(self) -> ActiveApp | None:
        hwnd = win32gui.GetForegroundWindow()
        if not hwnd:
            return None

        try:
            title = win32gui.GetWindowText(hwnd)
            _, pid = win32process.GetWindowThreadProcessId(hwnd)
        except pywintypes.error:
            return None

        return _active_app(_process_name(pid), pid, title)

    def is_supported(self) -> SupportInfo:
        available = win32gui is not None and win32process is not None
        return SupportInfo(
            supported=available,
            capabilities={"active_window": available, "process_list": True},
        )


def _run(command: list[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(  # noqa: S603
            command,
            capture_output=True,
            text=True,
            timeout=SUBPROCESS_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        msg = f"{command[0]} failed: {exc}"
        raise ProviderError(msg) from exc


class XdotoolAppProvider(ActiveAppProvider):
    """Linux (X11) provider backed by the ``xdotool`` command."""

    def get_active_app(self) -> ActiveApp | None:
        pid_result = _run(["xdotool", "getactivewindow", "getwindowpid"])
        if pid_result.returncode != 0:
            # アクティブウィンドウなし
            return None
        try:
            pid = int(pid_result.stdout.strip())
        except ValueError:
            return None

        title_result = _run(["xdotool", "getactivewindow", "getwindowname"])
        title = title_result.stdout.strip() if title_result.returncode == 0 else ""
        return _active_app(_process_name(pid), pid, title)

    def is_supported(self) -> SupportInfo:
        available = shutil.which("xdotool") is not None
        return SupportInfo(
            supported=available,
            capabilities={"active_window": available, "process_list": True},
            error=None if available else "xdotool not found",
        )


class OsascriptAppProvider(ActiveAppProvider):
    """macOS provider asking System Events for the frontmost process."""

    SCRIPT = (
        'tell application "System Events" to get name of first process '
        "whose frontmost is true"
    )

    def get_active_app(self) -> ActiveApp | None:
        result = _run(["osascript", "-e", self.SCRIPT])
        name = result.stdout.strip()
        if result.returncode != 0 or not name:
            return None
        pid = next(
            (p.pid for p in self.get_running_processes() if p.name == name),
            0,
        )
        return ActiveApp(name=name, pid=pid, title="")

    def is_supported(self) -> SupportInfo:
        available = shutil.which("osascript") is not None
        return SupportInfo(
            supported=available,
            capabilities={"active_window": available, "process_list": True},
            error=None if available else "osascript not found",
        )


class UnsupportedAppProvider(ActiveAppProvider):
    """Placeholder for platforms without foreground window detection."""

    def __init__(self, reason: str = "platform not supported") -> None:
        self.reason = reason

    def get_active_app(self) -> ActiveApp | None:
        return None

    def get_running_processes(self) -> list[ProcessInfo]:
        return []

    def is_supported(self) -> SupportInfo:
        return SupportInfo(
            supported=False,
            capabilities={"active_window": False, "process_list": False},
            error=self.reason,
        )


def create_app_provider(platform: str | None = None) -> ActiveAppProvider:
    """実行環境に合ったプロバイダを返す."""
    platform = platform or sys.platform
    if platform == "win32":
        provider: ActiveAppProvider = Win32AppProvider()
    elif platform == "darwin":
        provider = OsascriptAppProvider()
    elif platform.startswith("linux"):
        provider = XdotoolAppProvider()
    else:
        provider = UnsupportedAppProvider(f"platform not supported: {platform}")
    logger.info(
        "App provider selected | platform=%s provider=%s",
        platform,
        type(provider).__name__,
    )
    return provider


if __name__ == "__main__":  # pragma: no cover
    # テスト実行
    _provider = create_app_provider()
    for _ in range(3):
        logger.info("%s", _provider.get_active_app())
        time.sleep(1)
