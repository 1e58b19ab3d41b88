__all__ = [
    "ActiveApp",
    "BestMatch",
    "FocusDecision",
    "ListMatch",
    "LogEntry",
    "MatchResult",
    "MonitorConfig",
    "OcrText",
    "ProcessInfo",
    "SupportInfo",
]

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ActiveApp:
    """前面アプリの情報 (name はOSが返した元の名前)."""

    name: str
    pid: int = 0
    title: str = ""


@dataclass(frozen=True)
class ProcessInfo:
    """実行中プロセスの情報."""

    name: str
    pid: int
    memory_bytes: int = 0


@dataclass(frozen=True)
class SupportInfo:
    """Platform capability report from an app provider."""

    supported: bool
    capabilities: dict[str, bool] = field(default_factory=dict)
    error: str | None = None


@dataclass(frozen=True)
class MatchResult:
    candidate: str
    score: float
    normalized_candidate: str


@dataclass(frozen=True)
class BestMatch:
    match: str | None
    score: float
    normalized_target: str
    normalized_candidate: str = ""


@dataclass(frozen=True)
class ListMatch:
    is_match: bool
    matched_app: str | None
    score: float


@dataclass(frozen=True)
class FocusDecision:
    """Outcome of the allow/block policy for one active app."""

    is_focused: bool
    reason: str
    matched_app: str | None = None
    score: float = 0.0


@dataclass(frozen=True)
class OcrText:
    text: str
    confidence: float = 0.0


@dataclass(frozen=True)
class LogEntry:
    """監視チェック1回分の結果."""

    is_focused: bool
    reason: str
    active_app: str | None = None
    timestamp: float = field(default_factory=time.time)
    screenshot: str | None = None  # base64エンコードされたスクリーンショット
    ocr_text: str | None = None


@dataclass(frozen=True)
class MonitorConfig:
    """Snapshot of the monitor configuration read at each tick."""

    task_description: str = ""
    interval_seconds: float = 60
    allowed_apps: tuple[str, ...] = ()
    blocked_apps: tuple[str, ...] = ()
