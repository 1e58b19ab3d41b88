"""Periodic focus monitoring loop.

状態遷移::

    STOPPED --start()--> SCHEDULED --timer--> CHECKING --完了--> SCHEDULED
       ^                     |                    |
       +-------stop()--------+--------stop()------+

Every armed timer and every check captures the generation counter at arm
time.  ``stop()`` bumps the generation, so a check that finishes after it
was cancelled is dropped instead of being written to the log.
"""

import asyncio
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol, TypeVar

from focuswatch.errors import (
    ConfigError,
    EvaluationError,
    MonitorNotRunningError,
    ProviderError,
    UnsupportedError,
)
from focuswatch.logger import logger
from focuswatch.matching.aliases import AliasTable
from focuswatch.model.models import (
    ActiveApp,
    FocusDecision,
    LogEntry,
    MonitorConfig,
    OcrText,
)
from focuswatch.monitor.config_store import ConfigStore
from focuswatch.monitor.evaluator import evaluate
from focuswatch.monitor.result_log import ResultLog, Statistics, StatisticsSnapshot
from focuswatch.watchers.active_window import ActiveAppProvider

__all__ = ["FocusMonitor", "MonitorState"]

T = TypeVar("T")

DEFAULT_CHECK_TIMEOUT = 10.0


class MonitorState(Enum):
    STOPPED = "stopped"
    SCHEDULED = "scheduled"
    CHECKING = "checking"


class ScreenTextProvider(Protocol):
    def capture_screen(self) -> Any: ...

    def extract_text(self, image: Any) -> OcrText: ...

    def encode_base64(self, image: Any) -> str: ...


class Assessment(Protocol):
    is_focused: bool
    confidence: float
    reason: str


class DecisionAugmenter(Protocol):
    def assess(
        self,
        task_description: str,
        active_app: str | None,
        screen_text: str | None = None,
    ) -> Assessment | None: ...


ResultCallback = Callable[[LogEntry], None]


class FocusMonitor:
    """Single-flight periodic focus checker.

    ``start`` and ``stop`` must be called while an asyncio loop is running;
    the timer and check tasks live on that loop.  ``stop`` only touches
    state under the lock, so it is also safe to call from another thread.
    """

    def __init__(
        self,
        provider: ActiveAppProvider,
        config_store: ConfigStore | None = None,
        *,
        result_log: ResultLog | None = None,
        statistics: Statistics | None = None,
        screen_text: ScreenTextProvider | None = None,
        augmenter: DecisionAugmenter | None = None,
        aliases: AliasTable | None = None,
        check_timeout: float = DEFAULT_CHECK_TIMEOUT,
        keep_screenshots: bool = False,
    ) -> None:
        self.provider = provider
        self.config_store = config_store or ConfigStore()
        self.result_log = result_log or ResultLog()
        self.statistics = statistics or Statistics()
        self.screen_text = screen_text
        self.augmenter = augmenter
        self.aliases = aliases
        self.check_timeout = check_timeout
        self.keep_screenshots = keep_screenshots

        self._lock = threading.Lock()
        self._state = MonitorState.STOPPED
        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._check_task: asyncio.Task[None] | None = None
        self._callbacks: list[ResultCallback] = []
        self.last_check_time: float | None = None

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def state(self) -> MonitorState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is not MonitorState.STOPPED

    def start(self, config: MonitorConfig | None = None) -> None:
        """監視を開始する. 既に動作中なら何もしない.

        Raises:
            ConfigError: タスク説明が空, または間隔が0以下
            UnsupportedError: アプリ検出が利用できないプラットフォーム

        """
        if self.is_running:
            logger.warning("Focus monitoring already running")
            return

        snapshot = config if config is not None else self.config_store.snapshot()
        if not snapshot.task_description.strip():
            msg = "task description is required"
            raise ConfigError(msg)
        if snapshot.interval_seconds <= 0:
            msg = f"interval must be positive, got {snapshot.interval_seconds}"
            raise ConfigError(msg)
        if config is not None:
            self.config_store.replace(config)

        support = self.provider.is_supported()
        if not support.supported:
            msg = support.error or "app detection not supported on this platform"
            raise UnsupportedError(msg)

        loop = asyncio.get_running_loop()
        with self._lock:
            if self._state is not MonitorState.STOPPED:
                return
            self._loop = loop
            self._generation += 1
            self._arm_locked(snapshot.interval_seconds)
            self._state = MonitorState.SCHEDULED

        logger.info(
            "Starting focus monitoring | interval=%s task=%s allowed=%s blocked=%s",
            snapshot.interval_seconds,
            snapshot.task_description,
            list(snapshot.allowed_apps),
            list(snapshot.blocked_apps),
        )

    def stop(self) -> None:
        """タイマーを取り消し, 実行中のチェック結果は破棄する."""
        with self._lock:
            if self._state is MonitorState.STOPPED:
                logger.warning("Focus monitoring not running")
                return
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            self._state = MonitorState.STOPPED
        logger.info("Stopping focus monitoring")

    async def aclose(self) -> None:
        """Stop and wait for an in-flight check to finish."""
        if self.is_running:
            self.stop()
        task = self._check_task
        if task is not None and not task.done():
            await task

    def add_result_callback(self, callback: ResultCallback) -> None:
        self._callbacks.append(callback)

    def status(self) -> dict[str, Any]:
        with self._lock:
            state = self._state
        return {
            "state": state.value,
            "is_running": state is not MonitorState.STOPPED,
            "last_check_time": self.last_check_time,
            "interval_seconds": self.config_store.snapshot().interval_seconds,
        }

    def statistics_snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return self.statistics.snapshot()

    def log_snapshot(self) -> tuple[LogEntry, ...]:
        with self._lock:
            return self.result_log.snapshot()

    def clear_logs(self) -> None:
        with self._lock:
            self.result_log.clear()

    def reset_statistics(self) -> None:
        with self._lock:
            self.statistics.reset()

    async def perform_manual_check(self) -> LogEntry:
        """Run the pipeline once now; the result is not recorded."""
        if not self.is_running:
            msg = "monitoring is not active"
            raise MonitorNotRunningError(msg)
        return await self._check(self.config_store.snapshot())

    # ------------------------------------------------------------------
    # Scheduling

    def _arm_locked(self, interval: float) -> None:
        assert self._loop is not None  # noqa: S101
        self._timer = self._loop.call_later(
            interval, self._on_timer, self._generation
        )

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            stale = generation != self._generation
            if stale or self._state is not MonitorState.SCHEDULED:
                return
            self._timer = None
            self._state = MonitorState.CHECKING
            config = self.config_store.snapshot()
            assert self._loop is not None  # noqa: S101
            self._check_task = self._loop.create_task(
                self._run_check(generation, config)
            )

    async def _run_check(self, generation: int, config: MonitorConfig) -> None:
        entry = await self._check(config)

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale check result | gen=%s", generation)
                return
            self.result_log.append(entry)
            self.statistics.record(is_focused=entry.is_focused)
            self.last_check_time = entry.timestamp
            self._state = MonitorState.SCHEDULED
            self._arm_locked(self.config_store.snapshot().interval_seconds)

        logger.info(
            "Focus check completed | focused=%s app=%s reason=%s",
            entry.is_focused,
            entry.active_app,
            entry.reason,
        )
        for callback in list(self._callbacks):
            try:
                callback(entry)
            except Exception:
                logger.exception("Result callback failed")

    # ------------------------------------------------------------------
    # Evaluation pipeline

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking collaborator call with the check timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args), timeout=self.check_timeout
        )

    async def _query_active_app(self) -> ActiveApp | None:
        try:
            return await self._call(self.provider.get_active_app)
        except TimeoutError as exc:
            msg = f"active app query timed out after {self.check_timeout}s"
            raise ProviderError(msg) from exc
        except ProviderError:
            raise
        except Exception as exc:
            msg = f"active app query failed: {exc}"
            raise ProviderError(msg) from exc

    async def _read_screen(self) -> tuple[OcrText | None, str | None]:
        if self.screen_text is None:
            return None, None
        try:
            image = await self._call(self.screen_text.capture_screen)
            ocr = await self._call(self.screen_text.extract_text, image)
            screenshot = None
            if self.keep_screenshots:
                screenshot = await self._call(self.screen_text.encode_base64, image)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Screen text unavailable: %s", exc)
            return None, None
        return ocr, screenshot

    async def _augment(
        self,
        decision: FocusDecision,
        config: MonitorConfig,
        app_name: str | None,
        ocr: OcrText | None,
    ) -> str:
        if self.augmenter is None or app_name is None:
            return decision.reason
        try:
            assessment = await self._call(
                self.augmenter.assess,
                config.task_description,
                app_name,
                ocr.text if ocr else None,
            )
            if assessment is None:
                return decision.reason
            return (
                f"{decision.reason} | AI: {assessment.reason} "
                f"(confidence {assessment.confidence:.0%})"
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Decision augmenter failed: %s", exc)
            return decision.reason

    async def _check(self, config: MonitorConfig) -> LogEntry:
        """Run one check; any fault inside it becomes a fail-open entry."""
        timestamp = time.time()
        try:
            return await self._perform_check(config, timestamp)
        except Exception as exc:
            logger.exception("Unexpected error during focus check")
            return _failed_entry(exc, timestamp)

    async def _perform_check(
        self, config: MonitorConfig, timestamp: float
    ) -> LogEntry:
        try:
            active = await self._query_active_app()
            app_name = active.name if active else None
            try:
                decision = evaluate(
                    app_name, config.allowed_apps, config.blocked_apps, self.aliases
                )
            except Exception as exc:
                msg = f"evaluation failed: {exc}"
                raise EvaluationError(msg) from exc
        except (ProviderError, EvaluationError) as exc:
            logger.error("Focus monitoring check failed: %s", exc)  # noqa: TRY400
            return _failed_entry(exc, timestamp)

        ocr, screenshot = await self._read_screen()
        reason = await self._augment(decision, config, app_name, ocr)
        return LogEntry(
            is_focused=decision.is_focused,
            reason=reason,
            active_app=app_name,
            timestamp=timestamp,
            screenshot=screenshot,
            ocr_text=ocr.text if ocr else None,
        )


def _failed_entry(exc: Exception, timestamp: float) -> LogEntry:
    # 判定できなかったチェックは集中扱い
    return LogEntry(is_focused=True, reason=f"check failed: {exc}", timestamp=timestamp)
