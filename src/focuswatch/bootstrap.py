"""Application root: builds and wires the monitor and its collaborators."""

from dataclasses import dataclass

from focuswatch.api.services.llm import LLMService, create_llm_service
from focuswatch.config import Settings, load_settings
from focuswatch.logger import logger
from focuswatch.matching.aliases import AliasTable, load_aliases
from focuswatch.model.models import LogEntry, MonitorConfig
from focuswatch.monitor.config_store import ConfigStore
from focuswatch.monitor.scheduler import FocusMonitor
from focuswatch.ui.notifications import NotificationService
from focuswatch.watchers.active_window import ActiveAppProvider, create_app_provider
from focuswatch.watchers.app_catalog import AppCatalog

__all__ = ["MonitorContext", "build_context"]


@dataclass
class MonitorContext:
    settings: Settings
    config_store: ConfigStore
    monitor: FocusMonitor
    catalog: AppCatalog
    notifications: NotificationService


def build_context(
    settings: Settings | None = None,
    provider: ActiveAppProvider | None = None,
    *,
    notify: bool = True,
) -> MonitorContext:
    """設定から監視オブジェクト一式を組み立てる."""
    settings = settings or load_settings()
    provider = provider or create_app_provider()
    aliases: AliasTable | None = (
        load_aliases(settings.aliases_file) if settings.aliases_file else None
    )

    augmenter: LLMService | None = None
    if settings.llm_enabled:
        augmenter = create_llm_service(settings.llm_url, settings.llm_model)
        logger.info("AI decision augmenter enabled | model=%s", settings.llm_model)

    screen_text = None
    if settings.enable_ocr:
        # mss / tesseract は OCR 有効時のみ読み込む
        from focuswatch.watchers.screen_capture import ScreenCapture

        screen_text = ScreenCapture()

    config_store = ConfigStore(MonitorConfig(interval_seconds=settings.interval_seconds))
    monitor = FocusMonitor(
        provider,
        config_store,
        screen_text=screen_text,
        augmenter=augmenter,
        aliases=aliases,
        check_timeout=settings.check_timeout,
    )
    notifications = NotificationService()

    if notify:

        def _alert(entry: LogEntry) -> None:
            task = config_store.snapshot().task_description
            notifications.notify_distraction(entry, task)

        monitor.add_result_callback(_alert)

    return MonitorContext(
        settings=settings,
        config_store=config_store,
        monitor=monitor,
        catalog=AppCatalog(provider, aliases),
        notifications=notifications,
    )
