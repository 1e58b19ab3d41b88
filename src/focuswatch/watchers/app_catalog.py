"""Running-application catalog built on top of an app provider.

起動中アプリの一覧を短時間キャッシュし, ブロック対象の検出や
アプリ名の候補表示に使う.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

from focuswatch.logger import logger
from focuswatch.matching.aliases import AliasTable
from focuswatch.matching.normalizer import normalize
from focuswatch.matching.resolver import find_all_matches, suggest_app_names
from focuswatch.matching.similarity import MATCH_THRESHOLD
from focuswatch.watchers.active_window import ActiveAppProvider

__all__ = ["AppCatalog", "RunningApp"]

CACHE_SECONDS = 2.0
BYTES_PER_MB = 1024 * 1024
TOP_MEMORY_APPS = 10


@dataclass(frozen=True)
class RunningApp:
    name: str  # 正規化済みの名前
    original_name: str
    pid: int
    is_active: bool = False
    title: str | None = None
    memory_mb: int = 0


class AppCatalog:
    def __init__(
        self,
        provider: ActiveAppProvider,
        aliases: AliasTable | None = None,
        cache_seconds: float = CACHE_SECONDS,
    ) -> None:
        self.provider = provider
        self.aliases = aliases
        self.cache_seconds = cache_seconds
        self._cached: list[RunningApp] = []
        self._fetched_at = 0.0

    def running_apps(self, *, use_cache: bool = True) -> list[RunningApp]:
        """Active app first, then other processes by memory usage (pid-unique)."""
        now = time.monotonic()
        if use_cache and self._cached and now - self._fetched_at < self.cache_seconds:
            return list(self._cached)

        active = self.provider.get_active_app()
        processes = sorted(
            self.provider.get_running_processes(),
            key=lambda p: p.memory_bytes,
            reverse=True,
        )

        apps: dict[int, RunningApp] = {}
        if active is not None and active.pid > 0:
            apps[active.pid] = RunningApp(
                name=normalize(active.name),
                original_name=active.name,
                pid=active.pid,
                is_active=True,
                title=active.title,
            )
        for proc in processes:
            memory_mb = round(proc.memory_bytes / BYTES_PER_MB)
            if proc.pid in apps:
                apps[proc.pid] = replace(apps[proc.pid], memory_mb=memory_mb)
                continue
            apps[proc.pid] = RunningApp(
                name=normalize(proc.name),
                original_name=proc.name,
                pid=proc.pid,
                memory_mb=memory_mb,
            )

        self._cached = list(apps.values())
        self._fetched_at = now
        logger.debug("App catalog refreshed | apps=%d", len(self._cached))
        return list(self._cached)

    def clear_cache(self) -> None:
        self._cached = []
        self._fetched_at = 0.0

    def find_matching_apps(
        self, target: str, running_apps: Sequence[RunningApp] | None = None
    ) -> list[tuple[RunningApp, float]]:
        apps = self.running_apps() if running_apps is None else list(running_apps)
        if not target or not apps:
            return []
        by_name = {app.original_name: app for app in reversed(apps)}
        matches = find_all_matches(
            target,
            list(dict.fromkeys(app.original_name for app in apps)),
            MATCH_THRESHOLD,
            self.aliases,
        )
        return [(by_name[m.candidate], m.score) for m in matches]

    def check_blocked_apps(
        self, blocked_apps: Sequence[str]
    ) -> list[tuple[RunningApp, str, float]]:
        """起動中のブロック対象アプリ (app, ブロック名, スコア) の一覧."""
        if not blocked_apps:
            return []
        apps = self.running_apps()
        detected = []
        for blocked in blocked_apps:
            for app, score in self.find_matching_apps(blocked, apps):
                detected.append((app, blocked, score))
        return detected

    def get_app_suggestions(
        self, partial: str, max_suggestions: int = 10
    ) -> list[dict[str, Any]]:
        apps = self.running_apps()
        by_name = {app.original_name: app for app in reversed(apps)}
        suggestions = suggest_app_names(
            partial,
            list(dict.fromkeys(app.original_name for app in apps)),
            max_suggestions,
            self.aliases,
        )
        return [
            {
                "name": s.normalized_candidate,
                "original_name": s.candidate,
                "pid": by_name[s.candidate].pid,
                "score": s.score,
            }
            for s in suggestions
        ]

    def get_app_statistics(self) -> dict[str, Any]:
        apps = self.running_apps()
        top = sorted(
            (app for app in apps if app.memory_mb > 0),
            key=lambda a: a.memory_mb,
            reverse=True,
        )[:TOP_MEMORY_APPS]
        return {
            "total_apps": len(apps),
            "total_memory_mb": sum(app.memory_mb for app in apps),
            "top_memory_apps": [
                {"name": app.original_name, "memory_mb": app.memory_mb} for app in top
            ],
            "unique_app_names": len({app.name for app in apps}),
        }
