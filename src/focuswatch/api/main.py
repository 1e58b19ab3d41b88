"""FastAPI app exposing the focus monitor to presentation layers."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator

from focuswatch.bootstrap import MonitorContext, build_context
from focuswatch.errors import (
    ConfigError,
    MonitorNotRunningError,
    ProviderError,
    UnsupportedError,
)
from focuswatch.logger import logger
from focuswatch.model.models import MonitorConfig

MIN_INTERVAL_SECONDS = 10
MAX_INTERVAL_SECONDS = 600

router = APIRouter()


# --- Pydanticモデル定義 ---


class MonitorConfigUpdate(BaseModel):
    """監視設定の更新リクエスト."""

    task_description: str
    interval_seconds: int = Field(
        default=60, ge=MIN_INTERVAL_SECONDS, le=MAX_INTERVAL_SECONDS
    )
    allowed_apps: list[str] = Field(default_factory=list)
    blocked_apps: list[str] = Field(default_factory=list)

    @field_validator("task_description")
    @classmethod
    def task_must_not_be_empty(cls, v: str) -> str:
        """タスク説明が存在すること"""
        if not v or not v.strip():
            msg = "task_description must not be empty"
            raise ValueError(msg)
        return v.strip()

    @field_validator("allowed_apps", "blocked_apps")
    @classmethod
    def drop_blank_and_duplicates(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(app.strip() for app in v if app.strip()))


def _context(request: Request) -> MonitorContext:
    return request.app.state.context


def _config_dict(config: MonitorConfig) -> dict[str, Any]:
    return {
        "task_description": config.task_description,
        "interval_seconds": config.interval_seconds,
        "allowed_apps": list(config.allowed_apps),
        "blocked_apps": list(config.blocked_apps),
    }


# --- 監視の制御 ---


@router.post("/focus/config")
async def update_config(req: MonitorConfigUpdate, request: Request) -> dict[str, Any]:
    """監視設定を更新する. 動作中なら次のチェックから反映される."""
    ctx = _context(request)
    config = MonitorConfig(
        task_description=req.task_description,
        interval_seconds=req.interval_seconds,
        allowed_apps=tuple(req.allowed_apps),
        blocked_apps=tuple(req.blocked_apps),
    )
    ctx.config_store.replace(config)
    logger.info("Monitor config updated | task=%s", config.task_description)
    return {"ok": True, "config": _config_dict(config)}


@router.post("/focus/start")
async def start_monitoring(request: Request) -> dict[str, Any]:
    ctx = _context(request)
    try:
        ctx.monitor.start()
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except UnsupportedError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"ok": True, **ctx.monitor.status()}


@router.post("/focus/stop")
async def stop_monitoring(request: Request) -> dict[str, Any]:
    ctx = _context(request)
    ctx.monitor.stop()
    return {"ok": True, **ctx.monitor.status()}


@router.post("/focus/check")
async def manual_check(request: Request) -> dict[str, Any]:
    """手動で1回チェックする (ログ・統計には記録しない)."""
    ctx = _context(request)
    try:
        entry = await ctx.monitor.perform_manual_check()
    except MonitorNotRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return asdict(entry)


# --- 状態とログ ---


@router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    ctx = _context(request)
    stats = ctx.monitor.statistics_snapshot()
    return {
        **ctx.monitor.status(),
        "config": _config_dict(ctx.config_store.snapshot()),
        "statistics": {**asdict(stats), "focus_rate": stats.focus_rate},
    }


@router.get("/logs")
async def get_logs(
    request: Request, include_screenshots: bool = False  # noqa: FBT001, FBT002
) -> list[dict[str, Any]]:
    entries = []
    for entry in _context(request).monitor.log_snapshot():
        data = asdict(entry)
        if not include_screenshots:
            data.pop("screenshot")
        entries.append(data)
    return entries


@router.delete("/logs")
async def clear_logs(request: Request) -> dict[str, Any]:
    _context(request).monitor.clear_logs()
    return {"ok": True}


@router.post("/statistics/reset")
async def reset_statistics(request: Request) -> dict[str, Any]:
    _context(request).monitor.reset_statistics()
    return {"ok": True}


# --- 起動中アプリ (psutil呼び出しのためスレッドプールで実行) ---


def _provider_unavailable(exc: ProviderError) -> HTTPException:
    logger.warning("App provider unavailable: %s", exc)
    return HTTPException(status_code=503, detail=str(exc))


@router.get("/apps/running")
def get_running_apps(request: Request) -> list[dict[str, Any]]:
    try:
        apps = _context(request).catalog.running_apps()
    except ProviderError as exc:
        raise _provider_unavailable(exc) from exc
    return [asdict(app) for app in apps]


@router.get("/apps/suggestions")
def get_app_suggestions(
    request: Request, q: str, limit: int = Query(default=10, ge=1, le=50)
) -> list[dict[str, Any]]:
    try:
        return _context(request).catalog.get_app_suggestions(q, limit)
    except ProviderError as exc:
        raise _provider_unavailable(exc) from exc


@router.get("/apps/blocked")
def get_running_blocked_apps(request: Request) -> list[dict[str, Any]]:
    ctx = _context(request)
    blocked = ctx.config_store.snapshot().blocked_apps
    try:
        detected = ctx.catalog.check_blocked_apps(blocked)
    except ProviderError as exc:
        raise _provider_unavailable(exc) from exc
    return [
        {
            "app": app.original_name,
            "pid": app.pid,
            "blocked_app_name": blocked_name,
            "score": score,
        }
        for app, blocked_name, score in detected
    ]


@router.get("/apps/statistics")
def get_app_statistics(request: Request) -> dict[str, Any]:
    try:
        return _context(request).catalog.get_app_statistics()
    except ProviderError as exc:
        raise _provider_unavailable(exc) from exc


def create_app(context: MonitorContext | None = None) -> FastAPI:
    """FastAPIアプリを作成する. context省略時は起動時に環境から組み立てる."""
    app = FastAPI(
        title="focuswatch",
        description="Focus monitoring with fuzzy application matching",
    )
    app.include_router(router)
    app.state.context = context

    # Deprecated on_event usage is temporarily retained for simplicity.
    @app.on_event("startup")  # pyright: ignore[reportDeprecated]
    async def startup_event() -> None:
        if app.state.context is None:
            app.state.context = build_context()
        support = app.state.context.monitor.provider.is_supported()
        logger.info("App detection supported: %s", support.supported)

    @app.on_event("shutdown")  # pyright: ignore[reportDeprecated]
    async def shutdown_event() -> None:
        if app.state.context is not None:
            await app.state.context.monitor.aclose()

    return app


app = create_app()
