"""Command line entry point.

- ``focuswatch run``: 監視をフォアグラウンドで実行 (Ctrl-Cで停止)
- ``focuswatch match``: 名前のマッチングスコアを確認
- ``focuswatch serve``: HTTP APIを起動
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import replace

from focuswatch.bootstrap import MonitorContext, build_context
from focuswatch.config import load_settings
from focuswatch.errors import ConfigError, UnsupportedError
from focuswatch.logger import logger
from focuswatch.matching.resolver import find_all_matches, find_best_match
from focuswatch.model.models import LogEntry, MonitorConfig


def _print_entry(entry: LogEntry) -> None:
    mark = "focused" if entry.is_focused else "DISTRACTED"
    print(f"[{mark}] {entry.active_app or '-'}: {entry.reason}")  # noqa: T201


def _print_summary(ctx: MonitorContext) -> None:
    stats = ctx.monitor.statistics_snapshot()
    print("\nStatistics:")  # noqa: T201
    print(f"  total checks:      {stats.total_checks}")  # noqa: T201
    print(f"  focused checks:    {stats.focused_checks}")  # noqa: T201
    print(f"  distracted checks: {stats.distracted_checks}")  # noqa: T201
    if stats.total_checks:
        print(f"  focus rate:        {stats.focus_rate:.0%}")  # noqa: T201


async def _run_until_interrupted(ctx: MonitorContext, config: MonitorConfig) -> None:
    ctx.monitor.start(config)
    try:
        while ctx.monitor.is_running:  # noqa: ASYNC110
            await asyncio.sleep(1)
    finally:
        await ctx.monitor.aclose()


def cmd_run(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.enable_ocr:
        settings = replace(settings, enable_ocr=True)
    ctx = build_context(settings, notify=not args.no_notify)
    ctx.monitor.add_result_callback(_print_entry)

    config = MonitorConfig(
        task_description=args.task,
        interval_seconds=args.interval or settings.interval_seconds,
        allowed_apps=tuple(args.allow),
        blocked_apps=tuple(args.block),
    )
    print(f"Monitoring every {config.interval_seconds}s: {config.task_description}")  # noqa: T201
    try:
        asyncio.run(_run_until_interrupted(ctx, config))
    except (ConfigError, UnsupportedError) as exc:
        print(f"error: {exc}", file=sys.stderr)  # noqa: T201
        return 2
    except KeyboardInterrupt:
        logger.info("Monitoring interrupted by user")
    _print_summary(ctx)
    return 0


def cmd_match(args: argparse.Namespace) -> int:
    best = find_best_match(args.target, args.candidates)
    for result in find_all_matches(args.target, args.candidates, args.threshold):
        print(f"{result.score:.3f}  {result.candidate}")  # noqa: T201
    if best.match is None:
        print("no match")  # noqa: T201
        return 1
    print(f"best: {best.match} ({best.score:.3f})")  # noqa: T201
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("focuswatch.api.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="focuswatch", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="monitor the foreground app")
    run.add_argument("--task", required=True, help="task you want to focus on")
    run.add_argument(
        "--interval", type=int, default=None, help="seconds between checks"
    )
    run.add_argument("--allow", action="append", default=[], help="allowed app")
    run.add_argument("--block", action="append", default=[], help="blocked app")
    run.add_argument("--enable-ocr", action="store_true", help="read screen text")
    run.add_argument(
        "--no-notify", action="store_true", help="disable desktop notifications"
    )
    run.set_defaults(func=cmd_run)

    match = sub.add_parser("match", help="score a name against candidates")
    match.add_argument("target")
    match.add_argument("candidates", nargs="+")
    match.add_argument("--threshold", type=float, default=0.3)
    match.set_defaults(func=cmd_match)

    serve = sub.add_parser("serve", help="start the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5577)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
