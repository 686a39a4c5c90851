from __future__ import annotations

import argparse
from datetime import date, datetime, time as dtime
from pathlib import Path
import sys
from typing import TextIO

from .alerts import Alerts, Notifier, SoundPlayer
from .clock import Clock, RealClock
from .config import AppConfig, configure_logging
from .errors import FocusFlowError
from .exporting import export_history_csv
from .planner import Planner
from .progress import recalculate_all
from .reporting import build_stats, format_minutes, generate_weekly_report
from .session import FocusSession
from .snapshot import SlotStorage, SnapshotStore
from .store import FocusFlowStore
from .timer import SystemWakeLock, format_countdown


DEFAULT_OUT_DIR = Path(__file__).resolve().parent / "out"


def parse_since(value: str) -> datetime:
    text = value.strip()
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz is None:
        raise argparse.ArgumentTypeError("无法识别本地时区")

    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, dtime.min).replace(tzinfo=local_tz)

        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=local_tz)
        return dt
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"--since 格式错误：{value}，请使用 YYYY-MM-DD 或 ISO 日期时间"
        ) from exc


def build_parser(config: AppConfig | None = None) -> argparse.ArgumentParser:
    cfg = config or AppConfig.from_env()
    parser = argparse.ArgumentParser(
        prog="focusflow",
        description="FocusFlow：番茄钟专注计时、任务与目标追踪",
    )
    parser.add_argument("--db", default=str(cfg.db_path), help="SQLite 数据库路径")
    parser.add_argument("--state", default=str(cfg.state_path), help="本地计时器状态文件路径")
    parser.add_argument("--user", default=cfg.user_id, help="用户标识（默认读取 FOCUSFLOW_USER）")
    parser.add_argument("--log-level", default=cfg.log_level, help="日志级别，默认 WARNING")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="启动 HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="监听地址")
    serve_parser.add_argument("--port", type=int, default=8765, help="监听端口")

    start_parser = subparsers.add_parser("start", help="在终端运行番茄钟")
    start_parser.add_argument("--phases", type=int, default=2, help="自动连续运行的阶段数")
    start_parser.add_argument("--comment", default="", help="专注结束时附加的备注")
    start_parser.add_argument("--no-sound", action="store_true", help="禁用提示音")
    start_parser.add_argument("--notify", action="store_true", help="启用桌面通知")

    task_parser = subparsers.add_parser("task", help="管理任务")
    task_sub = task_parser.add_subparsers(dest="task_command", required=True)

    add_parser = task_sub.add_parser("add", help="新增任务")
    add_parser.add_argument("text", help="任务内容")
    add_parser.add_argument("--poms", type=int, default=1, help="计划番茄数，<=0 表示不限（秒表模式）")
    add_parser.add_argument("--tomorrow", action="store_true", help="安排到明天")
    add_parser.add_argument("--tags", default="", help="标签，逗号分隔")
    add_parser.add_argument("--project", default=None, help="所属项目 ID")
    add_parser.add_argument("--focus", type=int, default=None, help="自定义专注时长（分钟）")
    add_parser.add_argument("--break", dest="break_minutes", type=int, default=None, help="自定义休息时长（分钟）")

    list_parser = task_sub.add_parser("list", help="查看任务")
    list_parser.add_argument("--all", action="store_true", help="显示全部日期的任务")

    for name, help_text in (("done", "标记完成"), ("undo", "标记未完成"), ("delete", "删除任务")):
        sub = task_sub.add_parser(name, help=help_text)
        sub.add_argument("task_id", help="任务 ID")

    move_parser = task_sub.add_parser("move", help="推迟或复制到明天")
    move_parser.add_argument("task_id", help="任务 ID")
    move_parser.add_argument("--duplicate", action="store_true", help="复制而不是推迟")

    log_parser = subparsers.add_parser("log", help="查看番茄记录")
    log_parser.add_argument("--since", type=parse_since, default=None, help="起始时间")
    log_parser.add_argument("--limit", type=int, default=20, help="最多显示条数")

    subparsers.add_parser("stats", help="查看统计")

    report_parser = subparsers.add_parser("report", help="生成周报 Markdown")
    report_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 focusflow/out",
    )

    export_parser = subparsers.add_parser("export", help="导出 CSV")
    export_parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="输出目录，默认 focusflow/out",
    )

    subparsers.add_parser("recalc", help="重新计算项目、目标与今日记录")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "serve":
        return _handle_serve(args)

    store = FocusFlowStore(Path(args.db), user_id=args.user)
    if not store.is_authenticated:
        print("未设置用户：请使用 --user 或环境变量 FOCUSFLOW_USER。", file=sys.stderr)
        return 2

    try:
        if args.command == "start":
            return _handle_start(args, store, parser)
        if args.command == "task":
            return _handle_task(args, Planner(store, RealClock()))
        if args.command == "log":
            return _handle_log(args, store)
        if args.command == "stats":
            return _handle_stats(store)
        if args.command == "report":
            return _handle_report(args, store)
        if args.command == "export":
            return _handle_export(args, store)
        if args.command == "recalc":
            return _handle_recalc(store)
    except FocusFlowError as exc:
        print(f"操作失败：{exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


def _handle_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api.app import create_default_app

    config = AppConfig(
        db_path=Path(args.db),
        state_path=Path(args.state),
        user_id=args.user,
        log_level=args.log_level,
        dev_url=AppConfig.from_env().dev_url,
    )
    uvicorn.run(
        create_default_app(config),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )
    return 0


def _handle_start(args: argparse.Namespace, store: FocusFlowStore, parser: argparse.ArgumentParser) -> int:
    if args.phases < 1:
        parser.error("--phases 必须大于等于 1")

    session = FocusSession(
        store,
        SnapshotStore(SlotStorage(Path(args.state))),
        clock=RealClock(),
        alerts=Alerts(
            sounds=SoundPlayer(stream=sys.stdout, enabled=not args.no_sound),
            notifier=Notifier(stream=sys.stdout),
            notify=bool(args.notify),
        ),
        wake_lock=SystemWakeLock(),
    )
    session.fetch_data()
    return run_phases(session, session.clock, args.phases, comment=args.comment)


def run_phases(
    session: FocusSession,
    clock: Clock,
    phases: int,
    comment: str = "",
    out: TextIO | None = None,
) -> int:
    """Drive the session in the foreground; returns 130 when interrupted."""
    stream = out or sys.stdout
    finished = 0
    try:
        session.start()
        while True:
            clock.sleep(1.0)
            session.tick()
            state = session.timer.state
            label = "专注" if state.mode == "focus" else "休息"
            stream.write(f"\r{label} {format_countdown(state.time_remaining)}")
            stream.flush()

            prompt = session.prompt
            if prompt is None:
                continue
            stream.write(f"\n{prompt.title} {prompt.message}\n")
            finished += 1
            if finished >= phases:
                session.close()
                return 0
            session.continue_phase(comment if prompt.show_comment_box else "")
    except KeyboardInterrupt:
        session.stop()
        session.close()
        stream.write("\n已中断，计时器状态已保存。\n")
        return 130


def _handle_task(args: argparse.Namespace, planner: Planner) -> int:
    command = args.task_command
    if command == "add":
        task = planner.add_task(
            args.text,
            total_poms=args.poms,
            tomorrow=args.tomorrow,
            project_id=args.project,
            tags=args.tags,
            custom_focus_duration=args.focus,
            custom_break_duration=args.break_minutes,
        )
        print(f"已添加任务 {task.id}：{task.text}（{task.due_date.isoformat()}）")
        return 0
    if command == "list":
        today = planner.clock.now().date()
        tasks = planner.store.list_tasks() if args.all else planner.store.list_tasks(today, today)
        if not tasks:
            print("没有任务。")
            return 0
        for task in tasks:
            mark = "x" if task.is_completed else " "
            poms = f"{task.completed_poms}" if task.total_poms is None else f"{task.completed_poms}/{task.total_poms}"
            tags = ",".join(task.tags) or "-"
            print(f"[{mark}] {task.id} | {task.due_date.isoformat()} | {task.text} | 番茄 {poms} | 标签: {tags}")
        return 0
    if command == "done":
        planner.complete_task(args.task_id)
        print("任务已完成。")
        return 0
    if command == "undo":
        planner.mark_task_incomplete(args.task_id)
        print("任务已恢复为未完成。")
        return 0
    if command == "move":
        task = planner.move_task(args.task_id, "duplicate" if args.duplicate else "postpone")
        print(f"任务已安排到 {task.due_date.isoformat()}：{task.id}")
        return 0
    if command == "delete":
        planner.delete_task(args.task_id)
        print("任务及其番茄记录已删除。")
        return 0
    return 2


def _handle_log(args: argparse.Namespace, store: FocusFlowStore) -> int:
    history = store.list_history(start=args.since)
    if not history:
        print("没有匹配记录。")
        return 0

    tasks = {task.id: task for task in store.list_tasks()}
    for record in reversed(history[-args.limit:]):
        ended = record.ended_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        task = tasks.get(record.task_id or "")
        task_text = task.text if task else "-"
        print(f"{ended} | {format_minutes(record.duration_minutes)} | 任务: {task_text}")
    return 0


def _handle_stats(store: FocusFlowStore) -> int:
    stats = build_stats(store)
    mapping = [
        ("today", "今天"),
        ("this_week", "本周"),
        ("last_7_days", "最近 7 天"),
    ]

    for key, title in mapping:
        window = stats[key]
        print(f"[{title}]")
        print(f"专注时长: {format_minutes(window.focus_minutes)}")
        print(f"番茄数: {window.sessions} 个")
        print(f"完成任务: {window.completed_tasks} 个")
        print("")
    return 0


def _handle_report(args: argparse.Namespace, store: FocusFlowStore) -> int:
    report_path = generate_weekly_report(store=store, out_dir=Path(args.out_dir))
    print(f"周报已生成：{report_path}")
    return 0


def _handle_export(args: argparse.Namespace, store: FocusFlowStore) -> int:
    csv_path = export_history_csv(store=store, out_dir=Path(args.out_dir))
    print(f"CSV 已导出：{csv_path}")
    return 0


def _handle_recalc(store: FocusFlowStore) -> int:
    update = recalculate_all(store, RealClock().now())
    print(f"已重新计算 {len(update.projects)} 个项目、{len(update.targets)} 个目标。")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
