from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path

from .models import HistoryRecord, Task, tag_key
from .store import FocusFlowStore

TOP_TAG_COUNT = 5


@dataclass(frozen=True)
class StatsWindow:
    focus_minutes: int
    sessions: int
    completed_tasks: int


def format_minutes(minutes: int) -> str:
    total = max(0, int(minutes))
    hours, mins = divmod(total, 60)
    if hours > 0:
        return f"{hours}小时{mins:02d}分"
    return f"{mins}分钟"


def build_stats(store: FocusFlowStore, now: datetime | None = None) -> dict[str, StatsWindow]:
    ref = now or datetime.now().astimezone()
    if ref.tzinfo is None:
        ref = ref.astimezone()

    today_start = ref.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today_start - timedelta(days=today_start.weekday())
    last7_start = ref - timedelta(days=7)
    completed = store.list_completed_tasks()

    return {
        "today": _collect_window(store, completed, today_start, ref),
        "this_week": _collect_window(store, completed, week_start, ref),
        "last_7_days": _collect_window(store, completed, last7_start, ref),
    }


def generate_weekly_report(
    store: FocusFlowStore,
    out_dir: Path,
    now: datetime | None = None,
) -> Path:
    """Write a Markdown progress report covering the seven days up to ``now``."""
    ref = now or datetime.now().astimezone()
    if ref.tzinfo is None:
        ref = ref.astimezone()
    tz = ref.tzinfo

    start = ref - timedelta(days=7)
    first_day: date = start.date()
    last_day: date = ref.date()

    history = store.list_history(start, ref)
    tasks_by_id = {task.id: task for task in store.list_tasks()}
    window_tasks = store.list_tasks(first_day, last_day)
    done_tasks = [t for t in window_tasks if t.is_completed]
    open_tasks = [t for t in window_tasks if not t.is_completed]
    finished_projects = [
        p for p in store.list_projects()
        if p.completed_at is not None and start <= p.completed_at <= ref
    ]

    total_minutes = sum(int(r.duration_minutes) for r in history)
    day_totals = _day_totals(history, tz)
    tag_totals = _tag_totals(history, tasks_by_id)

    lines: list[str] = []
    lines.append(f"# FocusFlow 周报 {first_day.isoformat()} 至 {last_day.isoformat()}")
    lines.append("")
    lines.append(f"- 生成时间：{ref.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    lines.append("")

    lines.append("## 总览")
    lines.append(f"- 专注总时长：{format_minutes(total_minutes)}")
    lines.append(f"- 完成番茄数：{len(history)} 个")
    if window_tasks:
        rate = round(len(done_tasks) * 100 / len(window_tasks))
        lines.append(f"- 任务完成率：{rate}%（{len(done_tasks)}/{len(window_tasks)}）")
    else:
        lines.append("- 任务完成率：本周没有计划任务")
    if day_totals:
        best_day, best_minutes = max(day_totals.items(), key=lambda x: (x[1], x[0]))
        lines.append(f"- 最高效的一天：{best_day}（{format_minutes(best_minutes)}）")
    lines.append("")

    lines.append("## 完成的项目")
    if finished_projects:
        for project in finished_projects:
            lines.append(f"- {project.name}")
    else:
        lines.append("本周没有完成的项目。")
    lines.append("")

    lines.append("## 标签分布（前五）")
    if tag_totals:
        lines.append("| 标签 | 时长 |")
        lines.append("| --- | --- |")
        ranked = sorted(tag_totals.values(), key=lambda x: (-x[1], x[0]))
        for tag_name, minutes in ranked[:TOP_TAG_COUNT]:
            lines.append(f"| {tag_name} | {format_minutes(minutes)} |")
    else:
        lines.append("本周无标签数据。")
    lines.append("")

    lines.append("## 未完成的任务")
    if open_tasks:
        for task in open_tasks:
            lines.append(f"- {task.due_date.isoformat()} {task.text}（{_poms_label(task)}）")
    else:
        lines.append("全部完成，干得漂亮！")
    lines.append("")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / f"week-{last_day.isoformat()}.md"
    report_path.write_text("\n".join(lines), encoding="utf-8")
    return report_path


def _poms_label(task: Task) -> str:
    if task.total_poms is None:
        return f"{task.completed_poms} 个番茄"
    return f"{task.completed_poms}/{task.total_poms}"


def _day_totals(history: list[HistoryRecord], tz) -> dict[str, int]:
    totals: dict[str, int] = {}
    for record in history:
        day = record.ended_at.astimezone(tz).strftime("%Y-%m-%d")
        totals[day] = totals.get(day, 0) + int(record.duration_minutes)
    return totals


def _tag_totals(history: list[HistoryRecord], tasks_by_id: dict[str, Task]) -> dict[str, tuple[str, int]]:
    # Keyed case-insensitively; the first spelling seen is displayed.
    totals: dict[str, tuple[str, int]] = {}
    for record in history:
        task = tasks_by_id.get(record.task_id or "")
        if task is None:
            continue
        for tag in task.tags:
            key = tag_key(tag)
            label, minutes = totals.get(key, (tag, 0))
            totals[key] = (label, minutes + int(record.duration_minutes))
    return totals


def _collect_window(
    store: FocusFlowStore,
    completed: list[Task],
    start: datetime,
    end: datetime,
) -> StatsWindow:
    history = store.list_history(start, end)
    return StatsWindow(
        focus_minutes=sum(int(r.duration_minutes) for r in history),
        sessions=len(history),
        completed_tasks=sum(
            1 for t in completed if t.completed_at is not None and start <= t.completed_at < end
        ),
    )
