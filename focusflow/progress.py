from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time as dtime, timedelta, tzinfo
import logging
from typing import Iterable

from .models import (
    DailyLog,
    HistoryRecord,
    Project,
    ProjectStatus,
    Target,
    Task,
    tag_keys,
)
from .store import FocusFlowStore

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    projects: list[Project] = field(default_factory=list)
    targets: list[Target] = field(default_factory=list)


def day_bounds(day: date, tz: tzinfo | None) -> tuple[datetime, datetime]:
    start = datetime.combine(day, dtime.min).replace(tzinfo=tz)
    if tz is None:
        start = start.astimezone()
    return start, start + timedelta(days=1)


def project_progress(
    project: Project,
    tasks: Iterable[Task],
    history: Iterable[HistoryRecord],
) -> int:
    completed_ids = {t.id for t in tasks if t.project_id == project.id and t.is_completed}
    if project.completion_criteria_type == "task_count":
        return len(completed_ids)
    if project.completion_criteria_type == "duration_minutes":
        return sum(int(r.duration_minutes) for r in history if r.task_id in completed_ids)
    return project.progress_value


def derive_project_status(project: Project, progress: int, today: date) -> ProjectStatus:
    threshold = project.completion_criteria_value
    if threshold is not None and progress >= threshold:
        return "completed"
    if project.deadline is not None and project.deadline < today:
        return "due"
    return "active"


def recalculate_project(
    store: FocusFlowStore,
    project_id: str,
    now: datetime,
) -> Project | None:
    project = store.get_project(project_id)
    if project is None or project.completion_criteria_type == "manual":
        return project

    tasks = store.list_tasks_for_project(project_id)
    history: list[HistoryRecord] = []
    if project.completion_criteria_type == "duration_minutes":
        history = store.list_history_for_tasks(t.id for t in tasks if t.is_completed)

    progress = project_progress(project, tasks, history)
    status = derive_project_status(project, progress, now.date())

    changes: dict[str, object] = {}
    if progress != project.progress_value:
        changes["progress_value"] = progress
    if status != project.status:
        changes["status"] = status
        if status == "completed":
            changes["completed_at"] = now
        elif project.completed_at is not None:
            changes["completed_at"] = None
    if not changes:
        return project

    logger.info("project %s progress=%s status=%s", project_id, progress, status)
    return store.update_project(project_id, **changes) or project


def target_start(target: Target, tz: tzinfo | None) -> datetime | None:
    if target.start_date is not None:
        return day_bounds(target.start_date, tz)[0]
    return target.created_at


def target_progress(
    target: Target,
    completed_tasks: Iterable[Task],
    history: Iterable[HistoryRecord],
    since: datetime | None,
) -> int:
    wanted = tag_keys(target.tags)
    linked = {t.id for t in completed_tasks if t.is_completed and wanted & tag_keys(t.tags)}
    total = 0
    for record in history:
        if record.task_id not in linked:
            continue
        if since is not None and record.ended_at < since:
            continue
        total += int(record.duration_minutes)
    return total


def recalculate_target(
    store: FocusFlowStore,
    target_id: str,
    now: datetime,
) -> Target | None:
    target = store.get_target(target_id)
    if target is None:
        return None

    since = target_start(target, now.tzinfo)
    wanted = tag_keys(target.tags)
    linked = [t for t in store.list_completed_tasks() if wanted & tag_keys(t.tags)]
    history = store.list_history_for_tasks((t.id for t in linked), since=since)
    progress = target_progress(target, linked, history, since)

    reached = progress >= target.target_minutes
    changes: dict[str, object] = {}
    if progress != target.progress_minutes:
        changes["progress_minutes"] = progress
    if reached and target.completed_at is None:
        changes["completed_at"] = now
    elif not reached and target.completed_at is not None:
        changes["completed_at"] = None
    if not changes:
        return target

    logger.info("target %s progress=%s minutes", target_id, progress)
    return store.update_target(target_id, **changes) or target


def recalculate_daily_log(store: FocusFlowStore, day: date, tz: tzinfo | None) -> DailyLog | None:
    if not store.is_authenticated:
        return None
    start, end = day_bounds(day, tz)
    history = store.list_history(start, end)
    log = DailyLog(
        date=day,
        completed_sessions=len(history),
        total_focus_minutes=sum(int(r.duration_minutes) for r in history),
    )
    store.upsert_daily_log(log)
    return log


def recalculate_affected(
    store: FocusFlowStore,
    project_ids: Iterable[str | None],
    tags: Iterable[str],
    now: datetime,
) -> ProgressUpdate:
    update = ProgressUpdate()
    for project_id in sorted({p for p in project_ids if p}):
        project = recalculate_project(store, project_id, now)
        if project is not None:
            update.projects.append(project)

    wanted = tag_keys(tags)
    if wanted:
        for target in store.list_targets():
            if wanted & tag_keys(target.tags):
                refreshed = recalculate_target(store, target.id, now)
                if refreshed is not None:
                    update.targets.append(refreshed)
    return update


def recalculate_for_task_change(
    store: FocusFlowStore,
    before: Task | None,
    after: Task | None,
    now: datetime,
) -> ProgressUpdate:
    """Recalculate everything either version of the task touches."""
    tasks = [t for t in (before, after) if t is not None]
    project_ids = [t.project_id for t in tasks]
    tags = [tag for t in tasks for tag in t.tags]
    return recalculate_affected(store, project_ids, tags, now)


def recalculate_all(store: FocusFlowStore, now: datetime) -> ProgressUpdate:
    update = ProgressUpdate()
    for project in store.list_projects():
        refreshed = recalculate_project(store, project.id, now)
        if refreshed is not None:
            update.projects.append(refreshed)
    for target in store.list_targets():
        refreshed = recalculate_target(store, target.id, now)
        if refreshed is not None:
            update.targets.append(refreshed)
    recalculate_daily_log(store, now.date(), now.tzinfo)
    return update


def with_status(project: Project, completed: bool, now: datetime) -> dict[str, object]:
    """Field changes for a manual completion toggle."""
    if completed:
        return {"status": "completed", "completed_at": project.completed_at or now}
    status = derive_project_status(replace(project, completion_criteria_value=None), 0, now.date())
    return {"status": status, "completed_at": None}
