from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Any, Literal

from .clock import Clock
from .errors import NotAuthenticatedError, NotFoundError, ValidationError
from .models import (
    CRITERIA_TYPES,
    Commitment,
    Goal,
    Project,
    Target,
    Task,
    normalize_tags,
    normalize_total_poms,
)
from .progress import (
    ProgressUpdate,
    recalculate_affected,
    recalculate_daily_log,
    recalculate_for_task_change,
    recalculate_project,
    recalculate_target,
    with_status,
)
from .store import FocusFlowStore, new_id

logger = logging.getLogger(__name__)

MoveAction = Literal["postpone", "duplicate"]

_EDITABLE_TASK_FIELDS = {
    "text",
    "total_poms",
    "completed_poms",
    "due_date",
    "project_id",
    "tags",
    "custom_focus_duration",
    "custom_break_duration",
    "comments",
}
_EDITABLE_PROJECT_FIELDS = {
    "name",
    "deadline",
    "completion_criteria_type",
    "completion_criteria_value",
}
_EDITABLE_TARGET_FIELDS = {"text", "tags", "target_minutes", "start_date", "deadline"}


@dataclass(frozen=True)
class TaskChange:
    task: Task | None
    progress: ProgressUpdate


def _positive_or_none(value: Any, name: str) -> int | None:
    if value is None:
        return None
    number = int(value)
    if number <= 0:
        raise ValidationError(f"{name} 必须为正整数")
    return number


class Planner:
    def __init__(self, store: FocusFlowStore, clock: Clock) -> None:
        self.store = store
        self.clock = clock

    def _now(self) -> datetime:
        return self.clock.now()

    def _today(self) -> date:
        return self._now().date()

    def _require_user(self) -> None:
        if not self.store.is_authenticated:
            raise NotAuthenticatedError("未登录")

    def _require_task(self, task_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"task not found: {task_id}")
        return task

    def _require_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFoundError(f"project not found: {project_id}")
        return project

    def _require_target(self, target_id: str) -> Target:
        target = self.store.get_target(target_id)
        if target is None:
            raise NotFoundError(f"target not found: {target_id}")
        return target

    # -- tasks ----------------------------------------------------------

    def add_task(
        self,
        text: str,
        total_poms: int | None = 1,
        tomorrow: bool = False,
        project_id: str | None = None,
        tags: str | list[str] | tuple[str, ...] | None = None,
        custom_focus_duration: int | None = None,
        custom_break_duration: int | None = None,
    ) -> Task:
        self._require_user()
        clean_text = text.strip()
        if not clean_text:
            raise ValidationError("任务内容不能为空")
        if project_id is not None:
            self._require_project(project_id)

        due = self._today() + timedelta(days=1 if tomorrow else 0)
        task = Task(
            id=new_id(),
            text=clean_text,
            due_date=due,
            total_poms=normalize_total_poms(total_poms),
            project_id=project_id,
            tags=normalize_tags(tags),
            custom_focus_duration=_positive_or_none(custom_focus_duration, "custom_focus_duration"),
            custom_break_duration=_positive_or_none(custom_break_duration, "custom_break_duration"),
            task_order=self.store.next_task_order(due),
            created_at=self._now(),
        )
        created = self.store.insert_task(task)
        if created is None:
            raise NotAuthenticatedError("未登录")
        return created

    def update_task(self, task_id: str, **changes: Any) -> TaskChange:
        unknown = set(changes) - _EDITABLE_TASK_FIELDS
        if unknown:
            raise ValidationError(f"不可修改的字段: {', '.join(sorted(unknown))}")
        before = self._require_task(task_id)

        if "text" in changes:
            changes["text"] = str(changes["text"]).strip()
            if not changes["text"]:
                raise ValidationError("任务内容不能为空")
        if "total_poms" in changes:
            changes["total_poms"] = normalize_total_poms(changes["total_poms"])
        if "completed_poms" in changes:
            changes["completed_poms"] = max(0, int(changes["completed_poms"]))
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])
        if "comments" in changes:
            changes["comments"] = tuple(str(c) for c in changes["comments"] or ())
        for key in ("custom_focus_duration", "custom_break_duration"):
            if key in changes:
                changes[key] = _positive_or_none(changes[key], key)
        if changes.get("project_id") is not None:
            self._require_project(changes["project_id"])

        if "total_poms" in changes or "completed_poms" in changes:
            total = changes.get("total_poms", before.total_poms)
            done = changes.get("completed_poms", before.completed_poms)
            # Countdown tasks flip completion both ways when the numbers change.
            if total is not None:
                if done >= total and before.completed_at is None:
                    changes["completed_at"] = self._now()
                elif done < total and before.completed_at is not None:
                    changes["completed_at"] = None

        after = self.store.update_task(task_id, **changes)
        return TaskChange(task=after, progress=self._recalculate(before, after))

    def update_task_timers(
        self,
        task_id: str,
        focus: int | None,
        break_minutes: int | None,
    ) -> TaskChange:
        return self.update_task(
            task_id,
            custom_focus_duration=focus,
            custom_break_duration=break_minutes,
        )

    def complete_task(self, task_id: str) -> TaskChange:
        before = self._require_task(task_id)
        if before.is_completed:
            return TaskChange(task=before, progress=ProgressUpdate())
        after = self.store.update_task(task_id, completed_at=self._now())
        return TaskChange(task=after, progress=self._recalculate(before, after))

    def mark_task_incomplete(self, task_id: str) -> TaskChange:
        before = self._require_task(task_id)
        changes: dict[str, Any] = {
            "completed_at": None,
            "task_order": self.store.next_task_order(before.due_date),
        }
        if before.total_poms is not None and before.completed_poms >= before.total_poms:
            # Otherwise the next edit would immediately re-complete it.
            changes["total_poms"] = before.completed_poms + 1
        after = self.store.update_task(task_id, **changes)
        return TaskChange(task=after, progress=self._recalculate(before, after))

    def move_task(self, task_id: str, action: MoveAction) -> Task:
        original = self._require_task(task_id)
        tomorrow = self._today() + timedelta(days=1)
        order = self.store.next_task_order(tomorrow)

        if action == "postpone":
            moved = self.store.update_task(task_id, due_date=tomorrow, task_order=order)
            if moved is None:
                raise NotFoundError(f"task not found: {task_id}")
            return moved
        if action == "duplicate":
            copy = Task(
                id=new_id(),
                text=original.text,
                due_date=tomorrow,
                total_poms=original.total_poms,
                project_id=original.project_id,
                tags=original.tags,
                custom_focus_duration=original.custom_focus_duration,
                custom_break_duration=original.custom_break_duration,
                task_order=order,
                created_at=self._now(),
            )
            created = self.store.insert_task(copy)
            if created is None:
                raise NotAuthenticatedError("未登录")
            return created
        raise ValidationError(f"未知操作: {action}")

    def reorder_tasks(self, task_ids: list[str]) -> list[Task]:
        if len(set(task_ids)) != len(task_ids):
            raise ValidationError("任务顺序中存在重复 ID")
        for task_id in task_ids:
            self._require_task(task_id)
        reordered: list[Task] = []
        for index, task_id in enumerate(task_ids):
            task = self.store.update_task(task_id, task_order=index)
            if task is not None:
                reordered.append(task)
        return reordered

    def delete_task(self, task_id: str) -> ProgressUpdate:
        before = self._require_task(task_id)
        removed = self.store.delete_task(task_id)
        now = self._now()
        for day in sorted({r.ended_at.astimezone(now.tzinfo).date() for r in removed}):
            recalculate_daily_log(self.store, day, now.tzinfo)
        return self._recalculate(before, None)

    def delete_history(self, record_id: str) -> ProgressUpdate:
        record = self.store.get_history(record_id)
        if record is None:
            raise NotFoundError(f"history record not found: {record_id}")
        self.store.delete_history(record_id)
        now = self._now()
        recalculate_daily_log(self.store, record.ended_at.astimezone(now.tzinfo).date(), now.tzinfo)
        task = self.store.get_task(record.task_id) if record.task_id else None
        return self._recalculate(task, None)

    def _recalculate(self, before: Task | None, after: Task | None) -> ProgressUpdate:
        return recalculate_for_task_change(self.store, before, after, self._now())

    # -- projects -------------------------------------------------------

    def add_project(
        self,
        name: str,
        deadline: date | None = None,
        completion_criteria_type: str = "manual",
        completion_criteria_value: int | None = None,
    ) -> Project:
        self._require_user()
        clean = name.strip()
        if not clean:
            raise ValidationError("项目名称不能为空")
        self._check_criteria(completion_criteria_type, completion_criteria_value)
        project = Project(
            id=new_id(),
            name=clean,
            deadline=deadline,
            completion_criteria_type=completion_criteria_type,  # type: ignore[arg-type]
            completion_criteria_value=completion_criteria_value,
            created_at=self._now(),
        )
        created = self.store.insert_project(project)
        if created is None:
            raise NotAuthenticatedError("未登录")
        return recalculate_project(self.store, created.id, self._now()) or created

    def update_project(self, project_id: str, **changes: Any) -> Project:
        unknown = set(changes) - _EDITABLE_PROJECT_FIELDS
        if unknown:
            raise ValidationError(f"不可修改的字段: {', '.join(sorted(unknown))}")
        before = self._require_project(project_id)
        if "name" in changes:
            changes["name"] = str(changes["name"]).strip()
            if not changes["name"]:
                raise ValidationError("项目名称不能为空")
        self._check_criteria(
            changes.get("completion_criteria_type", before.completion_criteria_type),
            changes.get("completion_criteria_value", before.completion_criteria_value),
        )
        updated = self.store.update_project(project_id, **changes)
        if updated is None:
            raise NotFoundError(f"project not found: {project_id}")
        return recalculate_project(self.store, project_id, self._now()) or updated

    def set_project_completed(self, project_id: str, completed: bool) -> Project:
        project = self._require_project(project_id)
        updated = self.store.update_project(project_id, **with_status(project, completed, self._now()))
        if updated is None:
            raise NotFoundError(f"project not found: {project_id}")
        return updated

    def delete_project(self, project_id: str) -> None:
        self._require_project(project_id)
        self.store.delete_project(project_id)

    def recalculate_project(self, project_id: str) -> Project:
        self._require_project(project_id)
        project = recalculate_project(self.store, project_id, self._now())
        if project is None:
            raise NotFoundError(f"project not found: {project_id}")
        return project

    @staticmethod
    def _check_criteria(criteria_type: str, value: int | None) -> None:
        if criteria_type not in CRITERIA_TYPES:
            raise ValidationError(f"未知完成条件: {criteria_type}")
        if criteria_type != "manual" and (value is None or int(value) <= 0):
            raise ValidationError("自动完成条件需要正数阈值")

    # -- targets --------------------------------------------------------

    def add_target(
        self,
        text: str,
        tags: str | list[str] | tuple[str, ...],
        target_minutes: int,
        start_date: date | None = None,
        deadline: date | None = None,
    ) -> Target:
        self._require_user()
        clean = text.strip()
        if not clean:
            raise ValidationError("目标内容不能为空")
        clean_tags = normalize_tags(tags)
        if not clean_tags:
            raise ValidationError("目标至少需要一个标签")
        minutes = _positive_or_none(target_minutes, "target_minutes")
        target = Target(
            id=new_id(),
            text=clean,
            tags=clean_tags,
            target_minutes=int(minutes or 0),
            start_date=start_date,
            deadline=deadline,
            created_at=self._now(),
        )
        created = self.store.insert_target(target)
        if created is None:
            raise NotAuthenticatedError("未登录")
        return recalculate_target(self.store, created.id, self._now()) or created

    def update_target(self, target_id: str, **changes: Any) -> Target:
        unknown = set(changes) - _EDITABLE_TARGET_FIELDS
        if unknown:
            raise ValidationError(f"不可修改的字段: {', '.join(sorted(unknown))}")
        self._require_target(target_id)
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])
            if not changes["tags"]:
                raise ValidationError("目标至少需要一个标签")
        if "target_minutes" in changes:
            changes["target_minutes"] = _positive_or_none(changes["target_minutes"], "target_minutes")
        updated = self.store.update_target(target_id, **changes)
        if updated is None:
            raise NotFoundError(f"target not found: {target_id}")
        return recalculate_target(self.store, target_id, self._now()) or updated

    def set_target_completed(self, target_id: str, completed: bool) -> Target:
        target = self._require_target(target_id)
        stamp = (target.completed_at or self._now()) if completed else None
        updated = self.store.update_target(target_id, completed_at=stamp)
        if updated is None:
            raise NotFoundError(f"target not found: {target_id}")
        return updated

    def delete_target(self, target_id: str) -> None:
        self._require_target(target_id)
        self.store.delete_target(target_id)

    # -- goals & commitments -------------------------------------------

    def add_goal(self, text: str) -> Goal:
        self._require_user()
        if not text.strip():
            raise ValidationError("愿景内容不能为空")
        goal = self.store.insert_goal(text)
        if goal is None:
            raise NotAuthenticatedError("未登录")
        return goal

    def delete_goal(self, goal_id: str) -> None:
        if not self.store.delete_goal(goal_id):
            raise NotFoundError(f"goal not found: {goal_id}")

    def add_commitment(self, text: str, due_date: date | None = None) -> Commitment:
        self._require_user()
        if not text.strip():
            raise ValidationError("承诺内容不能为空")
        item = self.store.insert_commitment(text, due_date)
        if item is None:
            raise NotAuthenticatedError("未登录")
        return item

    def delete_commitment(self, commitment_id: str) -> None:
        if not self.store.delete_commitment(commitment_id):
            raise NotFoundError(f"commitment not found: {commitment_id}")

    def recalculate_tags(self, tags: list[str]) -> ProgressUpdate:
        return recalculate_affected(self.store, [], tags, self._now())
