from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Literal

Mode = Literal["focus", "break"]
CriteriaType = Literal["manual", "task_count", "duration_minutes"]
ProjectStatus = Literal["active", "completed", "due"]

MODES: tuple[str, ...] = ("focus", "break")
CRITERIA_TYPES: tuple[str, ...] = ("manual", "task_count", "duration_minutes")

DEFAULT_FOCUS_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5
DEFAULT_SESSIONS_PER_CYCLE = 2


def tag_key(tag: str) -> str:
    return tag.strip().lower()


def normalize_tags(raw: str | Iterable[str] | None) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        pieces = raw.split(",")
    else:
        pieces = list(raw)

    clean: list[str] = []
    seen: set[str] = set()
    for piece in pieces:
        tag = str(piece).strip()
        key = tag.lower()
        if not tag or key in seen:
            continue
        seen.add(key)
        clean.append(tag)
    return tuple(clean)


def tag_keys(tags: Iterable[str]) -> set[str]:
    return {tag_key(tag) for tag in tags if tag_key(tag)}


def normalize_total_poms(value: int | None) -> int | None:
    # None marks an open-ended (stopwatch) task.
    if value is None:
        return None
    count = int(value)
    return count if count > 0 else None


@dataclass(frozen=True)
class TimerState:
    mode: Mode = "focus"
    current_session: int = 1
    time_remaining: int = DEFAULT_FOCUS_MINUTES * 60
    session_total_time: int = DEFAULT_FOCUS_MINUTES * 60
    is_running: bool = False

    @property
    def is_pristine(self) -> bool:
        return not self.is_running and self.time_remaining == self.session_total_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "currentSession": self.current_session,
            "timeRemaining": self.time_remaining,
            "sessionTotalTime": self.session_total_time,
            "isRunning": self.is_running,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TimerState:
        mode = str(payload["mode"])
        if mode not in MODES:
            raise ValueError(f"unknown timer mode: {mode}")
        current_session = int(payload["currentSession"])
        time_remaining = int(payload["timeRemaining"])
        session_total_time = int(payload["sessionTotalTime"])
        if current_session < 1 or time_remaining < 0 or session_total_time < 0:
            raise ValueError("timer values out of range")
        return cls(
            mode=mode,  # type: ignore[arg-type]
            current_session=current_session,
            time_remaining=time_remaining,
            session_total_time=session_total_time,
            is_running=bool(payload["isRunning"]),
        )


@dataclass(frozen=True)
class Settings:
    focus_duration: int = DEFAULT_FOCUS_MINUTES
    break_duration: int = DEFAULT_BREAK_MINUTES
    sessions_per_cycle: int = DEFAULT_SESSIONS_PER_CYCLE


@dataclass(frozen=True)
class Task:
    id: str
    text: str
    due_date: date
    total_poms: int | None = 1
    completed_poms: int = 0
    completed_at: datetime | None = None
    project_id: str | None = None
    tags: tuple[str, ...] = ()
    custom_focus_duration: int | None = None
    custom_break_duration: int | None = None
    task_order: int | None = None
    comments: tuple[str, ...] = ()
    created_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def is_stopwatch(self) -> bool:
        return self.total_poms is None

    def reaches_target(self, completed_poms: int | None = None) -> bool:
        if self.total_poms is None:
            return False
        count = self.completed_poms if completed_poms is None else completed_poms
        return count >= self.total_poms


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    deadline: date | None = None
    completion_criteria_type: CriteriaType = "manual"
    completion_criteria_value: int | None = None
    progress_value: int = 0
    status: ProjectStatus = "active"
    completed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Target:
    id: str
    text: str
    tags: tuple[str, ...] = ()
    target_minutes: int = 60
    progress_minutes: int = 0
    start_date: date | None = None
    deadline: date | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Goal:
    id: str
    text: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Commitment:
    id: str
    text: str
    due_date: date | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class DailyLog:
    date: date
    completed_sessions: int = 0
    total_focus_minutes: int = 0


@dataclass(frozen=True)
class HistoryRecord:
    id: str
    task_id: str | None
    duration_minutes: int
    ended_at: datetime


def effective_focus_minutes(task: Task | None, settings: Settings) -> int:
    if task is not None and task.custom_focus_duration:
        return int(task.custom_focus_duration)
    return int(settings.focus_duration)


def effective_break_minutes(task: Task | None, settings: Settings) -> int:
    if task is not None and task.custom_break_duration:
        return int(task.custom_break_duration)
    return int(settings.break_duration)


@dataclass
class LocalCache:
    """Client-side copies of remote data, refreshed after each fetch."""

    settings: Settings = field(default_factory=Settings)
    tasks: list[Task] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    targets: list[Target] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    commitments: list[Commitment] = field(default_factory=list)
    todays_history: list[HistoryRecord] = field(default_factory=list)
    daily_log: DailyLog | None = None

    def tasks_today(self, today: date) -> list[Task]:
        return [t for t in self.tasks if t.due_date == today and not t.is_completed]

    def current_task(self, today: date) -> Task | None:
        pending = self.tasks_today(today)
        return pending[0] if pending else None

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def replace_task(self, task: Task) -> None:
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    def log_for(self, today: date) -> DailyLog:
        if self.daily_log is None or self.daily_log.date != today:
            return DailyLog(date=today)
        return self.daily_log

    def rebuild_log_from_history(self, today: date) -> DailyLog:
        log = replace(
            self.log_for(today),
            completed_sessions=len(self.todays_history),
            total_focus_minutes=sum(int(r.duration_minutes) for r in self.todays_history),
        )
        self.daily_log = log
        return log
