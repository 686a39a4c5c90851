from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class TimerStateOut(BaseModel):
    mode: Literal["focus", "break"]
    currentSession: int
    timeRemaining: int
    sessionTotalTime: int
    isRunning: bool
    display: str
    phaseEndTime: int | None = None
    currentTask: str | None = None
    completedSessions: int = 0
    totalFocusMinutes: int = 0
    prompt: PromptOut | None = None


class PromptOut(BaseModel):
    title: str
    message: str
    finished_mode: Literal["focus", "break"]
    next_mode: Literal["focus", "break"]
    show_comment_box: bool
    full_cycle: bool = False
    next_task_text: str | None = None


class ContinueRequest(BaseModel):
    comment: str = ""
    credit_task: bool = True


class VisibilityRequest(BaseModel):
    visible: bool


class SettingsIn(BaseModel):
    focus_duration: int = Field(ge=1)
    break_duration: int = Field(ge=1)
    sessions_per_cycle: int = Field(ge=1)


class SettingsOut(BaseModel):
    focus_duration: int
    break_duration: int
    sessions_per_cycle: int


class LoginRequest(BaseModel):
    user_id: str = Field(min_length=1)


class IdentityOut(BaseModel):
    authenticated: bool
    user_id: str | None = None


class TaskOut(BaseModel):
    id: str
    text: str
    due_date: date
    total_poms: int | None
    completed_poms: int
    completed_at: datetime | None = None
    project_id: str | None = None
    tags: list[str]
    custom_focus_duration: int | None = None
    custom_break_duration: int | None = None
    task_order: int | None = None
    comments: list[str]
    created_at: datetime | None = None


class TaskCreate(BaseModel):
    text: str = Field(min_length=1)
    total_poms: int | None = 1
    tomorrow: bool = False
    project_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    custom_focus_duration: int | None = None
    custom_break_duration: int | None = None


class TaskUpdate(BaseModel):
    text: str | None = None
    total_poms: int | None = None
    completed_poms: int | None = Field(default=None, ge=0)
    due_date: date | None = None
    project_id: str | None = None
    tags: list[str] | None = None
    custom_focus_duration: int | None = None
    custom_break_duration: int | None = None
    comments: list[str] | None = None


class TaskTimersUpdate(BaseModel):
    focus: int | None = None
    break_minutes: int | None = Field(default=None, alias="break")


class MoveRequest(BaseModel):
    action: Literal["postpone", "duplicate"]


class ReorderRequest(BaseModel):
    task_ids: list[str]


class ProjectOut(BaseModel):
    id: str
    name: str
    deadline: date | None = None
    completion_criteria_type: Literal["manual", "task_count", "duration_minutes"]
    completion_criteria_value: int | None = None
    progress_value: int
    status: Literal["active", "completed", "due"]
    completed_at: datetime | None = None
    created_at: datetime | None = None


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    deadline: date | None = None
    completion_criteria_type: Literal["manual", "task_count", "duration_minutes"] = "manual"
    completion_criteria_value: int | None = None


class ProjectUpdate(BaseModel):
    name: str | None = None
    deadline: date | None = None
    completion_criteria_type: Literal["manual", "task_count", "duration_minutes"] | None = None
    completion_criteria_value: int | None = None


class CompletionToggle(BaseModel):
    completed: bool


class TargetOut(BaseModel):
    id: str
    text: str
    tags: list[str]
    target_minutes: int
    progress_minutes: int
    start_date: date | None = None
    deadline: date | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


class TargetCreate(BaseModel):
    text: str = Field(min_length=1)
    tags: list[str] = Field(min_length=1)
    target_minutes: int = Field(ge=1)
    start_date: date | None = None
    deadline: date | None = None


class TargetUpdate(BaseModel):
    text: str | None = None
    tags: list[str] | None = None
    target_minutes: int | None = Field(default=None, ge=1)
    start_date: date | None = None
    deadline: date | None = None


class GoalOut(BaseModel):
    id: str
    text: str
    created_at: datetime | None = None


class GoalCreate(BaseModel):
    text: str = Field(min_length=1)


class CommitmentOut(BaseModel):
    id: str
    text: str
    due_date: date | None = None
    created_at: datetime | None = None


class CommitmentCreate(BaseModel):
    text: str = Field(min_length=1)
    due_date: date | None = None


class HistoryOut(BaseModel):
    id: str
    task_id: str | None = None
    duration_minutes: int
    ended_at: datetime


class DailyLogOut(BaseModel):
    day: date
    completed_sessions: int
    total_focus_minutes: int


class StatsWindowOut(BaseModel):
    focus_minutes: int
    sessions: int
    completed_tasks: int


class StatsOut(BaseModel):
    today: StatsWindowOut
    this_week: StatsWindowOut
    last_7_days: StatsWindowOut


class FileResult(BaseModel):
    path: str


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    state_path: str
    platform: str


TimerStateOut.model_rebuild()
