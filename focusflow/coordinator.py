from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
import logging
from threading import RLock
import uuid

from .alerts import Alerts
from .clock import Clock
from .errors import NoPendingPhaseError, StoreError
from .models import (
    DailyLog,
    HistoryRecord,
    LocalCache,
    Mode,
    Task,
    TimerState,
    effective_break_minutes,
    effective_focus_minutes,
)
from .progress import (
    ProgressUpdate,
    day_bounds,
    recalculate_daily_log,
    recalculate_for_task_change,
)
from .store import FocusFlowStore
from .timer import PhaseTimer

logger = logging.getLogger(__name__)

FULL_CYCLE_TITLE = "🎉 完整循环完成！"
FULL_CYCLE_MESSAGE = "恭喜！你完成了一个完整的专注循环。\n好好休息一下吧！"
FOCUS_DONE_TITLE = "⏰ 专注完成！"
FOCUS_DONE_MESSAGE = "干得漂亮！该休息一下了。"
BREAK_DONE_TITLE = "⏰ 休息结束！"
NO_TASK_MESSAGE = "添加一个新任务开始吧！"


@dataclass(frozen=True)
class CompletionPrompt:
    title: str
    message: str
    finished_mode: Mode
    next_mode: Mode
    show_comment_box: bool
    full_cycle: bool = False
    next_task_text: str | None = None


@dataclass(frozen=True)
class PendingFocus:
    """Local bookkeeping for a finished focus phase awaiting acknowledgment."""

    task_id: str | None
    duration_minutes: int
    ended_at: datetime
    provisional: HistoryRecord
    previous_log: DailyLog


@dataclass(frozen=True)
class ContinueResult:
    state: TimerState
    task: Task | None = None
    history: HistoryRecord | None = None
    rolled_back: bool = False
    progress: ProgressUpdate | None = None


class PhaseCompletionCoordinator:
    """Runs the expiry -> dialog -> next phase handshake.

    ``complete_phase`` is called once per expiry; it stops the timer,
    starts the repeating alert, applies the optimistic log update and
    returns the dialog to show. ``continue_phase`` is the dialog's
    continue button: it writes the task/history pair, rolls the task back
    if the history insert fails, and starts the next phase immediately.
    """

    def __init__(
        self,
        timer: PhaseTimer,
        store: FocusFlowStore,
        cache: LocalCache,
        clock: Clock,
        alerts: Alerts | None = None,
    ) -> None:
        self.timer = timer
        self.store = store
        self.cache = cache
        self.clock = clock
        self.alerts = alerts or Alerts()
        self._lock = RLock()
        self._prompt: CompletionPrompt | None = None
        self._pending_focus: PendingFocus | None = None
        self._finished_state: TimerState | None = None

    @property
    def prompt(self) -> CompletionPrompt | None:
        with self._lock:
            return self._prompt

    def complete_phase(self) -> CompletionPrompt | None:
        with self._lock:
            if self._prompt is not None:
                return None
            finished = self.timer.stop()
            now = self.clock.now()
            today = now.date()
            settings = self.cache.settings
            task = self.cache.current_task(today)

            if finished.mode == "focus":
                minutes = effective_focus_minutes(task, settings)
                previous_log = self.cache.log_for(today)
                provisional = HistoryRecord(
                    id=f"temp-{uuid.uuid4().hex}",
                    task_id=task.id if task else None,
                    duration_minutes=minutes,
                    ended_at=now,
                )
                self.cache.todays_history.append(provisional)
                self.cache.daily_log = replace(
                    previous_log,
                    completed_sessions=previous_log.completed_sessions + 1,
                    total_focus_minutes=previous_log.total_focus_minutes + minutes,
                )
                self._pending_focus = PendingFocus(
                    task_id=task.id if task else None,
                    duration_minutes=minutes,
                    ended_at=now,
                    provisional=provisional,
                    previous_log=previous_log,
                )
                full_cycle = finished.current_session >= settings.sessions_per_cycle
                prompt = CompletionPrompt(
                    title=FULL_CYCLE_TITLE if full_cycle else FOCUS_DONE_TITLE,
                    message=FULL_CYCLE_MESSAGE if full_cycle else FOCUS_DONE_MESSAGE,
                    finished_mode="focus",
                    next_mode="break",
                    show_comment_box=True,
                    full_cycle=full_cycle,
                    next_task_text=task.text if task else None,
                )
            else:
                self._pending_focus = None
                prompt = CompletionPrompt(
                    title=BREAK_DONE_TITLE,
                    message=f"下一个任务：{task.text}" if task else NO_TASK_MESSAGE,
                    finished_mode="break",
                    next_mode="focus",
                    show_comment_box=False,
                    next_task_text=task.text if task else None,
                )
            self._finished_state = finished
            self._prompt = prompt

        logger.info("%s phase finished (session %s)", finished.mode, finished.current_session)
        self.alerts.phase_finished(finished.mode, prompt.title, prompt.message)
        return prompt

    def continue_phase(self, comment: str = "", credit_task: bool = True) -> ContinueResult:
        with self._lock:
            prompt = self._prompt
            finished = self._finished_state
            if prompt is None or finished is None:
                raise NoPendingPhaseError("没有等待确认的阶段")
            self.alerts.acknowledge()

            task: Task | None = None
            history: HistoryRecord | None = None
            rolled_back = False
            progress: ProgressUpdate | None = None
            worked_on: Task | None = None

            pending = self._pending_focus
            if pending is not None:
                worked_on = self.cache.find_task(pending.task_id) if pending.task_id else None
                task, history, rolled_back, progress = self._record_focus(
                    pending, worked_on, comment.strip(), credit_task
                )

            settings = self.cache.settings
            next_mode = prompt.next_mode
            if next_mode == "focus":
                next_session = (
                    1 if finished.current_session >= settings.sessions_per_cycle
                    else finished.current_session + 1
                )
                next_task = self.cache.current_task(self.clock.now().date())
                seconds = effective_focus_minutes(next_task, settings) * 60
            else:
                next_session = finished.current_session
                seconds = effective_break_minutes(worked_on, settings) * 60

            self._prompt = None
            self._pending_focus = None
            self._finished_state = None

        state = self.timer.begin_phase(next_mode, next_session, seconds)
        self.alerts.phase_started(next_mode)
        return ContinueResult(
            state=state,
            task=task,
            history=history,
            rolled_back=rolled_back,
            progress=progress,
        )

    def dismiss(self) -> None:
        """Close a pending dialog without starting the next phase (reset, logout, close).

        A finished focus phase is still recorded and credited to its task,
        just without a comment.
        """
        with self._lock:
            self.alerts.acknowledge()
            pending = self._pending_focus
            self._prompt = None
            self._pending_focus = None
            self._finished_state = None
            if pending is None:
                return
            worked_on = self.cache.find_task(pending.task_id) if pending.task_id else None
            logger.info("recording dismissed focus phase ended at %s", pending.ended_at)
            self._record_focus(pending, worked_on, "", credit_task=True)

    def _record_focus(
        self,
        pending: PendingFocus,
        before: Task | None,
        comment: str,
        credit_task: bool,
    ) -> tuple[Task | None, HistoryRecord | None, bool, ProgressUpdate | None]:
        now = self.clock.now()
        updated: Task | None = None
        try:
            if credit_task and before is not None:
                updated = self._credit_task(before, comment, now)
            history = self.store.add_history(
                pending.task_id, pending.duration_minutes, pending.ended_at
            )
        except StoreError as exc:
            logger.error("recording focus phase failed, rolling back: %s", exc)
            if updated is not None and before is not None:
                self._compensate(before)
            self._rollback_local(pending)
            return before, None, True, None

        if updated is not None:
            self.cache.replace_task(updated)
        if history is not None:
            self.cache.todays_history = [
                history if r.id == pending.provisional.id else r
                for r in self.cache.todays_history
            ]
        elif updated is None and credit_task and before is not None:
            # No identity: keep the optimistic view and credit the cached task only.
            updated = self._credit_locally(before, comment, now)
            self.cache.replace_task(updated)

        progress: ProgressUpdate | None = None
        if history is not None:
            ended_day = pending.ended_at.astimezone(now.tzinfo).date()
            try:
                log = recalculate_daily_log(self.store, ended_day, now.tzinfo)
                if ended_day != now.date():
                    # Acknowledged after midnight: the record belongs to the day it ended.
                    start, end = day_bounds(now.date(), now.tzinfo)
                    self.cache.todays_history = self.store.list_history(start, end)
                    log = recalculate_daily_log(self.store, now.date(), now.tzinfo)
                if log is not None:
                    self.cache.daily_log = log
                progress = recalculate_for_task_change(self.store, before, updated, now)
                self._apply_progress(progress)
            except StoreError as exc:
                logger.error("progress recalculation after focus phase failed: %s", exc)
        return updated, history, False, progress

    def _credit_task(self, task: Task, comment: str, now: datetime) -> Task | None:
        local = self._credit_locally(task, comment, now)
        return self.store.update_task(
            task.id,
            completed_poms=local.completed_poms,
            completed_at=local.completed_at,
            comments=local.comments,
        )

    @staticmethod
    def _credit_locally(task: Task, comment: str, now: datetime) -> Task:
        completed_poms = task.completed_poms + 1
        comments = task.comments + (comment,) if comment else task.comments
        completed_at = task.completed_at
        if completed_at is None and task.reaches_target(completed_poms):
            completed_at = now
        return replace(
            task,
            completed_poms=completed_poms,
            completed_at=completed_at,
            comments=comments,
        )

    def _compensate(self, before: Task) -> None:
        try:
            self.store.update_task(
                before.id,
                completed_poms=before.completed_poms,
                completed_at=before.completed_at,
                comments=before.comments,
            )
        except StoreError:
            logger.exception("task %s could not be rolled back", before.id)

    def _rollback_local(self, pending: PendingFocus) -> None:
        self.cache.todays_history = [
            r for r in self.cache.todays_history if r.id != pending.provisional.id
        ]
        self.cache.daily_log = pending.previous_log

    def _apply_progress(self, progress: ProgressUpdate) -> None:
        projects = {p.id: p for p in progress.projects}
        targets = {t.id: t for t in progress.targets}
        self.cache.projects = [projects.get(p.id, p) for p in self.cache.projects]
        self.cache.targets = [targets.get(t.id, t) for t in self.cache.targets]
