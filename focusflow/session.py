from __future__ import annotations

from datetime import datetime
import logging
import queue
from threading import RLock
from typing import Any, Callable, TypeVar

from .alerts import Alerts
from .clock import Clock, RealClock, epoch_millis
from .coordinator import CompletionPrompt, ContinueResult, PhaseCompletionCoordinator
from .errors import NoPendingPhaseError, StoreError, ValidationError
from .models import LocalCache, Settings, TimerState, effective_focus_minutes
from .planner import Planner
from .progress import day_bounds, recalculate_all, recalculate_daily_log
from .snapshot import SnapshotStore
from .store import FocusFlowStore
from .timer import PhaseTimer, Ticker, WakeLock, format_countdown

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FocusSession:
    """One client session: timer, local cache and the stores behind them.

    The timer snapshot is restored synchronously in the constructor, before
    any remote data is fetched. All public operations are serialised on one
    re-entrant lock; timer callbacks re-enter through the same lock.
    """

    def __init__(
        self,
        store: FocusFlowStore,
        snapshots: SnapshotStore,
        clock: Clock | None = None,
        alerts: Alerts | None = None,
        wake_lock: WakeLock | None = None,
        ticker: Ticker | None = None,
    ) -> None:
        self.store = store
        self.snapshots = snapshots
        self.clock = clock or RealClock()
        self.cache = LocalCache()
        self._lock = RLock()
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []

        restored = snapshots.load(self.clock.now())
        self.restored = restored.restored
        self.timer = PhaseTimer(
            self.clock,
            state=restored.state,
            phase_end_time=restored.phase_end_time,
            wake_lock=wake_lock,
            ticker=ticker,
            on_change=self._on_timer_change,
            on_expire=self._on_timer_expire,
        )
        self.coordinator = PhaseCompletionCoordinator(
            self.timer, store, self.cache, self.clock, alerts
        )
        self.planner = Planner(store, self.clock)
        if self.restored:
            logger.info("restored timer snapshot: %s", restored.state)
        self.timer.resume_restored()

    # -- data -----------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.store.is_authenticated

    def sign_in(self, user_id: str) -> None:
        with self._lock:
            self.store.sign_in(user_id)
            self.fetch_data()

    def fetch_data(self) -> None:
        with self._lock:
            if not self.store.is_authenticated:
                return
            settings = self.store.get_settings()
            if settings is None:
                settings = Settings()
                self.store.save_settings(settings)
            self.cache.settings = settings
            now = self.clock.now()
            try:
                recalculate_daily_log(self.store, now.date(), now.tzinfo)
            except StoreError as exc:
                logger.error("daily log recalculation failed: %s", exc)
            self._reload(now)

            # A restored phase keeps its own duration on the first fetch.
            if self.restored:
                self.restored = False
            else:
                self._sync_idle_duration(now)
        self._broadcast({"event": "data"})

    def refresh(self) -> None:
        with self._lock:
            now = self.clock.now()
            self._reload(now)
            self._sync_idle_duration(now)
        self._broadcast({"event": "data"})

    def _reload(self, now: datetime) -> None:
        start, end = day_bounds(now.date(), now.tzinfo)
        self.cache.tasks = self.store.list_tasks()
        self.cache.projects = self.store.list_projects()
        self.cache.targets = self.store.list_targets()
        self.cache.goals = self.store.list_goals()
        self.cache.commitments = self.store.list_commitments()
        self.cache.todays_history = self.store.list_history(start, end)
        self.cache.daily_log = self.store.get_daily_log(now.date())

    def _sync_idle_duration(self, now: datetime) -> None:
        task = self.cache.current_task(now.date())
        self.timer.sync_idle_duration(effective_focus_minutes(task, self.cache.settings) * 60)

    def run(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Apply a planner mutation, then refresh the cache from the store."""
        with self._lock:
            result = operation(*args, **kwargs)
            self.refresh()
            return result

    def recalculate(self) -> None:
        with self._lock:
            recalculate_all(self.store, self.clock.now())
            self.refresh()

    def save_settings(
        self,
        focus_duration: int,
        break_duration: int,
        sessions_per_cycle: int,
    ) -> Settings:
        values = (focus_duration, break_duration, sessions_per_cycle)
        if any(int(v) <= 0 for v in values):
            raise ValidationError("设置必须为正整数")
        settings = Settings(
            focus_duration=int(focus_duration),
            break_duration=int(break_duration),
            sessions_per_cycle=int(sessions_per_cycle),
        )
        with self._lock:
            self.store.save_settings(settings)
            self.cache.settings = settings
            self.reset()
        return settings

    # -- timer ----------------------------------------------------------

    def start(self) -> TimerState:
        with self._lock:
            if self.coordinator.prompt is not None:
                return self.timer.state
            was_running = self.timer.is_running
            state = self.timer.start()
            if not was_running:
                self.coordinator.alerts.phase_started(state.mode)
            return state

    def stop(self) -> TimerState:
        with self._lock:
            return self.timer.stop()

    def reset(self) -> TimerState:
        with self._lock:
            self.coordinator.dismiss()
            task = self.cache.current_task(self.clock.now().date())
            return self.timer.reset(effective_focus_minutes(task, self.cache.settings) * 60)

    def tick(self) -> int:
        return self.timer.tick()

    def continue_phase(self, comment: str = "", credit_task: bool = True) -> ContinueResult:
        with self._lock:
            if self.coordinator.prompt is None:
                raise NoPendingPhaseError("没有等待确认的阶段")
            result = self.coordinator.continue_phase(comment, credit_task=credit_task)
        self._broadcast({"event": "phase_started", "state": result.state.to_dict()})
        return result

    @property
    def prompt(self) -> CompletionPrompt | None:
        return self.coordinator.prompt

    def set_visible(self, visible: bool) -> None:
        self.timer.set_visible(visible)

    def logout(self) -> None:
        with self._lock:
            self.coordinator.dismiss()
            self.snapshots.clear()
            self.store.sign_out()
            self.cache.settings = Settings()
            self.cache.tasks = []
            self.cache.projects = []
            self.cache.targets = []
            self.cache.goals = []
            self.cache.commitments = []
            self.cache.todays_history = []
            self.cache.daily_log = None
            self.restored = False
            focus = self.cache.settings.focus_duration * 60
            self.timer.restore(
                TimerState(time_remaining=focus, session_total_time=focus)
            )
        self._broadcast({"event": "logout"})

    def close(self) -> None:
        with self._lock:
            self.coordinator.dismiss()
            self.timer.close()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            state = self.timer.state
            end_time = self.timer.phase_end_time
            today = self.clock.now().date()
            task = self.cache.current_task(today)
            log = self.cache.log_for(today)
            prompt = self.coordinator.prompt
            return {
                **state.to_dict(),
                "display": format_countdown(state.time_remaining),
                "phaseEndTime": epoch_millis(end_time) if end_time else None,
                "currentTask": task.text if task else None,
                "completedSessions": log.completed_sessions,
                "totalFocusMinutes": log.total_focus_minutes,
                "prompt": vars(prompt) if prompt else None,
            }

    # -- events ---------------------------------------------------------

    def subscribe(self) -> queue.Queue[dict[str, Any]]:
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=200)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[dict[str, Any]]) -> None:
        with self._lock:
            self._subscribers = [item for item in self._subscribers if item is not q]

    def _broadcast(self, event: dict[str, Any]) -> None:
        with self._lock:
            alive: list[queue.Queue[dict[str, Any]]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                    alive.append(q)
                except queue.Full:
                    continue
            self._subscribers = alive

    def _on_timer_change(self, state: TimerState, phase_end_time: datetime | None) -> None:
        with self._lock:
            if self.store.is_authenticated:
                self.snapshots.persist(state, phase_end_time)
        self._broadcast(
            {
                "event": "tick" if state.is_running else "state",
                **state.to_dict(),
                "display": format_countdown(state.time_remaining),
            }
        )

    def _on_timer_expire(self) -> None:
        with self._lock:
            prompt = self.coordinator.complete_phase()
        if prompt is not None:
            self._broadcast({"event": "phase_complete", **vars(prompt)})

