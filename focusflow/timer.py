from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
import logging
import math
import platform
import shutil
import subprocess
from threading import Event, RLock, Thread
from typing import Callable, Protocol

from .clock import Clock
from .models import Mode, TimerState

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TimerState, "datetime | None"], None]
ExpireCallback = Callable[[], None]


def remaining_seconds(phase_end_time: datetime, now: datetime) -> int:
    delta = (phase_end_time - now).total_seconds()
    # Round half up so x.5 seconds displays the larger value.
    return max(0, int(math.floor(delta + 0.5)))


def format_countdown(seconds: int) -> str:
    total = max(0, seconds)
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{sec:02d}"
    return f"{minutes:02d}:{sec:02d}"


class WakeLock(Protocol):
    def acquire(self) -> None:
        ...

    def release(self) -> None:
        ...


class NullWakeLock:
    def acquire(self) -> None:
        return None

    def release(self) -> None:
        return None


class SystemWakeLock:
    """Keeps the host awake by holding an OS sleep inhibitor process."""

    def __init__(self) -> None:
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def held(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def acquire(self) -> None:
        if self.held:
            return
        command = self._command()
        if command is None:
            raise RuntimeError("no sleep inhibitor available on this platform")
        self._process = subprocess.Popen(
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def release(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            process.kill()

    @staticmethod
    def _command() -> list[str] | None:
        system_name = platform.system().lower()
        if system_name == "darwin" and shutil.which("caffeinate"):
            return ["caffeinate", "-i"]
        if system_name == "linux" and shutil.which("systemd-inhibit"):
            return [
                "systemd-inhibit",
                "--what=idle:sleep",
                "--who=focusflow",
                "--why=focus timer running",
                "sleep",
                "infinity",
            ]
        return None


class Ticker(Protocol):
    def start(self, callback: Callable[[], None]) -> None:
        ...

    def cancel(self) -> None:
        ...


class ThreadTicker:
    def __init__(self, interval_seconds: float = 1.0) -> None:
        self.interval_seconds = interval_seconds
        self._stop: Event | None = None
        self._worker: Thread | None = None

    @property
    def active(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self, callback: Callable[[], None]) -> None:
        if self.active:
            return
        stop = Event()
        self._stop = stop

        def loop() -> None:
            while not stop.wait(self.interval_seconds):
                try:
                    callback()
                except Exception:
                    logger.exception("timer tick failed")

        self._worker = Thread(target=loop, name="focusflow-ticker", daemon=True)
        self._worker.start()

    def cancel(self) -> None:
        if self._stop is not None:
            self._stop.set()
        self._stop = None
        self._worker = None


class PhaseTimer:
    """Focus/break countdown driven by an absolute deadline.

    While running, ``phase_end_time`` is the only source of truth and
    ``time_remaining`` is recomputed from it on every tick, so missed or
    delayed ticks never skew the countdown. The wake lock and the tick
    schedule are owned by the instance and follow ``start``/``stop``.
    """

    def __init__(
        self,
        clock: Clock,
        state: TimerState | None = None,
        phase_end_time: datetime | None = None,
        wake_lock: WakeLock | None = None,
        ticker: Ticker | None = None,
        on_change: ChangeCallback | None = None,
        on_expire: ExpireCallback | None = None,
    ) -> None:
        self.clock = clock
        self.wake_lock = wake_lock or NullWakeLock()
        self.ticker = ticker
        self.on_change = on_change
        self.on_expire = on_expire
        self._lock = RLock()
        self._state = state or TimerState()
        self._phase_end_time = phase_end_time if self._state.is_running else None
        self._expiry_fired = False
        self._wake_lock_held = False
        self._visible = True

    @property
    def state(self) -> TimerState:
        with self._lock:
            return self._state

    @property
    def phase_end_time(self) -> datetime | None:
        with self._lock:
            return self._phase_end_time

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def resume_restored(self) -> None:
        """Re-attach tick schedule and wake lock to a state restored as running."""
        with self._lock:
            if not self._state.is_running:
                return
            if self._phase_end_time is None:
                self._state = replace(self._state, is_running=False)
                changed = True
            else:
                self._acquire_wake_lock()
                self._start_ticker()
                changed = False
        if changed:
            self._emit_change()

    def start(self) -> TimerState:
        with self._lock:
            if self._state.is_running:
                return self._state
            now = self.clock.now()
            self._phase_end_time = now + timedelta(seconds=self._state.time_remaining)
            self._state = replace(self._state, is_running=True)
            self._expiry_fired = False
            self._acquire_wake_lock()
            self._start_ticker()
            state = self._state
        self._emit_change()
        return state

    def stop(self) -> TimerState:
        with self._lock:
            was_running = self._state.is_running or self._phase_end_time is not None
            self._state = replace(self._state, is_running=False)
            self._phase_end_time = None
            self._cancel_ticker()
            self._release_wake_lock()
            state = self._state
        if was_running:
            self._emit_change()
        return state

    pause = stop

    def tick(self) -> int:
        with self._lock:
            if not self._state.is_running or self._phase_end_time is None:
                return self._state.time_remaining
            remaining = remaining_seconds(self._phase_end_time, self.clock.now())
            changed = remaining != self._state.time_remaining
            if changed:
                self._state = replace(self._state, time_remaining=remaining)
            expired = remaining <= 0 and not self._expiry_fired
            if expired:
                self._expiry_fired = True
        if changed:
            self._emit_change()
        if expired and self.on_expire is not None:
            self.on_expire()
        return remaining

    def reset(self, focus_seconds: int) -> TimerState:
        self.stop()
        with self._lock:
            self._state = replace(
                self._state,
                mode="focus",
                current_session=1,
                time_remaining=int(focus_seconds),
                session_total_time=int(focus_seconds),
            )
            self._expiry_fired = False
            state = self._state
        self._emit_change()
        return state

    def begin_phase(self, mode: Mode, current_session: int, seconds: int) -> TimerState:
        with self._lock:
            seconds = max(0, int(seconds))
            self._phase_end_time = self.clock.now() + timedelta(seconds=seconds)
            self._state = TimerState(
                mode=mode,
                current_session=max(1, int(current_session)),
                time_remaining=seconds,
                session_total_time=seconds,
                is_running=True,
            )
            self._expiry_fired = False
            self._acquire_wake_lock()
            self._start_ticker()
            state = self._state
        self._emit_change()
        return state

    def sync_idle_duration(self, seconds: int) -> bool:
        """Align a paused, untouched focus phase to a new configured duration."""
        with self._lock:
            current = self._state
            if current.is_running or not current.is_pristine or current.mode != "focus":
                return False
            if current.session_total_time == seconds:
                return False
            self._state = replace(current, time_remaining=int(seconds), session_total_time=int(seconds))
        self._emit_change()
        return True

    def restore(self, state: TimerState) -> None:
        self.stop()
        with self._lock:
            self._state = replace(state, is_running=False)
            self._phase_end_time = None
            self._expiry_fired = False
        self._emit_change()

    def set_visible(self, visible: bool) -> None:
        with self._lock:
            self._visible = visible
            if not visible:
                self._release_wake_lock()
            elif self._state.is_running:
                self._acquire_wake_lock()

    def close(self) -> None:
        with self._lock:
            self._cancel_ticker()
            self._release_wake_lock()

    def _start_ticker(self) -> None:
        if self.ticker is not None:
            self.ticker.start(self.tick)

    def _cancel_ticker(self) -> None:
        if self.ticker is not None:
            self.ticker.cancel()

    def _acquire_wake_lock(self) -> None:
        if self._wake_lock_held or not self._visible:
            return
        try:
            self.wake_lock.acquire()
            self._wake_lock_held = True
        except Exception as exc:
            logger.debug("wake lock unavailable: %s", exc)

    def _release_wake_lock(self) -> None:
        if not self._wake_lock_held:
            return
        self._wake_lock_held = False
        try:
            self.wake_lock.release()
        except Exception as exc:
            logger.debug("wake lock release failed: %s", exc)

    def _emit_change(self) -> None:
        if self.on_change is None:
            return
        with self._lock:
            state, end_time = self._state, self._phase_end_time
        self.on_change(state, end_time)
