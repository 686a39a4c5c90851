from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import sys
from threading import Event, Lock, Thread
from typing import Callable, TextIO

from .models import Mode

logger = logging.getLogger(__name__)

ALERT_INTERVAL_SECONDS = 3.0


class Notifier:
    """Desktop notification with a console fallback.

    ``notify_phase`` labels the notification with the phase that ended and
    sends the end of a break as urgent.
    """

    APP_NAME = "FocusFlow"
    PHASE_SUBTITLES = {"focus": "专注阶段结束", "break": "休息阶段结束"}

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def notify_phase(self, mode: Mode, title: str, message: str) -> bool:
        urgency = "critical" if mode == "break" else "normal"
        return self.notify(title, message, subtitle=self.PHASE_SUBTITLES.get(mode), urgency=urgency)

    def notify(
        self,
        title: str,
        message: str,
        subtitle: str | None = None,
        urgency: str = "normal",
    ) -> bool:
        command = self._command(title, message, subtitle, urgency)
        sent = False
        if command is not None:
            try:
                result = subprocess.run(
                    command,
                    check=False,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                sent = result.returncode == 0
            except OSError as exc:
                logger.debug("desktop notification failed: %s", exc)

        if not sent:
            label = f"{title}（{subtitle}）" if subtitle else title
            self.stream.write(f"[通知] {label}: {message}\n")
            self.stream.flush()
        return sent

    def _command(
        self,
        title: str,
        message: str,
        subtitle: str | None,
        urgency: str,
    ) -> list[str] | None:
        system_name = platform.system().lower()
        if system_name == "darwin" and shutil.which("osascript"):
            script = f'display notification "{_escape(message)}" with title "{_escape(title)}"'
            if subtitle:
                script += f' subtitle "{_escape(subtitle)}"'
            return ["osascript", "-e", script]
        if system_name == "linux" and shutil.which("notify-send"):
            body = f"{subtitle}\n{message}" if subtitle else message
            return [
                "notify-send",
                f"--app-name={self.APP_NAME}",
                f"--urgency={urgency}",
                title,
                body,
            ]
        return None


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class SoundPlayer:
    """Terminal bell cues; each cue is a short burst of BEL characters."""

    CUES = {
        "focus_start": 1,
        "focus_end": 2,
        "break_start": 1,
        "break_end": 2,
        "alert": 2,
    }

    def __init__(self, stream: TextIO | None = None, enabled: bool = True) -> None:
        self.stream = stream or sys.stdout
        self.enabled = enabled
        self.played: list[str] = []

    def play(self, cue: str) -> None:
        self.played.append(cue)
        if not self.enabled:
            return
        try:
            self.stream.write("\a" * self.CUES.get(cue, 1))
            self.stream.flush()
        except (OSError, ValueError) as exc:
            logger.debug("sound cue %s failed: %s", cue, exc)

    def phase_start(self, mode: Mode) -> None:
        self.play("focus_start" if mode == "focus" else "break_start")

    def phase_end(self, mode: Mode) -> None:
        self.play("focus_end" if mode == "focus" else "break_end")


class AlertLoop:
    """Repeats an alert until cancelled. There is no automatic timeout."""

    def __init__(
        self,
        play: Callable[[], None],
        interval_seconds: float = ALERT_INTERVAL_SECONDS,
    ) -> None:
        self.play = play
        self.interval_seconds = interval_seconds
        self._lock = Lock()
        self._stop: Event | None = None
        self._worker: Thread | None = None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._stop is not None

    def start(self) -> None:
        with self._lock:
            if self._stop is not None:
                return
            stop = Event()
            self._stop = stop

        def loop() -> None:
            while not stop.is_set():
                try:
                    self.play()
                except Exception:
                    logger.exception("alert playback failed")
                if stop.wait(self.interval_seconds):
                    break

        worker = Thread(target=loop, name="focusflow-alert", daemon=True)
        with self._lock:
            self._worker = worker
        worker.start()

    def cancel(self) -> None:
        with self._lock:
            stop, self._stop = self._stop, None
            self._worker = None
        if stop is not None:
            stop.set()


class Alerts:
    def __init__(
        self,
        sounds: SoundPlayer | None = None,
        notifier: Notifier | None = None,
        notify: bool = False,
        interval_seconds: float = ALERT_INTERVAL_SECONDS,
    ) -> None:
        self.sounds = sounds or SoundPlayer(enabled=False)
        self.notifier = notifier
        self.notify_enabled = notify and notifier is not None
        self.loop = AlertLoop(lambda: self.sounds.play("alert"), interval_seconds)

    def phase_started(self, mode: Mode) -> None:
        self.sounds.phase_start(mode)

    def phase_finished(self, mode: Mode, title: str, message: str) -> None:
        self.sounds.phase_end(mode)
        self.loop.start()
        if self.notify_enabled and self.notifier is not None:
            self.notifier.notify_phase(mode, title, message)

    def acknowledge(self) -> None:
        self.loop.cancel()
