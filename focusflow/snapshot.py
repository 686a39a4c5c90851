from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any

from .clock import epoch_millis, from_epoch_millis
from .models import TimerState
from .timer import remaining_seconds

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "pomodoroAppState"
STATE_FILE_NAME = "local_state.json"


class SlotStorage:
    """A small key/value file standing in for browser-local storage."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except (OSError, ValueError) as exc:
            logger.warning("local state file unreadable, starting empty: %s", exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(k): str(v) for k, v in payload.items()}

    def _write_all(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with temp_path.open("w", encoding="utf-8") as fp:
            json.dump(items, fp, indent=2, ensure_ascii=False, sort_keys=True)
            fp.write("\n")
        temp_path.replace(self.path)

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if key not in items:
            return
        del items[key]
        self._write_all(items)


@dataclass(frozen=True)
class RestoredTimer:
    state: TimerState
    phase_end_time: datetime | None
    restored: bool


class SnapshotStore:
    def __init__(self, storage: SlotStorage, key: str = SNAPSHOT_KEY) -> None:
        self.storage = storage
        self.key = key

    def persist(self, state: TimerState, phase_end_time: datetime | None) -> bool:
        """Write the timer snapshot, or clear the slot when the state is pristine.

        Returns True when a snapshot was written.
        """
        try:
            if state.is_pristine:
                self.storage.remove_item(self.key)
                return False
            payload: dict[str, Any] = {
                "savedAppState": state.to_dict(),
                "savedPhaseEndTime": epoch_millis(phase_end_time) if phase_end_time else None,
            }
            self.storage.set_item(self.key, json.dumps(payload, ensure_ascii=False))
            return True
        except OSError as exc:
            logger.error("failed to persist timer snapshot: %s", exc)
            return False

    def load(self, now: datetime) -> RestoredTimer:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return RestoredTimer(state=TimerState(), phase_end_time=None, restored=False)

        try:
            payload = json.loads(raw)
            state = TimerState.from_dict(payload["savedAppState"])
            saved_end = payload.get("savedPhaseEndTime")
            phase_end_time = (
                from_epoch_millis(saved_end, now.tzinfo) if saved_end is not None else None
            )
        except (ValueError, KeyError, TypeError, OverflowError, OSError) as exc:
            logger.warning("discarding corrupt timer snapshot: %s", exc)
            self.clear()
            return RestoredTimer(state=TimerState(), phase_end_time=None, restored=False)

        if state.is_running and phase_end_time is not None:
            state = replace(state, time_remaining=remaining_seconds(phase_end_time, now))
            return RestoredTimer(state=state, phase_end_time=phase_end_time, restored=True)

        # Paused snapshots keep their saved remaining time.
        return RestoredTimer(
            state=replace(state, is_running=False),
            phase_end_time=None,
            restored=True,
        )

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except OSError as exc:
            logger.error("failed to clear timer snapshot: %s", exc)


def default_state_path() -> Path:
    return Path(__file__).resolve().parent / "data" / STATE_FILE_NAME
