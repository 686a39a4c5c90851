from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Mapping

from .snapshot import default_state_path
from .store import default_db_path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class AppConfig:
    db_path: Path
    state_path: Path
    user_id: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL
    dev_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ

        def _text(name: str) -> str | None:
            value = env.get(name, "").strip()
            return value or None

        db_text = _text("FOCUSFLOW_DB")
        state_text = _text("FOCUSFLOW_STATE")
        return cls(
            db_path=Path(db_text) if db_text else default_db_path(),
            state_path=Path(state_text) if state_text else default_state_path(),
            user_id=_text("FOCUSFLOW_USER"),
            log_level=(_text("FOCUSFLOW_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
            dev_url=_text("FOCUSFLOW_DEV_URL"),
        )


def configure_logging(level: str | None = None) -> None:
    name = (level or os.environ.get("FOCUSFLOW_LOG_LEVEL") or DEFAULT_LOG_LEVEL).strip().upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("focusflow").setLevel(numeric)
