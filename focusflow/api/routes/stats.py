from __future__ import annotations

from fastapi import APIRouter, Depends

from ...reporting import build_stats
from ...session import FocusSession
from ..deps import require_user
from ..schemas import StatsOut, StatsWindowOut

router = APIRouter(prefix="/api/v1", tags=["stats"])


@router.get("/stats", response_model=StatsOut)
def get_stats(session: FocusSession = Depends(require_user)) -> StatsOut:
    stats = build_stats(session.store, session.clock.now())

    def _window(key: str) -> StatsWindowOut:
        w = stats[key]
        return StatsWindowOut(
            focus_minutes=w.focus_minutes,
            sessions=w.sessions,
            completed_tasks=w.completed_tasks,
        )

    return StatsOut(
        today=_window("today"),
        this_week=_window("this_week"),
        last_7_days=_window("last_7_days"),
    )


@router.post("/recalculate", response_model=StatsOut)
def recalculate(session: FocusSession = Depends(require_user)) -> StatsOut:
    session.recalculate()
    return get_stats(session)
