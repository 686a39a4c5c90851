from __future__ import annotations

from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends

from ...progress import day_bounds
from ...session import FocusSession
from ..deps import require_user
from ..schemas import DailyLogOut, HistoryOut

router = APIRouter(prefix="/api/v1", tags=["history"])


@router.get("/history", response_model=list[HistoryOut])
def list_history(
    since: datetime | None = None,
    until: datetime | None = None,
    session: FocusSession = Depends(require_user),
) -> list[HistoryOut]:
    return [HistoryOut(**vars(r)) for r in session.store.list_history(since, until)]


@router.get("/history/today", response_model=list[HistoryOut])
def list_today(session: FocusSession = Depends(require_user)) -> list[HistoryOut]:
    now = session.clock.now()
    start, end = day_bounds(now.date(), now.tzinfo)
    return [HistoryOut(**vars(r)) for r in session.store.list_history(start, end)]


@router.delete("/history/{record_id}", status_code=204)
def delete_history(record_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_history, record_id)


@router.get("/daily-logs", response_model=list[DailyLogOut])
def list_daily_logs(
    start: date | None = None,
    end: date | None = None,
    session: FocusSession = Depends(require_user),
) -> list[DailyLogOut]:
    last = end or session.clock.now().date()
    first = start or last - timedelta(days=6)
    return [
        DailyLogOut(
            day=log.date,
            completed_sessions=log.completed_sessions,
            total_focus_minutes=log.total_focus_minutes,
        )
        for log in session.store.list_daily_logs(first, last)
    ]
