from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...reporting import generate_weekly_report
from ...session import FocusSession
from ..deps import require_user
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["report"])


class WeeklyReportRequest(BaseModel):
    out_dir: str | None = None


@router.post("/report/weekly", response_model=FileResult)
def generate_report(
    payload: WeeklyReportRequest,
    session: FocusSession = Depends(require_user),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(__file__).resolve().parents[2] / "out"
    report_path = generate_weekly_report(
        store=session.store,
        out_dir=out_dir,
        now=session.clock.now(),
    )
    return FileResult(path=str(report_path))
