from __future__ import annotations

from fastapi import APIRouter, Depends

from ...session import FocusSession
from ..deps import require_user
from ..schemas import CompletionToggle, TargetCreate, TargetOut, TargetUpdate

router = APIRouter(prefix="/api/v1", tags=["targets"])


@router.get("/targets", response_model=list[TargetOut])
def list_targets(session: FocusSession = Depends(require_user)) -> list[TargetOut]:
    return [TargetOut(**vars(t)) for t in session.store.list_targets()]


@router.post("/targets", response_model=TargetOut, status_code=201)
def add_target(payload: TargetCreate, session: FocusSession = Depends(require_user)) -> TargetOut:
    return TargetOut(**vars(session.run(session.planner.add_target, **payload.model_dump())))


@router.patch("/targets/{target_id}", response_model=TargetOut)
def update_target(
    target_id: str,
    payload: TargetUpdate,
    session: FocusSession = Depends(require_user),
) -> TargetOut:
    target = session.run(
        session.planner.update_target, target_id, **payload.model_dump(exclude_unset=True)
    )
    return TargetOut(**vars(target))


@router.post("/targets/{target_id}/completion", response_model=TargetOut)
def set_completion(
    target_id: str,
    payload: CompletionToggle,
    session: FocusSession = Depends(require_user),
) -> TargetOut:
    target = session.run(session.planner.set_target_completed, target_id, payload.completed)
    return TargetOut(**vars(target))


@router.delete("/targets/{target_id}", status_code=204)
def delete_target(target_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_target, target_id)
