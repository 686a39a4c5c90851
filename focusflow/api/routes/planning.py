from __future__ import annotations

from fastapi import APIRouter, Depends

from ...session import FocusSession
from ..deps import require_user
from ..schemas import CommitmentCreate, CommitmentOut, GoalCreate, GoalOut

router = APIRouter(prefix="/api/v1", tags=["planning"])


@router.get("/goals", response_model=list[GoalOut])
def list_goals(session: FocusSession = Depends(require_user)) -> list[GoalOut]:
    return [GoalOut(**vars(g)) for g in session.store.list_goals()]


@router.post("/goals", response_model=GoalOut, status_code=201)
def add_goal(payload: GoalCreate, session: FocusSession = Depends(require_user)) -> GoalOut:
    return GoalOut(**vars(session.run(session.planner.add_goal, payload.text)))


@router.delete("/goals/{goal_id}", status_code=204)
def delete_goal(goal_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_goal, goal_id)


@router.get("/commitments", response_model=list[CommitmentOut])
def list_commitments(session: FocusSession = Depends(require_user)) -> list[CommitmentOut]:
    return [CommitmentOut(**vars(c)) for c in session.store.list_commitments()]


@router.post("/commitments", response_model=CommitmentOut, status_code=201)
def add_commitment(
    payload: CommitmentCreate,
    session: FocusSession = Depends(require_user),
) -> CommitmentOut:
    item = session.run(session.planner.add_commitment, payload.text, payload.due_date)
    return CommitmentOut(**vars(item))


@router.delete("/commitments/{commitment_id}", status_code=204)
def delete_commitment(commitment_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_commitment, commitment_id)
