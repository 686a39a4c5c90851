from __future__ import annotations

from fastapi import APIRouter, Depends

from ...session import FocusSession
from ..deps import require_user
from ..schemas import CompletionToggle, ProjectCreate, ProjectOut, ProjectUpdate

router = APIRouter(prefix="/api/v1", tags=["projects"])


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(session: FocusSession = Depends(require_user)) -> list[ProjectOut]:
    return [ProjectOut(**vars(p)) for p in session.store.list_projects()]


@router.post("/projects", response_model=ProjectOut, status_code=201)
def add_project(payload: ProjectCreate, session: FocusSession = Depends(require_user)) -> ProjectOut:
    return ProjectOut(**vars(session.run(session.planner.add_project, **payload.model_dump())))


@router.patch("/projects/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    session: FocusSession = Depends(require_user),
) -> ProjectOut:
    project = session.run(
        session.planner.update_project, project_id, **payload.model_dump(exclude_unset=True)
    )
    return ProjectOut(**vars(project))


@router.post("/projects/{project_id}/completion", response_model=ProjectOut)
def set_completion(
    project_id: str,
    payload: CompletionToggle,
    session: FocusSession = Depends(require_user),
) -> ProjectOut:
    project = session.run(session.planner.set_project_completed, project_id, payload.completed)
    return ProjectOut(**vars(project))


@router.post("/projects/{project_id}/recalculate", response_model=ProjectOut)
def recalculate(project_id: str, session: FocusSession = Depends(require_user)) -> ProjectOut:
    return ProjectOut(**vars(session.run(session.planner.recalculate_project, project_id)))


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(project_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_project, project_id)
