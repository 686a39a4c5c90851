from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends

from ...errors import NotFoundError
from ...session import FocusSession
from ..deps import require_user
from ..schemas import (
    MoveRequest,
    ReorderRequest,
    TaskCreate,
    TaskOut,
    TaskTimersUpdate,
    TaskUpdate,
)

router = APIRouter(prefix="/api/v1", tags=["tasks"])


def _out(task) -> TaskOut:
    if task is None:
        raise NotFoundError("task not found")
    return TaskOut(**vars(task))


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(
    start: date | None = None,
    end: date | None = None,
    session: FocusSession = Depends(require_user),
) -> list[TaskOut]:
    return [TaskOut(**vars(t)) for t in session.store.list_tasks(start, end)]


@router.get("/tasks/today", response_model=list[TaskOut])
def list_today(session: FocusSession = Depends(require_user)) -> list[TaskOut]:
    today = session.clock.now().date()
    return [TaskOut(**vars(t)) for t in session.store.list_tasks(today, today)]


@router.post("/tasks", response_model=TaskOut, status_code=201)
def add_task(payload: TaskCreate, session: FocusSession = Depends(require_user)) -> TaskOut:
    return _out(session.run(session.planner.add_task, **payload.model_dump()))


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, session: FocusSession = Depends(require_user)) -> TaskOut:
    return _out(session.store.get_task(task_id))


@router.patch("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    session: FocusSession = Depends(require_user),
) -> TaskOut:
    change = session.run(session.planner.update_task, task_id, **payload.model_dump(exclude_unset=True))
    return _out(change.task)


@router.put("/tasks/{task_id}/timers", response_model=TaskOut)
def update_task_timers(
    task_id: str,
    payload: TaskTimersUpdate,
    session: FocusSession = Depends(require_user),
) -> TaskOut:
    change = session.run(
        session.planner.update_task_timers, task_id, payload.focus, payload.break_minutes
    )
    return _out(change.task)


@router.post("/tasks/{task_id}/complete", response_model=TaskOut)
def complete_task(task_id: str, session: FocusSession = Depends(require_user)) -> TaskOut:
    return _out(session.run(session.planner.complete_task, task_id).task)


@router.post("/tasks/{task_id}/incomplete", response_model=TaskOut)
def mark_incomplete(task_id: str, session: FocusSession = Depends(require_user)) -> TaskOut:
    return _out(session.run(session.planner.mark_task_incomplete, task_id).task)


@router.post("/tasks/{task_id}/move", response_model=TaskOut)
def move_task(
    task_id: str,
    payload: MoveRequest,
    session: FocusSession = Depends(require_user),
) -> TaskOut:
    return _out(session.run(session.planner.move_task, task_id, payload.action))


@router.post("/tasks/reorder", response_model=list[TaskOut])
def reorder_tasks(
    payload: ReorderRequest,
    session: FocusSession = Depends(require_user),
) -> list[TaskOut]:
    return [TaskOut(**vars(t)) for t in session.run(session.planner.reorder_tasks, payload.task_ids)]


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: str, session: FocusSession = Depends(require_user)) -> None:
    session.run(session.planner.delete_task, task_id)
