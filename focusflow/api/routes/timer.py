from __future__ import annotations

import json
import queue
from typing import Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...session import FocusSession
from ..deps import get_session, require_user
from ..schemas import (
    ContinueRequest,
    SettingsIn,
    SettingsOut,
    TaskOut,
    TimerStateOut,
    VisibilityRequest,
)

router = APIRouter(prefix="/api/v1", tags=["timer"])


def _state(session: FocusSession) -> TimerStateOut:
    return TimerStateOut(**session.snapshot())


@router.get("/timer/state", response_model=TimerStateOut)
def timer_state(session: FocusSession = Depends(get_session)) -> TimerStateOut:
    return _state(session)


@router.post("/timer/start", response_model=TimerStateOut)
def start_timer(session: FocusSession = Depends(get_session)) -> TimerStateOut:
    session.start()
    return _state(session)


@router.post("/timer/stop", response_model=TimerStateOut)
def stop_timer(session: FocusSession = Depends(get_session)) -> TimerStateOut:
    session.stop()
    return _state(session)


@router.post("/timer/reset", response_model=TimerStateOut)
def reset_timer(session: FocusSession = Depends(get_session)) -> TimerStateOut:
    session.reset()
    return _state(session)


@router.post("/timer/continue", response_model=TimerStateOut)
def continue_timer(
    payload: ContinueRequest,
    session: FocusSession = Depends(get_session),
) -> TimerStateOut:
    session.continue_phase(payload.comment, credit_task=payload.credit_task)
    return _state(session)


@router.post("/timer/visibility", response_model=TimerStateOut)
def set_visibility(
    payload: VisibilityRequest,
    session: FocusSession = Depends(get_session),
) -> TimerStateOut:
    session.set_visible(payload.visible)
    return _state(session)


@router.get("/timer/current-task", response_model=TaskOut | None)
def current_task(session: FocusSession = Depends(get_session)) -> TaskOut | None:
    task = session.cache.current_task(session.clock.now().date())
    return TaskOut(**vars(task)) if task else None


@router.get("/settings", response_model=SettingsOut)
def get_settings(session: FocusSession = Depends(require_user)) -> SettingsOut:
    return SettingsOut(**vars(session.cache.settings))


@router.put("/settings", response_model=SettingsOut)
def put_settings(
    payload: SettingsIn,
    session: FocusSession = Depends(require_user),
) -> SettingsOut:
    settings = session.save_settings(**payload.model_dump())
    return SettingsOut(**vars(settings))


@router.get("/timer/stream")
def timer_stream(session: FocusSession = Depends(get_session)) -> StreamingResponse:
    subscriber = session.subscribe()

    def event_iter() -> Iterator[str]:
        try:
            yield f"data: {json.dumps({'event': 'snapshot', **session.snapshot()}, ensure_ascii=False, default=str)}\n\n"
            while True:
                try:
                    event = subscriber.get(timeout=10)
                    yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    yield ": keepalive\n\n"
        finally:
            session.unsubscribe(subscriber)

    return StreamingResponse(event_iter(), media_type="text/event-stream")
