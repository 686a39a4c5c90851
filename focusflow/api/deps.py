from __future__ import annotations

from fastapi import Depends, Request

from ..errors import NotAuthenticatedError
from ..planner import Planner
from ..session import FocusSession
from ..store import FocusFlowStore


def get_session(request: Request) -> FocusSession:
    return request.app.state.session


def require_user(session: FocusSession = Depends(get_session)) -> FocusSession:
    if not session.is_authenticated:
        raise NotAuthenticatedError("未登录")
    return session


def get_store(session: FocusSession = Depends(require_user)) -> FocusFlowStore:
    return session.store


def get_planner(session: FocusSession = Depends(require_user)) -> Planner:
    return session.planner
