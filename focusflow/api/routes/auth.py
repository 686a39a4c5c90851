from __future__ import annotations

from fastapi import APIRouter, Depends

from ...session import FocusSession
from ..deps import get_session
from ..schemas import IdentityOut, LoginRequest

router = APIRouter(prefix="/api/v1", tags=["auth"])


def _identity(session: FocusSession) -> IdentityOut:
    return IdentityOut(authenticated=session.is_authenticated, user_id=session.store.user_id)


@router.get("/auth/me", response_model=IdentityOut)
def me(session: FocusSession = Depends(get_session)) -> IdentityOut:
    return _identity(session)


@router.post("/auth/login", response_model=IdentityOut)
def login(payload: LoginRequest, session: FocusSession = Depends(get_session)) -> IdentityOut:
    session.sign_in(payload.user_id)
    return _identity(session)


@router.post("/auth/logout", response_model=IdentityOut)
def logout(session: FocusSession = Depends(get_session)) -> IdentityOut:
    session.logout()
    return _identity(session)
