from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from .. import __version__
from ..alerts import Alerts, Notifier, SoundPlayer
from ..clock import Clock
from ..config import AppConfig
from ..errors import (
    FocusFlowError,
    NoPendingPhaseError,
    NotAuthenticatedError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..session import FocusSession
from ..snapshot import SlotStorage, SnapshotStore, default_state_path
from ..store import FocusFlowStore, default_db_path
from ..timer import SystemWakeLock, ThreadTicker, Ticker, WakeLock
from .routes.auth import router as auth_router
from .routes.export import router as export_router
from .routes.health import router as health_router
from .routes.history import router as history_router
from .routes.meta import router as meta_router
from .routes.planning import router as planning_router
from .routes.projects import router as projects_router
from .routes.report import router as report_router
from .routes.stats import router as stats_router
from .routes.targets import router as targets_router
from .routes.tasks import router as tasks_router
from .routes.timer import router as timer_router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[FocusFlowError], int]] = [
    (ValidationError, 400),
    (NotAuthenticatedError, 401),
    (NotFoundError, 404),
    (NoPendingPhaseError, 409),
    (StoreError, 503),
]


def create_app(
    db_path: Path | None = None,
    state_path: Path | None = None,
    user_id: str | None = None,
    clock: Clock | None = None,
    ticker: Ticker | None = None,
    wake_lock: WakeLock | None = None,
    alerts: Alerts | None = None,
    dev_url: str | None = None,
) -> FastAPI:
    resolved_db = Path(db_path or default_db_path())
    resolved_state = Path(state_path or default_state_path())

    store = FocusFlowStore(resolved_db, user_id=user_id)
    session = FocusSession(
        store,
        SnapshotStore(SlotStorage(resolved_state)),
        clock=clock,
        alerts=alerts,
        wake_lock=wake_lock,
        ticker=ticker,
    )
    session.fetch_data()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        session.close()

    app = FastAPI(title="FocusFlow API", version=__version__, lifespan=lifespan)
    app.state.db_path = str(resolved_db)
    app.state.state_path = str(resolved_state)
    app.state.session = session

    @app.exception_handler(FocusFlowError)
    async def handle_focusflow_error(_: Request, exc: FocusFlowError) -> JSONResponse:
        status = 500
        for error_type, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                status = code
                break
        if status >= 500:
            logger.error("request failed: %s", exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(auth_router)
    app.include_router(timer_router)
    app.include_router(tasks_router)
    app.include_router(projects_router)
    app.include_router(targets_router)
    app.include_router(planning_router)
    app.include_router(history_router)
    app.include_router(stats_router)
    app.include_router(report_router)
    app.include_router(export_router)

    if dev_url:
        app.add_api_route("/", lambda: HTMLResponse(_dev_html(dev_url)), methods=["GET"])
    else:
        app.add_api_route("/", lambda: HTMLResponse(_index_html()), methods=["GET"])

    return app


def create_default_app(config: AppConfig | None = None) -> FastAPI:
    cfg = config or AppConfig.from_env()
    return create_app(
        db_path=cfg.db_path,
        state_path=cfg.state_path,
        user_id=cfg.user_id,
        ticker=ThreadTicker(),
        wake_lock=SystemWakeLock(),
        alerts=Alerts(sounds=SoundPlayer(), notifier=Notifier(), notify=True),
        dev_url=cfg.dev_url,
    )


def _index_html() -> str:
    return """
<!doctype html>
<html lang="zh-CN">
  <head>
    <meta charset="utf-8" />
    <title>FocusFlow</title>
    <style>
      body { font-family: "Microsoft YaHei", sans-serif; margin: 0; padding: 2rem; background: #f6f8fb; color: #111827; }
      code { background: #e5e7eb; padding: 0.2rem 0.4rem; border-radius: 0.25rem; }
      .card { max-width: 760px; margin: 2rem auto; background: white; border: 1px solid #e5e7eb; border-radius: 0.75rem; padding: 1.25rem; }
    </style>
  </head>
  <body>
    <div class="card">
      <h1>FocusFlow API 已启动</h1>
      <p>接口文档：<code>/docs</code></p>
      <p>计时器事件流：<code>/api/v1/timer/stream</code></p>
    </div>
  </body>
</html>
"""


def _dev_html(dev_url: str) -> str:
    return f"""
<!doctype html>
<html lang="zh-CN">
  <head>
    <meta charset="utf-8" />
    <meta http-equiv="refresh" content="0; url={dev_url}" />
    <title>FocusFlow</title>
  </head>
  <body>
    正在跳转到前端开发服务：{dev_url}
  </body>
</html>
"""
