"""FastAPI application exposing the focus engine to the browser extension and UI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

from .config import EngineSettings
from .engine import Command, FocusEngine
from .errors import StoreError
from .models import DispatchResult
from .paths import get_db_path

logger = logging.getLogger(__name__)


class ActivitySwitchedPayload(BaseModel):
    tab_id: int
    window_id: Optional[int] = None
    url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class NavigationPayload(BaseModel):
    tab_id: int
    url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class IdlePayload(BaseModel):
    state: Literal["active", "idle", "locked"]

    model_config = ConfigDict(extra="forbid")


class TabPayload(BaseModel):
    url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class OpenSettingsPayload(BaseModel):
    tab: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class FocusSessionPayload(BaseModel):
    minutes: int = Field(gt=0)

    model_config = ConfigDict(extra="forbid")


class SnoozePayload(BaseModel):
    durationMs: Optional[int] = Field(default=None, gt=0)

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
    engine: Optional[FocusEngine] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    if engine is None:
        engine = FocusEngine(
            Path(db_path or get_db_path()),
            settings or EngineSettings(),
        )

    app = FastAPI(title="FocusPilot", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        await engine.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await engine.stop()

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.warning("Store unavailable for %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    @app.get("/api/status")
    async def status() -> Dict[str, Any]:
        return await engine.status()

    @app.post("/api/activity/switched")
    async def activity_switched(payload: ActivitySwitchedPayload) -> Dict[str, Any]:
        result = await engine.tracker.activity_switched(
            payload.tab_id, payload.window_id, payload.url
        )
        return {"reminder": _dispatch_payload(result)}

    @app.post("/api/activity/navigated")
    async def url_navigated(payload: NavigationPayload) -> Dict[str, Any]:
        result = await engine.tracker.url_navigated(payload.tab_id, payload.url)
        return {"reminder": _dispatch_payload(result)}

    @app.post("/api/activity/idle")
    async def idle_state(payload: IdlePayload) -> Dict[str, Any]:
        if payload.state == "active":
            await engine.tracker.resumed()
        else:
            await engine.tracker.went_idle()
        return {"ok": True}

    @app.put("/api/tabs/{tab_id}")
    def update_tab(tab_id: int, payload: TabPayload) -> Dict[str, Any]:
        engine.tabs.update(tab_id, payload.url)
        return {"ok": True}

    @app.delete("/api/tabs/{tab_id}")
    def close_tab(tab_id: int) -> Dict[str, Any]:
        engine.tracker.tab_closed(tab_id)
        return {"ok": True}

    @app.get("/api/stats")
    async def stats() -> Dict[str, Any]:
        return await engine.handle(Command.GET_STATS)

    @app.post("/api/reset")
    async def reset() -> Dict[str, Any]:
        return await engine.handle(Command.RESET_DATA)

    @app.post("/api/dashboard/open")
    async def open_dashboard() -> Dict[str, Any]:
        return await engine.handle(Command.OPEN_DASHBOARD)

    @app.post("/api/settings/open")
    async def open_settings(payload: Optional[OpenSettingsPayload] = None) -> Dict[str, Any]:
        body = payload.model_dump(exclude_none=True) if payload else {}
        return await engine.handle(Command.OPEN_SETTINGS, body)

    @app.post("/api/focus-session")
    async def start_focus_session(payload: FocusSessionPayload) -> Dict[str, Any]:
        return await _handle(Command.START_FOCUS_SESSION, payload.model_dump())

    @app.post("/api/snooze")
    async def snooze(payload: Optional[SnoozePayload] = None) -> Dict[str, Any]:
        body = payload.model_dump(exclude_none=True) if payload else {}
        return await _handle(Command.SNOOZE, body)

    @app.get("/api/config")
    def get_config() -> Dict[str, Any]:
        return engine.settings.to_payload()

    @app.put("/api/config")
    async def update_config(payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            updated = await engine.update_config(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return updated.to_payload()

    @app.websocket("/ws/tabs/{tab_id}")
    async def tab_listener(websocket: WebSocket, tab_id: int) -> None:
        await websocket.accept()
        engine.listeners.register(tab_id, websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            engine.listeners.unregister(tab_id, websocket)

    @app.get("/")
    def index() -> FileResponse:
        index_path = (Path(__file__).parent / "static" / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    async def _handle(command: Command, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return await engine.handle(command, body)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    return app


def _dispatch_payload(result: Optional[DispatchResult]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    return {
        "delivered": result.delivered,
        "channel": result.channel,
        "suppressed": result.suppressed,
    }
