from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from .api.client import MentorApiClient
from .auth import AuthSession, TokenFileAuthProvider
from .config import settings
from .dashboard import DashboardView
from .logger import setup_logging
from .schemas import BookRequest, DashboardPage, DateSelection, SessionStartResponse, SignInRequest
from .store import DashboardSession, store

logger = setup_logging(settings.log_level, settings.log_file)

app = FastAPI(title="Mentee Portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ConnectionManager:
    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(session_id, []).append(websocket)

    def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        connections = self.active_connections.get(session_id, [])
        if websocket in connections:
            connections.remove(websocket)

    async def broadcast(self, session_id: str, payload: dict) -> None:
        for websocket in list(self.active_connections.get(session_id, [])):
            try:
                await websocket.send_json(payload)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.warning("Dropping dead socket for session %s: %s", session_id, exc)
                self.disconnect(session_id, websocket)


manager = ConnectionManager()
client = MentorApiClient(settings.api_base_url, timeout=settings.request_timeout)


def _build_view() -> DashboardView:
    auth = AuthSession(TokenFileAuthProvider(Path(settings.token_path)))
    return DashboardView(
        client,
        auth,
        strategy=settings.availability_strategy,
        login_path=settings.login_path,
    )


def _get_session(session_id: str) -> DashboardSession:
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown dashboard session")
    return session


async def _render(session: DashboardSession) -> DashboardPage:
    page = session.view.render()
    for notice in page.notices:
        await manager.broadcast(
            session.session_id,
            {"type": "notice", "payload": notice.model_dump(mode="json")},
        )
    return page


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/session/start", response_model=SessionStartResponse)
async def start_session() -> SessionStartResponse:
    session = store.create_session(_build_view)
    await session.view.mount()
    logger.info("Mounted dashboard %s", session.session_id)
    return SessionStartResponse(
        session_id=session.session_id,
        ws_url=f"{settings.ws_base_url}/session/{session.session_id}/events",
        page=await _render(session),
    )


@app.get("/session/{session_id}/dashboard", response_model=DashboardPage)
async def get_dashboard(session_id: str) -> DashboardPage:
    return await _render(_get_session(session_id))


@app.post("/session/{session_id}/date", response_model=DashboardPage)
async def select_date(session_id: str, payload: DateSelection) -> DashboardPage:
    session = _get_session(session_id)
    session.view.select_date(payload.date)
    return await _render(session)


@app.post("/session/{session_id}/book", response_model=DashboardPage)
async def book_slot(session_id: str, payload: BookRequest) -> DashboardPage:
    session = _get_session(session_id)
    await session.view.book(payload.slot_id)
    return await _render(session)


@app.post("/session/{session_id}/bookings/refresh", response_model=DashboardPage)
async def refresh_bookings(session_id: str) -> DashboardPage:
    session = _get_session(session_id)
    await session.view.refresh_bookings()
    return await _render(session)


@app.post("/session/{session_id}/sign-in", response_model=DashboardPage)
async def sign_in(session_id: str, payload: SignInRequest) -> DashboardPage:
    session = _get_session(session_id)
    await session.view.sign_in(payload.token, payload.user)
    return await _render(session)


@app.post("/session/{session_id}/sign-out", response_model=DashboardPage)
async def sign_out(session_id: str) -> DashboardPage:
    session = _get_session(session_id)
    session.view.sign_out()
    return await _render(session)


@app.delete("/session/{session_id}")
async def close_session(session_id: str) -> dict:
    session = _get_session(session_id)
    session.view.unmount()
    store.remove_session(session_id)
    await manager.broadcast(
        session_id, {"type": "session_closed", "payload": {"session_id": session_id}}
    )
    logger.info("Unmounted dashboard %s", session_id)
    return {"session_id": session_id, "closed": True}


@app.websocket("/session/{session_id}/events")
async def session_events(session_id: str, websocket: WebSocket) -> None:
    if store.get_session(session_id) is None:
        logger.warning("Refusing events socket for unknown session %s", session_id)
        await websocket.close(code=1008)
        return
    await manager.connect(session_id, websocket)
    await manager.broadcast(
        session_id,
        {
            "type": "status",
            "payload": {"session_id": session_id, "state": "connected"},
        },
    )
    try:
        while True:
            message = await websocket.receive_json()
            if message.get("type") == "ping":
                await websocket.send_json(
                    {"type": "pong", "payload": {"at": datetime.now(timezone.utc).isoformat()}}
                )
    except WebSocketDisconnect:
        manager.disconnect(session_id, websocket)
