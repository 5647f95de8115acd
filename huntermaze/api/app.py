from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List

from fastapi import FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ValidationError

from huntermaze.api.models import (
    InputRequest,
    LeaderboardEntry,
    NewSessionRequest,
    NewSessionResponse,
    ReplayResponse,
    ReplaySessionSummary,
    SessionSnapshot,
    SessionSummary,
    TickRequest,
)
from huntermaze.common.config import settings
from huntermaze.engine.engine import TickEngine
from huntermaze.persist.sqlite import SqlitePersistence

app = FastAPI(title="HUNTER MAZE")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)

SESSION_SEND_TIMEOUT = 1.0

persistence: SqlitePersistence | None = None
engine: TickEngine | None = None

# Snapshot subscribers by session id
session_clients: Dict[str, set[WebSocket]] = {}
session_clients_lock = asyncio.Lock()


@dataclass
class SessionBroadcaster:
    queue: asyncio.Queue[Dict[str, object]]
    task: asyncio.Task


session_broadcasters: Dict[str, SessionBroadcaster] = {}

leaderboard_cache: Dict[str, object] = {"data": [], "timestamp": 0}
leaderboard_lock = asyncio.Lock()
engine_lock = asyncio.Lock()


def _get_engine() -> TickEngine:
    assert engine is not None
    return engine


def _get_persistence() -> SqlitePersistence:
    assert persistence is not None
    return persistence


def _check_api_key(provided: str | None) -> None:
    if settings.api_key and provided != settings.api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown session")


def _apply_input(game_engine: TickEngine, session_id: str, req: InputRequest) -> bool:
    if game_engine.get_session(session_id) is None:
        return False
    if req.keys is not None:
        game_engine.set_input(session_id, req.keys)
    for key in req.down:
        game_engine.press(session_id, key)
    for key in req.up:
        game_engine.release(session_id, key)
    return True


@app.on_event("startup")
async def _startup() -> None:
    global persistence, engine
    persistence = SqlitePersistence(
        settings.db_path,
        replay_compress=settings.replay_compress,
        replay_max_ticks=settings.replay_max_ticks,
        replay_max_sessions=settings.replay_max_sessions,
    )
    engine = TickEngine(
        persistence,
        seed=settings.random_seed,
        max_sessions=settings.max_sessions,
        finished_session_ticks=settings.finished_session_ticks,
        enable_replay_logging=settings.enable_replay_logging,
        replay_every_ticks=settings.replay_every_ticks,
        max_time=settings.max_time,
        shrink_interval=settings.shrink_interval,
        initial_size=settings.initial_size,
        base_cell_size=settings.base_cell_size,
        world_span=settings.world_span,
        strict_grid=settings.strict_grid,
    )
    if settings.enable_tick_loop:
        asyncio.create_task(tick_loop())
    else:
        logger.warning("Tick loop disabled via HUNTERMAZE_ENABLE_TICK_LOOP")


@app.on_event("shutdown")
async def _shutdown() -> None:
    if persistence is not None:
        persistence.close()


async def tick_loop() -> None:
    game_engine = _get_engine()
    interval = 1.0 / settings.tick_hz
    last = time.monotonic()
    while True:
        now = time.monotonic()
        dt = now - last
        last = now
        async with session_clients_lock:
            session_queues = {
                session_id: broadcaster.queue
                for session_id, broadcaster in session_broadcasters.items()
            }
        async with engine_lock:
            game_engine.tick_once(dt)
            views = {
                session_id: game_engine.render_session_view(session_id)
                for session_id in session_queues
            }
        for session_id, queue in session_queues.items():
            view = views.get(session_id)
            if not view:
                continue
            _queue_latest(queue, view)
        await asyncio.sleep(interval)


def _queue_latest(queue: asyncio.Queue[Dict[str, object]], state: Dict[str, object]) -> None:
    try:
        queue.put_nowait(state)
    except asyncio.QueueFull:
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            queue.put_nowait(state)
        except asyncio.QueueFull:
            pass


async def _send_session_state(ws: WebSocket, state: Dict[str, object]) -> bool:
    try:
        await asyncio.wait_for(ws.send_json(state), timeout=SESSION_SEND_TIMEOUT)
        return True
    except Exception:
        logger.exception("Failed to send session snapshot")
        return False


async def _broadcast_session(session_id: str, queue: asyncio.Queue[Dict[str, object]]) -> None:
    while True:
        try:
            state = await queue.get()
        except asyncio.CancelledError:
            break
        async with session_clients_lock:
            clients = list(session_clients.get(session_id, set()))
        if not clients:
            continue
        results = await asyncio.gather(
            *(_send_session_state(ws, state) for ws in clients),
            return_exceptions=True,
        )
        stale = [ws for ws, ok in zip(clients, results) if ok is not True]
        if stale:
            async with session_clients_lock:
                live_clients = session_clients.get(session_id)
                if live_clients:
                    for ws in stale:
                        live_clients.discard(ws)
                    if not live_clients:
                        _stop_broadcaster(session_id)


def _stop_broadcaster(session_id: str) -> None:
    session_clients.pop(session_id, None)
    broadcaster = session_broadcasters.pop(session_id, None)
    if broadcaster:
        broadcaster.task.cancel()


@app.post("/session/new", response_model=NewSessionResponse)
async def new_session(
    req: NewSessionRequest | None = None, x_api_key: str | None = Header(default=None)
) -> NewSessionResponse:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    seed = req.seed if req else None
    async with engine_lock:
        record = game_engine.create_session(seed=seed)
    if not record:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Server full")
    return NewSessionResponse(
        session_id=record.session_id, call_sign=record.call_sign, seed=record.seed
    )


@app.post("/session/{session_id}/input")
async def session_input(
    session_id: str, req: InputRequest, x_api_key: str | None = Header(default=None)
) -> Dict[str, str]:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        if not _apply_input(game_engine, session_id, req):
            raise _not_found()
    return {"status": "ok"}


@app.post("/session/{session_id}/tick", response_model=SessionSnapshot)
async def session_tick(
    session_id: str, req: TickRequest, x_api_key: str | None = Header(default=None)
) -> SessionSnapshot:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        if not game_engine.tick_session(session_id, req.dt, req.steps):
            raise _not_found()
        data = game_engine.render_session_view(session_id)
    if not data:
        raise _not_found()
    return SessionSnapshot(**data)


@app.post("/session/{session_id}/restart", response_model=SessionSnapshot)
async def session_restart(
    session_id: str, x_api_key: str | None = Header(default=None)
) -> SessionSnapshot:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        if not game_engine.restart_session(session_id):
            raise _not_found()
        data = game_engine.render_session_view(session_id)
    return SessionSnapshot(**data)


@app.get("/session/{session_id}/state", response_model=SessionSnapshot)
async def session_state(
    session_id: str, x_api_key: str | None = Header(default=None)
) -> SessionSnapshot:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        data = game_engine.render_session_view(session_id)
    if not data:
        raise _not_found()
    return SessionSnapshot(**data)


@app.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(x_api_key: str | None = Header(default=None)) -> List[SessionSummary]:
    _check_api_key(x_api_key)
    game_engine = _get_engine()
    async with engine_lock:
        records = list(game_engine.sessions.values())
        return [
            SessionSummary(
                session_id=r.session_id,
                call_sign=r.call_sign,
                status=r.clock.status.value,
                score=r.clock.state.score,
                total_ticks=r.total_ticks,
            )
            for r in records
        ]


@app.get("/leaderboard", response_model=None)
async def leaderboard(x_api_key: str | None = Header(default=None)) -> Response | Dict[str, object]:
    _check_api_key(x_api_key)
    store = _get_persistence()
    async with leaderboard_lock:
        now = int(time.time())
        if now - int(leaderboard_cache["timestamp"]) > settings.leaderboard_cache_seconds:
            leaderboard_cache["data"] = store.leaderboard()
            leaderboard_cache["timestamp"] = now
        entries = leaderboard_cache["data"]
    if not entries:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return {"entries": [LeaderboardEntry(**e) for e in entries]}


@app.get("/replay/sessions", response_model=List[ReplaySessionSummary])
async def replay_sessions(
    limit: int = 50, x_api_key: str | None = Header(default=None)
) -> List[ReplaySessionSummary]:
    _check_api_key(x_api_key)
    store = _get_persistence()
    return [ReplaySessionSummary(**row) for row in store.list_replay_sessions(limit=limit)]


@app.get("/replay/{session_id}", response_model=ReplayResponse)
async def replay(
    session_id: str,
    start_tick: int = 0,
    limit: int = 100,
    x_api_key: str | None = Header(default=None),
) -> ReplayResponse:
    _check_api_key(x_api_key)
    store = _get_persistence()
    rows = store.get_replay_ticks(session_id, start_tick=start_tick, limit=limit + 1)
    return ReplayResponse(session_id=session_id, ticks=rows[:limit], has_more=len(rows) > limit)


@app.websocket("/session/ws/{session_id}")
async def session_ws(ws: WebSocket, session_id: str, key: str | None = None) -> None:
    _check_api_key(key)
    game_engine = _get_engine()
    async with engine_lock:
        known = game_engine.get_session(session_id) is not None
    if not known:
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await ws.accept()
    async with session_clients_lock:
        session_clients.setdefault(session_id, set()).add(ws)
        if session_id not in session_broadcasters:
            queue: asyncio.Queue[Dict[str, object]] = asyncio.Queue(maxsize=1)
            task = asyncio.create_task(_broadcast_session(session_id, queue))
            session_broadcasters[session_id] = SessionBroadcaster(queue=queue, task=task)
    try:
        while True:
            try:
                msg = await ws.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Session websocket receive failed")
                break
            try:
                req = InputRequest.model_validate_json(msg)
            except ValidationError:
                logger.warning("Ignoring malformed input frame for session %s", session_id)
                continue
            async with engine_lock:
                _apply_input(game_engine, session_id, req)
    finally:
        async with session_clients_lock:
            clients = session_clients.get(session_id)
            if clients:
                clients.discard(ws)
                if not clients:
                    _stop_broadcaster(session_id)
