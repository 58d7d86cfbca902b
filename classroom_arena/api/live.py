"""
Live views over WebSockets

Each connection runs one observer. The server sends the freshly projected
view after every store snapshot and every local countdown tick:

    {"type": "VIEW", "view": {...}}

Clients may send:
    {"type": "PING"}                                   -> {"type": "PONG"}
    team:     {"type": "SUBMIT", "challenge_id": 3, "url": "..."}
    operator: {"type": "SEARCH", "search": "ada"}
              {"type": "INSPECT", "team_id": "..."}
              {"type": "GRADE", "team_id": "...", "challenge_id": 3, "points": 20}
              {"type": "START", "minutes": 25} | PAUSE | RESUME | STOP | REVEAL

Failed actions are answered with {"type": "ERROR", "error": ..., "detail": ...}.
"""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

from fastapi import APIRouter
from starlette.websockets import WebSocket, WebSocketDisconnect

from classroom_arena.core.identity import MemoryIdentityCache
from classroom_arena.errors import ArenaError, ValidationError
from classroom_arena.services.observers import (
    DisplayObserver,
    Observer,
    OperatorObserver,
    TeamObserver,
)
from classroom_arena.state import get_arena


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["live"])

MessageHandler = Callable[[dict], Awaitable[None]]


def _error_message(exc: ArenaError) -> dict:
    return {"type": "ERROR", "error": type(exc).__name__, "detail": str(exc)}


async def _stream(ws: WebSocket, observer: Observer, handle: Optional[MessageHandler] = None) -> None:
    """Pump observer views to the socket until the client disconnects"""
    views: asyncio.Queue = asyncio.Queue()
    observer.on_view = views.put_nowait

    async def sender() -> None:
        while True:
            view = await views.get()
            # Only the newest view matters
            while not views.empty():
                view = views.get_nowait()
            await ws.send_json({"type": "VIEW", "view": view.model_dump(mode="json")})

    sender_task = asyncio.create_task(sender())
    try:
        await observer.start()
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                logger.debug("Invalid JSON from live socket")
                continue
            if not isinstance(msg, dict):
                continue
            if msg.get("type") == "PING":
                await ws.send_json({"type": "PONG"})
                continue
            if handle is None:
                continue
            try:
                await handle(msg)
            except ArenaError as e:
                await ws.send_json(_error_message(e))
    except WebSocketDisconnect:
        logger.info(f"🔌 {type(observer).__name__} disconnected")
    finally:
        await observer.close()
        sender_task.cancel()
        try:
            await sender_task
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError, OSError):
            pass


def _require_int(msg: dict, key: str) -> int:
    value = msg.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    return value


@router.websocket("/session")
async def display_socket(ws: WebSocket):
    """Public display feed (no sign-in)"""
    arena = get_arena()
    await ws.accept()
    observer = DisplayObserver(
        arena.sessions,
        leaderboard_size=arena.settings.leaderboard_size,
        clock=arena.clock,
        tick_interval=arena.settings.tick_interval,
    )
    await _stream(ws, observer)


@router.websocket("/teams/{team_id}")
async def team_socket(ws: WebSocket, team_id: str):
    """Team board feed for one registered team"""
    arena = get_arena()
    await ws.accept()
    observer = TeamObserver(
        arena.sessions,
        MemoryIdentityCache(team_id),
        arena.settings.challenges,
        clock=arena.clock,
        tick_interval=arena.settings.tick_interval,
    )

    async def handle(msg: dict) -> None:
        if msg.get("type") == "SUBMIT":
            challenge_id = _require_int(msg, "challenge_id")
            url = msg.get("url")
            if not isinstance(url, str):
                raise ValidationError("url must be a string")
            accepted = await observer.submit(arena.roster, challenge_id, url)
            await ws.send_json({"type": "SUBMITTED", "challenge_id": challenge_id, "accepted": accepted})

    await _stream(ws, observer, handle)


@router.websocket("/admin")
async def operator_socket(ws: WebSocket, token: Optional[str] = None):
    """Operator console feed; `token` comes from POST /admin/login"""
    arena = get_arena()
    await ws.accept()
    if not arena.auth.is_operator(token):
        await ws.send_json({"type": "ERROR", "error": "AuthorizationError", "detail": "Operator sign-in required"})
        await ws.close(code=1008)
        return

    observer = OperatorObserver(
        arena.sessions,
        arena.roster,
        token,
        clock=arena.clock,
        tick_interval=arena.settings.tick_interval,
    )

    async def handle(msg: dict) -> None:
        kind = msg.get("type")
        if kind == "SEARCH":
            observer.set_search(msg.get("search", ""))
        elif kind == "INSPECT":
            observer.inspect(msg.get("team_id"))
        elif kind == "GRADE":
            challenge_id = _require_int(msg, "challenge_id")
            points = None if msg.get("points") is None else _require_int(msg, "points")
            await observer.grade(msg.get("team_id"), challenge_id, points)
        elif kind == "START":
            minutes = msg.get("minutes")
            if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
                raise ValidationError("minutes must be a number")
            await observer.start_session(minutes)
        elif kind == "PAUSE":
            await observer.pause()
        elif kind == "RESUME":
            await observer.resume()
        elif kind == "STOP":
            await observer.stop()
        elif kind == "REVEAL":
            await observer.reveal()

    await _stream(ws, observer, handle)
