"""
Realtime WebSocket endpoint

Connect: WS /ws?token=<jwt>

On connect the socket joins "user:<id>", and "admin" for admins. Server
messages are {"event": name, "data": payload, "timestamp": iso}. Clients may
send "ping" (plain text or {"event": "ping"}) and get a "pong" back.
"""
import json

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import async_sessionmaker

from hostel_complaints.api.auth import user_from_token
from hostel_complaints.database import AsyncSessionLocal
from hostel_complaints.services.realtime import ADMIN_ROOM, connection_manager, user_room
from hostel_complaints.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

INVALID_TOKEN_CODE = 4001


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal


def _is_ping(raw: str) -> bool:
    if raw.strip().lower() == "ping":
        return True
    try:
        message = json.loads(raw)
    except ValueError:
        return False
    return isinstance(message, dict) and (message.get("event") or message.get("type")) == "ping"


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    token: str = Query(""),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    async with session_factory() as db:
        user = await user_from_token(db, token)

    if user is None:
        await websocket.close(code=INVALID_TOKEN_CODE, reason="Invalid or expired token")
        return

    rooms = [user_room(user.id)]
    if user.is_admin:
        rooms.append(ADMIN_ROOM)
    await connection_manager.connect(websocket, rooms)
    await websocket.send_json({"event": "connected", "data": {"user_id": user.id, "rooms": rooms}})

    try:
        while True:
            raw = await websocket.receive_text()
            if _is_ping(raw):
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        logger.info(f"WebSocket for user {user.id} disconnected")
    finally:
        await connection_manager.disconnect(websocket)
