"""
Realtime connection registry

Maps rooms ("user:<id>", "admin") to open WebSocket connections. State is
process-local and rebuilt as clients connect; a restart drops every room and
clients must reconnect. Delivery is best-effort and at-most-once.
"""
import asyncio
from typing import Any, Dict, Iterable, List, Set

from fastapi import WebSocket

from hostel_complaints.utils.helpers import utcnow
from hostel_complaints.utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_ROOM = "admin"


def user_room(user_id: Any) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    """Tracks which sockets are in which rooms and fans events out to them"""

    def __init__(self):
        # room -> sockets
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, rooms: Iterable[str]) -> None:
        """Accept the socket and join it to each room"""
        rooms = list(rooms)
        await websocket.accept()
        async with self._lock:
            for room in rooms:
                self._rooms.setdefault(room, set()).add(websocket)
        logger.info(f"WebSocket connected to rooms: {', '.join(rooms)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove the socket from every room; empty rooms are dropped"""
        async with self._lock:
            for room in list(self._rooms):
                members = self._rooms[room]
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def rooms(self) -> List[str]:
        return sorted(self._rooms)

    async def emit(self, room: str, event: str, data: Dict[str, Any]) -> int:
        """
        Send ``{"event", "data", "timestamp"}`` to every socket in ``room``.

        Returns how many sockets accepted the message. An empty room is not an
        error; sockets that fail to send are disconnected.
        """
        async with self._lock:
            targets = list(self._rooms.get(room, ()))

        if not targets:
            return 0

        message = {
            "event": event,
            "data": data,
            "timestamp": utcnow().isoformat(),
        }

        delivered = 0
        dead: List[WebSocket] = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.error(f"Error emitting '{event}' to room {room}: {e}")
                dead.append(websocket)

        for websocket in dead:
            await self.disconnect(websocket)

        return delivered


# Process-wide registry used by the websocket endpoint and the dispatcher
connection_manager = ConnectionManager()
