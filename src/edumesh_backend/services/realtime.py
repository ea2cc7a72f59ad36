'''
Realtime channel: a registry of live WebSocket connections grouped into rooms.
Every connection joins `school_<id>` and `user_<id>`; delivery is
fire-and-forget on top of the persisted REST history.
'''
from collections import defaultdict
from typing import Any
from uuid import UUID

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from ..common.logger import log


def school_room(school_id: UUID) -> str:
    return f"school_{school_id}"

def user_room(user_id: UUID) -> str:
    return f"user_{user_id}"


class ConnectionManager:
    def __init__(self):
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: UUID, school_id: UUID):
        await websocket.accept()
        self.rooms[school_room(school_id)].add(websocket)
        self.rooms[user_room(user_id)].add(websocket)
        log.info(f"Realtime: user {user_id} connected (school {school_id}).")

    def disconnect(self, websocket: WebSocket, user_id: UUID, school_id: UUID):
        for room in (school_room(school_id), user_room(user_id)):
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self.rooms[room]
        log.info(f"Realtime: user {user_id} disconnected.")

    async def emit(self, room: str, event: str, data: Any) -> int:
        """Sends `{event, data}` to every socket of `room`; returns deliveries."""
        delivered = 0
        payload = {"event": event, "data": jsonable_encoder(data)}
        for websocket in list(self.rooms.get(room, ())):
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                # the socket died between receive loops; its endpoint cleans up
                log.warning(f"Realtime: dropping {event} to a closed socket in {room}: {e}")
                self.rooms[room].discard(websocket)
        return delivered

    async def emit_to_user(self, user_id: UUID, event: str, data: Any) -> int:
        return await self.emit(user_room(user_id), event, data)


manager = ConnectionManager()

def get_connection_manager() -> ConnectionManager:
    """FastAPI dependency for the process-wide connection registry."""
    return manager
