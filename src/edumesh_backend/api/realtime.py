'''
WebSocket endpoint for live chat delivery and typing indicators.

Clients connect to `/ws?token=<access token>` and exchange
`{"event": ..., "data": {...}}` frames.
'''
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log
from ..database import engine as db_engine
from ..database import models as db_models
from ..models import chat as chat_models
from ..services.chat_service import ChatService
from ..services.notification_service import NotificationService
from ..services.realtime import ConnectionManager, manager
from ..services.security import resolve_user_from_token
from ..services.user_service import UserService


class SessionRevoked(Exception):
    """The connected user was removed, deactivated or moved to another school."""


class RealtimeAPI:
    """
    Each frame opens its own short database session; the socket itself
    holds no connection.
    """
    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.router = APIRouter(tags=["Realtime"])
        self.router.add_api_websocket_route("/ws", self.websocket_endpoint)

    async def _send_error(self, websocket: WebSocket, message: str):
        await websocket.send_json({"event": "error", "data": {"message": message}})

    async def _load_sender(self, db: AsyncSession, user_id: UUID, school_id: UUID) -> db_models.Users:
        """Re-reads the connected user; the handshake check may be stale by now."""
        user = await db.get(db_models.Users, user_id)
        if user is None:
            raise SessionRevoked("User no longer exists")
        if not user.is_active:
            raise SessionRevoked("Account is deactivated")
        if user.school_id != school_id:
            raise SessionRevoked("User no longer belongs to this school")
        return user

    def _chat_service(self, db: AsyncSession) -> ChatService:
        return ChatService(db, NotificationService(db, self.connection_manager), self.connection_manager)

    async def _handle_send_message(self, websocket: WebSocket, user_id: UUID, school_id: UUID, data: dict):
        message_data = chat_models.MessageCreate.model_validate(data)
        async with db_engine.AsyncSessionLocal() as db:
            current_user = await self._load_sender(db, user_id, school_id)
            message = await self._chat_service(db).send_message(message_data, current_user)
        await websocket.send_json({"event": "message_sent", "data": jsonable_encoder(message)})

    async def _handle_typing(self, user_id: UUID, school_id: UUID, data: dict):
        receiver_id = UUID(str(data.get("receiver_id")))
        async with db_engine.AsyncSessionLocal() as db:
            current_user = await self._load_sender(db, user_id, school_id)
            await self._chat_service(db).get_receiver(receiver_id, current_user)
        await self.connection_manager.emit_to_user(
            receiver_id, "user_typing", {"user_id": user_id, "is_typing": bool(data.get("is_typing", True))}
        )

    async def _dispatch(self, websocket: WebSocket, user_id: UUID, school_id: UUID, frame):
        if not isinstance(frame, dict):
            await self._send_error(websocket, "Frames must be JSON objects")
            return
        event, data = frame.get("event"), frame.get("data") or {}
        try:
            if event == "send_message":
                await self._handle_send_message(websocket, user_id, school_id, data)
            elif event == "typing":
                await self._handle_typing(user_id, school_id, data)
            else:
                await self._send_error(websocket, f"Unknown event: {event}")
        except ValidationError as e:
            await self._send_error(websocket, f"Invalid payload: {e.errors()[0]['msg']}")
        except ValueError:
            await self._send_error(websocket, "Invalid receiver_id")
        except HTTPException as http_exc:
            await self._send_error(websocket, http_exc.detail)

    async def websocket_endpoint(self, websocket: WebSocket, token: Optional[str] = None):
        try:
            async with db_engine.AsyncSessionLocal() as db:
                user = await resolve_user_from_token(token, UserService(db))
        except HTTPException as http_exc:
            log.warning(f"Realtime: rejected connection ({http_exc.detail}).")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(http_exc.detail))
            return

        user_id, school_id = user.id, user.school_id
        await self.connection_manager.connect(websocket, user_id, school_id)
        try:
            while True:
                try:
                    frame = await websocket.receive_json()
                except ValueError:
                    await self._send_error(websocket, "Frames must be valid JSON")
                    continue
                await self._dispatch(websocket, user_id, school_id, frame)
        except SessionRevoked as e:
            log.warning(f"Realtime: closing session of user {user_id} ({e}).")
            await self._send_error(websocket, str(e))
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        except WebSocketDisconnect:
            pass
        finally:
            self.connection_manager.disconnect(websocket, user_id, school_id)

# Instantiate the class and export its router
realtime_api = RealtimeAPI(manager)
router = realtime_api.router
