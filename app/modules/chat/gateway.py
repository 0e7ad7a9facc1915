"""WebSocket entry point for group chat.

Frames are JSON objects ``{"event": ..., "data": ...}`` in both directions.
Inbound events: joinRoom, leaveRoom, sendMessage. Outbound: joinedRoom,
newMessage, messageError. Bad frames and malformed joins are logged and
ignored; only sendMessage failures are reported back to the client.

Clients authenticate with their Supabase access token in the ``token`` query
parameter. The resulting user is bound to the connection and is the only
sender that connection may post as.
"""
import asyncio
import json
import logging
import uuid
from typing import Any, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from pydantic import ValidationError as PayloadError
from starlette.concurrency import run_in_threadpool
from supabase import Client

from app.config import settings
from app.core.dependencies import get_auth_service
from app.database.supabase_client import get_service_supabase
from app.modules.auth.service import AuthService
from app.modules.chat.broadcaster import BroadcastCoordinator
from app.modules.chat.rooms import RoomRegistry
from app.modules.chat.schemas import ChatEvent, RoomPayload
from app.modules.chat.store import MessageStore
from app.modules.groups.service import GroupService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatGateway:
    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        # in-flight sendMessage tasks; they outlive their connection
        self._pending: Set[asyncio.Task] = set()

    async def authenticate(self, token: Optional[str], auth_service: AuthService) -> Optional[str]:
        """Resolve an access token to a user id, or None if the connection must be refused"""
        if not token:
            logger.warning("Refusing chat connection without an access token")
            return None
        try:
            user_data = await run_in_threadpool(auth_service.get_current_user, token)
        except HTTPException as e:
            logger.warning(f"Refusing chat connection: {e.detail}")
            return None
        return user_data["id"]

    async def serve(self, websocket: WebSocket, coordinator: BroadcastCoordinator, user_id: str) -> None:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        self.registry.register(connection_id, websocket)
        logger.info(f"Chat connection {connection_id} opened for user {user_id}")

        close_code: Optional[int] = None
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    close_code = message.get("code")
                    break
                text = message.get("text")
                if text is None:
                    logger.warning(f"Ignoring binary frame from {connection_id}")
                    continue
                await self.dispatch(connection_id, user_id, text, coordinator)
        finally:
            rooms = self.registry.unregister(connection_id)
            logger.info(
                f"Chat connection {connection_id} closed (code {close_code}), left rooms {sorted(rooms)}"
            )

    async def dispatch(
        self, connection_id: str, user_id: str, text: str, coordinator: BroadcastCoordinator
    ) -> None:
        try:
            frame = json.loads(text)
        except ValueError:
            logger.warning(f"Ignoring non-JSON frame from {connection_id}")
            return
        if not isinstance(frame, dict):
            logger.warning(f"Ignoring frame without event envelope from {connection_id}")
            return

        event = frame.get("event")
        data = frame.get("data")
        if event == ChatEvent.JOIN_ROOM.value:
            await self.join(connection_id, data)
        elif event == ChatEvent.LEAVE_ROOM.value:
            self.leave(connection_id, data)
        elif event == ChatEvent.SEND_MESSAGE.value:
            task = asyncio.create_task(coordinator.handle_incoming_message(connection_id, user_id, data))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            logger.warning(f"Ignoring unknown event {event!r} from {connection_id}")

    async def join(self, connection_id: str, data: Any) -> None:
        group_id = self._room_id(connection_id, data, ChatEvent.JOIN_ROOM)
        if group_id is None:
            return
        if not self.registry.join(connection_id, group_id):
            # the registry drops a connection whose last send failed
            logger.warning(f"Refused join of group {group_id}: connection {connection_id} is no longer registered")
            return
        logger.info(f"Connection {connection_id} joined group {group_id}")
        await self.registry.send(connection_id, ChatEvent.JOINED_ROOM.value, {"groupId": group_id})

    def leave(self, connection_id: str, data: Any) -> None:
        group_id = self._room_id(connection_id, data, ChatEvent.LEAVE_ROOM)
        if group_id is not None and self.registry.leave(connection_id, group_id):
            logger.info(f"Connection {connection_id} left group {group_id}")

    async def drain(self) -> None:
        """Let in-flight sends finish, e.g. on shutdown"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @staticmethod
    def _room_id(connection_id: str, data: Any, event: ChatEvent) -> Optional[str]:
        # Older clients send the bare group id instead of {"groupId": ...}
        if isinstance(data, str):
            data = {"groupId": data}
        try:
            return RoomPayload.model_validate(data).group_id
        except PayloadError:
            logger.warning(f"Ignoring malformed {event.value} from {connection_id}: {data!r}")
            return None


room_registry = RoomRegistry()
chat_gateway = ChatGateway(room_registry)


def get_room_registry() -> RoomRegistry:
    return room_registry


def get_chat_gateway() -> ChatGateway:
    return chat_gateway


def get_broadcast_coordinator(
    supabase: Client = Depends(get_service_supabase),
    registry: RoomRegistry = Depends(get_room_registry),
) -> BroadcastCoordinator:
    return BroadcastCoordinator(
        registry,
        MessageStore(supabase),
        GroupService(supabase),
        require_membership=settings.chat_require_membership_on_send,
    )


@router.websocket("/ws/chat")
async def chat_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
    gateway: ChatGateway = Depends(get_chat_gateway),
    coordinator: BroadcastCoordinator = Depends(get_broadcast_coordinator),
):
    user_id = await gateway.authenticate(token, auth_service)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await gateway.serve(websocket, coordinator, user_id)
