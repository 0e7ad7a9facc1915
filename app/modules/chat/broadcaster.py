"""Persist-then-broadcast flow for chat messages.

Each incoming message moves Received -> Validated -> Persisted -> Enriched ->
Broadcast. Any failure stops the flow and is reported to the sending
connection only. A message that was persisted but could not be enriched stays
stored and is not broadcast.

The sender named in the payload must be the user the connection authenticated
as; membership is then checked for that user.
"""
import logging
from typing import Any, Optional

from pydantic import ValidationError as PayloadError
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import AppError, AuthorizationError, ForbiddenError, StorageError
from app.modules.chat.rooms import RoomRegistry
from app.modules.chat.schemas import ChatEvent, EnrichedMessage, MessageErrorEvent, SendMessagePayload
from app.modules.chat.store import MessageStore, validate_message
from app.modules.groups.service import GroupService

logger = logging.getLogger(__name__)

GENERIC_SEND_ERROR = "Server error: Could not send your message."


class BroadcastCoordinator:
    def __init__(
        self,
        registry: RoomRegistry,
        store: MessageStore,
        groups: GroupService,
        require_membership: bool = True,
    ):
        self.registry = registry
        self.store = store
        self.groups = groups
        self.require_membership = require_membership

    async def handle_incoming_message(
        self, connection_id: str, user_id: str, payload: Any
    ) -> Optional[EnrichedMessage]:
        """Run one sendMessage event from ``user_id``'s connection to completion. Never raises."""
        try:
            message = await self._persist(user_id, payload)
            enriched = await run_in_threadpool(self.store.get_enriched, message.id)
        except PayloadError as e:
            logger.warning(f"Rejected malformed sendMessage from {connection_id}: {e.errors()}")
            await self.report_error(connection_id, "Invalid message data.", "validation")
            return None
        except AppError as e:
            if isinstance(e, StorageError):
                await self.report_error(connection_id, GENERIC_SEND_ERROR, e.code)
            else:
                logger.info(f"Rejected sendMessage from {connection_id}: {e.message}")
                await self.report_error(connection_id, e.message, e.code)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error handling sendMessage from {connection_id}: {e}")
            await self.report_error(connection_id, GENERIC_SEND_ERROR, "server")
            return None

        await self.publish(enriched)
        return enriched

    async def publish(self, message: EnrichedMessage) -> int:
        """Fan an enriched message out to every connection in its group's room"""
        return await self.registry.broadcast(
            message.group_id, ChatEvent.NEW_MESSAGE.value, message.to_event_data()
        )

    async def report_error(self, connection_id: str, error: str, code: str) -> None:
        event = MessageErrorEvent(error=error, code=code)
        await self.registry.send(connection_id, ChatEvent.MESSAGE_ERROR.value, event.model_dump())

    async def _persist(self, user_id: str, payload: Any):
        data = SendMessagePayload.model_validate(payload)
        validate_message(data.group_id, data.sender_id, data.message_type, data.message_text, data.file_url)
        if data.sender_id != user_id:
            logger.warning(f"User {user_id} tried to send as {data.sender_id}")
            raise ForbiddenError("You can only send messages as yourself.")

        if self.require_membership:
            is_member = await run_in_threadpool(self.groups.is_member, data.group_id, data.sender_id)
            if not is_member:
                raise AuthorizationError("You are not a member of this group.")

        return await run_in_threadpool(
            self.store.append,
            data.group_id,
            data.sender_id,
            data.message_type,
            data.message_text,
            data.file_url,
        )
