"""
Durable, append-only message log per group.

Messages are validated before anything is written, stored with a database
assigned id and timestamp, and read back joined with the sender's public
profile (enrichment).
"""

import logging
from typing import List, Optional

from supabase import Client

from app.core.exceptions import EnrichmentError, NotFoundError, StorageError, ValidationError
from app.database.supabase_client import execute
from app.modules.chat.schemas import EnrichedMessage, Message, MessageType
from app.modules.users.service import UserService

logger = logging.getLogger(__name__)


def validate_message(
    group_id: Optional[str],
    sender_id: Optional[str],
    message_type: Optional[str],
    message_text: Optional[str] = None,
    file_url: Optional[str] = None,
) -> dict:
    """Check a message against the content rules and return the row to insert.

    Raises ValidationError naming the offending field.
    """
    if not group_id:
        raise ValidationError("Group ID missing.", field="groupId")
    if not sender_id:
        raise ValidationError("Sender ID missing.", field="senderId")
    try:
        kind = MessageType(message_type)
    except ValueError:
        raise ValidationError(f"Unsupported message type: {message_type!r}.", field="messageType") from None

    if kind == MessageType.TEXT:
        text = (message_text or "").strip()
        if not text:
            raise ValidationError("Cannot send an empty text message.", field="messageText")
        return {
            "group_id": group_id,
            "sender_id": sender_id,
            "message_type": kind.value,
            "message_text": text,
            "file_url": None,
        }

    url = (file_url or "").strip()
    if not url:
        raise ValidationError(f"{kind.value.capitalize()} URL missing.", field="fileUrl")
    return {
        "group_id": group_id,
        "sender_id": sender_id,
        "message_type": kind.value,
        "message_text": None,
        "file_url": url,
    }


class MessageStore:
    def __init__(self, supabase: Client, users: Optional[UserService] = None):
        self.supabase = supabase
        self.users = users or UserService(supabase)

    def append(
        self,
        group_id: str,
        sender_id: str,
        message_type: str,
        message_text: Optional[str] = None,
        file_url: Optional[str] = None,
    ) -> Message:
        """Validate and persist a message. id, seq and sent_at are assigned by the database."""
        row = validate_message(group_id, sender_id, message_type, message_text, file_url)
        result = execute(
            self.supabase.table("messages").insert(row),
            f"saving message to group {group_id}",
            not_found="Group or sender not found",
        )
        if not result.data:
            logger.error(f"Insert into messages returned no row for group {group_id}")
            raise StorageError()
        message = Message(**result.data[0])
        logger.debug(f"Message {message.id} saved to group {group_id}")
        return message

    def get_message(self, message_id: str) -> Optional[Message]:
        result = execute(
            self.supabase.table("messages")
                .select("*")
                .eq("id", message_id)
                .maybe_single(),
            f"fetching message {message_id}",
            not_found="Message not found",
        )
        if not result or not result.data:
            return None
        return Message(**result.data)

    def get_enriched(self, message_id: str) -> EnrichedMessage:
        """Re-read a stored message together with its sender's public profile"""
        try:
            message = self.get_message(message_id)
        except NotFoundError:
            message = None
        if message is None:
            raise EnrichmentError()
        sender = self.users.get_public_profile(message.sender_id)
        if sender is None:
            logger.warning(f"Sender {message.sender_id} of message {message_id} not found")
            raise EnrichmentError()
        return EnrichedMessage.from_message(message, sender)

    def get_history(self, group_id: str) -> List[EnrichedMessage]:
        """All messages of a group, oldest first, ties kept in insertion order"""
        result = execute(
            self.supabase.table("messages")
                .select("*")
                .eq("group_id", group_id)
                .order("sent_at")
                .order("seq"),
            f"fetching history of group {group_id}",
            not_found="Group not found",
        )
        messages = [Message(**row) for row in result.data or []]
        senders = self.users.get_public_profiles(m.sender_id for m in messages)
        return [EnrichedMessage.from_message(m, senders.get(m.sender_id)) for m in messages]
