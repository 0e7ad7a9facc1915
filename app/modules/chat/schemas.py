from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.modules.users.schemas import PublicProfile


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class ChatEvent(str, Enum):
    """Names of the events exchanged over the chat WebSocket"""

    JOIN_ROOM = "joinRoom"
    JOINED_ROOM = "joinedRoom"
    LEAVE_ROOM = "leaveRoom"
    SEND_MESSAGE = "sendMessage"
    NEW_MESSAGE = "newMessage"
    MESSAGE_ERROR = "messageError"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Message(BaseModel):
    """A stored messages row"""

    id: str
    group_id: str
    sender_id: str
    message_type: MessageType
    message_text: Optional[str] = None
    file_url: Optional[str] = None
    sent_at: datetime
    seq: Optional[int] = None


class EnrichedMessage(CamelModel):
    """Message as delivered to clients, with the sender's public profile joined in.

    sender is None only in history, for a sender that no longer exists.
    """

    id: str
    group_id: str
    sender: Optional[PublicProfile] = None
    message_type: MessageType
    message_text: Optional[str] = None
    file_url: Optional[str] = None
    sent_at: datetime

    @classmethod
    def from_message(cls, message: Message, sender: Optional[PublicProfile]) -> "EnrichedMessage":
        return cls(
            id=message.id,
            group_id=message.group_id,
            sender=sender,
            message_type=message.message_type,
            message_text=message.message_text,
            file_url=message.file_url,
            sent_at=message.sent_at,
        )

    def to_event_data(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SendMessagePayload(CamelModel):
    """Inbound sendMessage event. Only shapes are checked here; content rules live in the store."""

    group_id: Optional[str] = None
    sender_id: Optional[str] = None
    message_type: str = MessageType.TEXT.value
    message_text: Optional[str] = None
    file_url: Optional[str] = None


class RoomPayload(CamelModel):
    group_id: str = Field(..., min_length=1)


class TextMessageCreate(CamelModel):
    message_text: str


class MessageErrorEvent(BaseModel):
    error: str
    code: str
