from fastapi import APIRouter, Depends
from app.config import settings
from app.database.supabase_client import get_supabase
from app.modules.chat.gateway import get_room_registry
from app.modules.chat.rooms import RoomRegistry
from app.modules.chat.broadcaster import BroadcastCoordinator
from app.modules.chat.schemas import EnrichedMessage, TextMessageCreate, MessageType
from app.modules.chat.store import MessageStore
from app.modules.groups.routes import get_group_service
from app.modules.groups.service import GroupService
from app.core.dependencies import get_current_user_id
from app.core.exceptions import AuthorizationError
from supabase import Client
from typing import List, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["chat"])


def get_message_store(supabase: Client = Depends(get_supabase)) -> MessageStore:
    return MessageStore(supabase)


def ensure_member(groups: GroupService, group_id: str, user_id: str) -> None:
    """404 if the group does not exist, 403 if the user is not in it"""
    groups.get_group_row(group_id)
    if not groups.is_member(group_id, user_id):
        raise AuthorizationError("Access denied. You are not a member of this group.")


@router.get("/{group_id}/messages", response_model=List[EnrichedMessage])
async def get_history(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    groups: GroupService = Depends(get_group_service),
    store: MessageStore = Depends(get_message_store)
):
    """All chat messages of a group, oldest first (members only)"""
    ensure_member(groups, group_id, user_data["id"])
    return store.get_history(group_id)


@router.post("/{group_id}/messages", response_model=EnrichedMessage, status_code=201)
async def post_message(
    group_id: str,
    body: TextMessageCreate,
    user_data: Dict = Depends(get_current_user_id),
    groups: GroupService = Depends(get_group_service),
    store: MessageStore = Depends(get_message_store),
    registry: RoomRegistry = Depends(get_room_registry)
):
    """Send a text message without a socket. The caller is the sender."""
    if settings.chat_require_membership_on_send:
        ensure_member(groups, group_id, user_data["id"])
    else:
        groups.get_group_row(group_id)

    message = store.append(group_id, user_data["id"], MessageType.TEXT.value, body.message_text)
    enriched = store.get_enriched(message.id)

    if settings.chat_broadcast_http_messages:
        coordinator = BroadcastCoordinator(registry, store, groups)
        delivered = await coordinator.publish(enriched)
        logger.debug(f"HTTP message {enriched.id} delivered to {delivered} live connection(s)")
    return enriched
