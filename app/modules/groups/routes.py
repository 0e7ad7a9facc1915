from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.groups.schemas import (
    GroupCreate, GroupResponse, GroupMemberResponse, MembershipToggleResponse
)
from app.modules.groups.service import GroupService
from app.core.dependencies import get_current_user_id, require_role
from supabase import Client
from typing import List, Optional, Dict

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(supabase: Client = Depends(get_supabase)) -> GroupService:
    return GroupService(supabase)


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    user_data: Dict = Depends(require_role("farmer")),
    service: GroupService = Depends(get_group_service)
):
    """Create a new farmer group (farmers only)"""
    return service.create_group(group_data, user_data["id"])


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    search: Optional[str] = None,
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """List all groups, newest first. `search` matches name, description, location or category."""
    return service.list_groups(search=search)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    service: GroupService = Depends(get_group_service)
):
    """Get group details including member ids"""
    return service.get_group(group_id)


@router.get("/{group_id}/members", response_model=List[GroupMemberResponse])
async def list_members(
    group_id: str,
    service: GroupService = Depends(get_group_service)
):
    """List all members of a group"""
    return service.list_members(group_id)


@router.post("/{group_id}/toggle-membership", response_model=MembershipToggleResponse)
async def toggle_membership(
    group_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Join or leave a group. The creator cannot leave."""
    is_member = service.toggle_membership(group_id, user_data["id"])
    return MembershipToggleResponse(is_member=is_member)
