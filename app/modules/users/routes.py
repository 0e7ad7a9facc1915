from fastapi import APIRouter, Depends
from app.modules.users.schemas import UserUpdate, UserResponse, PublicProfile
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id, get_user_service
from app.core.exceptions import NotFoundError
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_my_profile(
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Get the caller's own profile"""
    return service.get_user_by_id(current_user["id"])


@router.put("/me", response_model=UserResponse)
async def update_my_profile(
    user_data: UserUpdate,
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Update the caller's display name or avatar"""
    return service.update_user(current_user["id"], user_data)


@router.get("/{user_id}", response_model=PublicProfile)
async def get_public_profile(
    user_id: str,
    current_user: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Public profile of any user"""
    profile = service.get_public_profile(user_id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile
