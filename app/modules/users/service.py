from datetime import datetime, timezone
from supabase import Client
from app.database.supabase_client import execute
from app.modules.users.schemas import UserUpdate, UserResponse, PublicProfile
from app.core.exceptions import NotFoundError
from typing import Dict, Iterable, Optional

PUBLIC_PROFILE_COLUMNS = "id, full_name, avatar_url"


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_by_id(self, user_id: str) -> UserResponse:
        """Get full user profile by ID (owner view)"""
        result = execute(
            self.supabase.table("user_profiles")
                .select("*")
                .eq("id", user_id)
                .maybe_single(),
            f"fetching user {user_id}",
            not_found="User not found",
        )
        if not result or not result.data:
            raise NotFoundError("User not found")
        return UserResponse(**result.data)

    def update_user(self, user_id: str, user_data: UserUpdate) -> UserResponse:
        """Update user profile"""
        update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
        if user_data.full_name is not None:
            update_data["full_name"] = user_data.full_name
        if user_data.avatar_url is not None:
            update_data["avatar_url"] = user_data.avatar_url

        result = execute(
            self.supabase.table("user_profiles")
                .update(update_data)
                .eq("id", user_id),
            f"updating user {user_id}",
            not_found="User not found",
        )
        if not result.data:
            raise NotFoundError("User not found")
        return UserResponse(**result.data[0])

    def get_public_profile(self, user_id: str) -> Optional[PublicProfile]:
        """Public view of a user, or None when the user does not exist (e.g. deleted)"""
        try:
            result = execute(
                self.supabase.table("user_profiles")
                    .select(PUBLIC_PROFILE_COLUMNS)
                    .eq("id", user_id)
                    .maybe_single(),
                f"fetching public profile {user_id}",
                not_found="User not found",
            )
        except NotFoundError:
            return None
        if not result or not result.data:
            return None
        return PublicProfile.from_row(result.data)

    def get_public_profiles(self, user_ids: Iterable[str]) -> Dict[str, PublicProfile]:
        """Batch lookup; ids with no profile are simply absent from the result"""
        ids = list({uid for uid in user_ids if uid})
        if not ids:
            return {}
        result = execute(
            self.supabase.table("user_profiles")
                .select(PUBLIC_PROFILE_COLUMNS)
                .in_("id", ids),
            "fetching public profiles",
        )
        return {row["id"]: PublicProfile.from_row(row) for row in result.data or []}
