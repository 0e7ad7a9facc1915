import logging
import re
from postgrest.exceptions import APIError
from supabase import Client
from app.database.supabase_client import execute, UNIQUE_VIOLATION
from app.modules.groups.schemas import GroupCreate, GroupResponse, GroupMemberResponse
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, StorageError
from typing import Dict, List, Optional, Set

logger = logging.getLogger(__name__)

# Characters with meaning inside a PostgREST or=(...) filter
_FILTER_META = re.compile(r"[,()*%\\]")

SEARCH_COLUMNS = ("name", "description", "location_name", "category")


class GroupService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_group(self, group_data: GroupCreate, user_id: str) -> GroupResponse:
        """Create a new group; the creator becomes its owner and first member"""
        row = {
            "name": group_data.name.strip(),
            "description": group_data.description.strip(),
            "type": group_data.type,
            "category": group_data.category,
            "location_name": group_data.location_name,
            "cover_image_url": group_data.cover_image_url,
            "user_id": user_id,
        }
        if group_data.location:
            row["latitude"] = group_data.location.latitude
            row["longitude"] = group_data.location.longitude

        try:
            result = self.supabase.table("groups").insert(row).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError("A group with this name already exists.") from e
            logger.exception(f"Error creating group: {e}")
            raise StorageError() from e
        except Exception as e:
            logger.exception(f"Error creating group: {e}")
            raise StorageError() from e

        if not result.data:
            raise StorageError("Failed to create group")
        group = result.data[0]

        execute(
            self.supabase.table("group_members").insert({
                "group_id": group["id"],
                "user_id": user_id,
                "role": "owner"
            }),
            f"adding creator to group {group['id']}",
        )
        logger.info(f"Group {group['id']} created by {user_id}")
        return self._to_response(group, [user_id])

    def get_group_row(self, group_id: str) -> Dict:
        result = execute(
            self.supabase.table("groups")
                .select("*")
                .eq("id", group_id)
                .maybe_single(),
            f"fetching group {group_id}",
            not_found="Group not found",
        )
        if not result or not result.data:
            raise NotFoundError("Group not found")
        return result.data

    def get_group(self, group_id: str) -> GroupResponse:
        """Get group by ID including its member ids"""
        group = self.get_group_row(group_id)
        return self._to_response(group, self._member_ids_in_order(group_id))

    def list_groups(self, search: Optional[str] = None) -> List[GroupResponse]:
        """List groups newest first, optionally filtered by a case-insensitive search term"""
        query = self.supabase.table("groups").select("*")
        term = _FILTER_META.sub(" ", search or "").strip()
        if term:
            query = query.or_(",".join(f"{col}.ilike.*{term}*" for col in SEARCH_COLUMNS))
        result = execute(query.order("created_at", desc=True), "listing groups")
        groups = result.data or []
        if not groups:
            return []

        members_result = execute(
            self.supabase.table("group_members")
                .select("group_id, user_id")
                .in_("group_id", [g["id"] for g in groups])
                .order("created_at"),
            "listing group members",
        )
        members: Dict[str, List[str]] = {}
        for m in members_result.data or []:
            members.setdefault(m["group_id"], []).append(m["user_id"])
        return [self._to_response(g, members.get(g["id"], [])) for g in groups]

    def list_members(self, group_id: str) -> List[GroupMemberResponse]:
        """List all membership rows of a group"""
        self.get_group_row(group_id)
        result = execute(
            self.supabase.table("group_members")
                .select("*")
                .eq("group_id", group_id)
                .order("created_at"),
            f"listing members of group {group_id}",
        )
        return [GroupMemberResponse(**member) for member in result.data or []]

    def list_member_ids(self, group_id: str) -> Set[str]:
        return set(self._member_ids_in_order(group_id))

    def is_member(self, group_id: str, user_id: str) -> bool:
        result = execute(
            self.supabase.table("group_members")
                .select("id")
                .eq("group_id", group_id)
                .eq("user_id", user_id)
                .limit(1),
            f"checking membership of {user_id} in group {group_id}",
            not_found="Group not found",
        )
        return bool(result.data)

    def toggle_membership(self, group_id: str, user_id: str) -> bool:
        """Join the group if not a member, leave it otherwise. Returns the new membership state.

        Each branch is one single-row statement, so concurrent toggles never
        rewrite (and lose) other members.
        """
        group = self.get_group_row(group_id)

        if self.is_member(group_id, user_id):
            if group["user_id"] == user_id:
                raise ForbiddenError("Group creator cannot leave the group")
            execute(
                self.supabase.table("group_members")
                    .delete()
                    .eq("group_id", group_id)
                    .eq("user_id", user_id),
                f"removing {user_id} from group {group_id}",
            )
            logger.info(f"User {user_id} left group {group_id}")
            return False

        execute(
            self.supabase.table("group_members").upsert(
                {
                    "group_id": group_id,
                    "user_id": user_id,
                    "role": "owner" if group["user_id"] == user_id else "member"
                },
                on_conflict="group_id,user_id",
                ignore_duplicates=True,
            ),
            f"adding {user_id} to group {group_id}",
        )
        logger.info(f"User {user_id} joined group {group_id}")
        return True

    def _member_ids_in_order(self, group_id: str) -> List[str]:
        result = execute(
            self.supabase.table("group_members")
                .select("user_id")
                .eq("group_id", group_id)
                .order("created_at"),
            f"listing member ids of group {group_id}",
        )
        return [m["user_id"] for m in result.data or []]

    @staticmethod
    def _to_response(group: Dict, member_ids: List[str]) -> GroupResponse:
        return GroupResponse(**group, members=member_ids, member_count=len(member_ids))
