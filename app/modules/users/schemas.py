from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "consumer"
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicProfile(BaseModel):
    """What other users may see about a user: never email, role or credentials."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    display_name: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "PublicProfile":
        return cls(
            id=row["id"],
            display_name=row.get("full_name") or "",
            avatar_url=row.get("avatar_url"),
        )
