from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Literal
from datetime import datetime

GroupType = Literal["Category-Based", "Location-Based"]


class GeoPoint(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    type: GroupType
    category: Optional[str] = None
    location_name: Optional[str] = None
    location: Optional[GeoPoint] = None
    cover_image_url: Optional[str] = None

    @model_validator(mode="after")
    def strip_fields_for_type(self):
        # Category only applies to category groups, location only to location groups
        if self.type == "Category-Based":
            self.location_name = None
            self.location = None
        else:
            self.category = None
            if not self.location_name:
                self.location = None
        return self


class GroupResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: GroupType
    category: Optional[str] = None
    location_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    cover_image_url: Optional[str] = None
    user_id: str
    members: List[str] = []
    member_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberResponse(BaseModel):
    id: str
    group_id: str
    user_id: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class MembershipToggleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_member: bool = Field(..., alias="isMember")
