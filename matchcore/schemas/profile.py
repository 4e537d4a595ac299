from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from matchcore.models.profile import Profile


class ProfileSearchFilters(BaseModel):
    gender: Optional[str] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    districts: list[str] = []
    education_levels: list[str] = []
    sects: list[str] = []
    occupations: list[str] = []
    marital_status: list[str] = []
    is_verified: Optional[bool] = None
    is_active: Optional[bool] = True
    has_photo: Optional[bool] = None
    exclude_user_ids: list[UUID] = []
    active_since: Optional[datetime] = None
    order_by: Literal["last_active", "created"] = "last_active"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class ProfileSummary(BaseModel):
    user_id: UUID
    name: str
    age: int
    gender: str
    district: str
    block: Optional[str] = None
    education: Optional[str] = None
    occupation: Optional[str] = None
    sect: Optional[str] = None
    is_verified: bool = False
    profile_picture_id: Optional[str] = None

    model_config = {"from_attributes": True}


class ProfileSearchResult(BaseModel):
    """One page of a profile search; ``profiles`` holds ORM rows."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    profiles: list[Profile] = []
    total: int = 0
    has_more: bool = False
